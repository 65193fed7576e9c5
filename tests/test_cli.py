from pathlib import Path

import pytest
from typer.testing import CliRunner

from char_rnn import api
from char_rnn.cli import app
from char_rnn.dsl import RunSpec


def test_cli_train_generate_and_inspect(tmp_path: Path, tiny_spec: RunSpec) -> None:
    cfg = tmp_path / "spec.yaml"
    api.save_spec(tiny_spec, cfg)
    ckpt = tmp_path / "model.pt"
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["train", str(cfg), "--out", str(ckpt), "--seed", "1", "--device", "cpu"],
    )
    assert result.exit_code == 0, result.output
    assert ckpt.exists()
    assert "Sampled" in result.output
    assert "Windows:" in result.output
    assert "abc-tiny" in result.output

    result_generate = runner.invoke(
        app,
        ["generate", str(ckpt), "--max-chars", "8", "--temperature", "0.5", "--seed", "3"],
    )
    assert result_generate.exit_code == 0, result_generate.output
    assert "ArgMax" in result_generate.output

    result_inspect = runner.invoke(app, ["inspect", str(ckpt)])
    assert result_inspect.exit_code == 0, result_inspect.output


def test_cli_train_reads_corpus_file(tmp_path: Path, tiny_spec: RunSpec) -> None:
    (tmp_path / "corpus.txt").write_text("abc\ncab\n", encoding="utf-8")
    spec = tiny_spec.model_copy(deep=True)
    spec.data.text = None
    spec.data.path = "corpus.txt"
    cfg = tmp_path / "spec.json"
    api.save_spec(spec, cfg)
    runner = CliRunner()
    out = tmp_path / "ckpts" / "file.pt"
    result = runner.invoke(app, ["train", str(cfg), "--out", str(out), "--device", "cpu"])
    assert result.exit_code == 0, result.output
    assert out.exists()


def test_cli_version() -> None:
    result = CliRunner().invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.strip()


def test_cli_warm_start_resolves_against_config_dir(
    tmp_path: Path, tiny_spec: RunSpec, monkeypatch: pytest.MonkeyPatch
) -> None:
    runner = CliRunner()
    base_cfg = tmp_path / "base.yaml"
    api.save_spec(tiny_spec, base_cfg)
    base_out = tmp_path / "base.pt"
    result = runner.invoke(app, ["train", str(base_cfg), "--out", str(base_out), "--device", "cpu"])
    assert result.exit_code == 0, result.output

    warm = tiny_spec.model_copy(deep=True)
    warm.train.init_checkpoint = "base.pt"
    warm_cfg = tmp_path / "warm.yaml"
    api.save_spec(warm, warm_cfg)
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)
    warm_out = tmp_path / "warm.pt"
    result = runner.invoke(app, ["train", str(warm_cfg), "--out", str(warm_out), "--device", "cpu"])
    assert result.exit_code == 0, result.output
    assert warm_out.exists()
