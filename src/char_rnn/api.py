"""Public API for downstream modules."""

from __future__ import annotations

from pathlib import Path

import torch

from .data import Corpus
from .decoding import Prediction
from .dsl import RunSpec, load_run_spec, save_run_spec
from .rnn import CharRNN
from .trainer import CharRNNTrainer, TrainingReport, load_checkpoint, save_checkpoint

__all__ = [
    "RunSpec",
    "load_spec",
    "save_spec",
    "load_model",
    "save_checkpoint",
    "load_checkpoint",
    "train_from_config",
    "generate_from_checkpoint",
]


def load_spec(path: str | Path) -> RunSpec:
    """Read a run config from disk."""
    return load_run_spec(path)


def save_spec(spec: RunSpec, path: str | Path) -> None:
    """Persist a run config to disk."""
    save_run_spec(spec, path)


def load_model(checkpoint: str | Path, device: str = "cpu") -> CharRNN:
    """Restore a CharRNN ready for generation from a checkpoint."""
    params, vocabulary, _ = load_checkpoint(Path(checkpoint), device)
    return CharRNN(params, vocabulary)


def train_from_config(
    config_path: str | Path,
    out_path: str | Path | None = None,
    seed: int | None = None,
    device: str | None = None,
) -> tuple[TrainingReport, Prediction]:
    """Entry point used by the CLI: train, checkpoint, and sample once."""
    config_path = Path(config_path)
    spec = load_spec(config_path)
    if seed is not None:
        spec.train.seed = seed
    corpus = Corpus.from_config(spec.data, root=config_path.parent)
    trainer = CharRNNTrainer(device=device)
    checkpoint_path = Path(out_path) if out_path is not None else None
    init_checkpoint: Path | None = None
    if spec.train.init_checkpoint:
        init_checkpoint = Path(spec.train.init_checkpoint)
        if not init_checkpoint.is_absolute():
            init_checkpoint = config_path.parent / init_checkpoint
    report, rnn = trainer.train(
        spec, corpus, init_checkpoint=init_checkpoint, checkpoint_path=checkpoint_path
    )
    prediction = rnn.predict(
        max_chars=spec.generate.max_chars,
        temperature=spec.generate.temperature,
        generator=_generator(spec.generate.seed),
    )
    return report, prediction


def generate_from_checkpoint(
    checkpoint: str | Path,
    max_chars: int = 100,
    temperature: float = 1.0,
    seed: int | None = None,
) -> Prediction:
    """Load a checkpoint and run both decoders."""
    rnn = load_model(checkpoint)
    return rnn.predict(max_chars=max_chars, temperature=temperature, generator=_generator(seed))


def _generator(seed: int | None) -> torch.Generator | None:
    if seed is None:
        return None
    generator = torch.Generator(device="cpu")
    generator.manual_seed(int(seed))
    return generator
