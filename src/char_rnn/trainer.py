"""Truncated-BPTT training loop and full configured training runs."""

from __future__ import annotations

import math
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

import torch
from rich.console import Console
from rich.markup import escape
from torch import Tensor, nn
from torch.nn.utils import clip_grad_norm_
from torch.optim import Optimizer

from .data import Corpus
from .dsl import ModelConfig, RunSpec
from .errors import ExecutionError, GraphConstructionError, OptimizerError
from .models import ModelParameters, count_parameters
from .optimizers import build_optimizer
from .unroll import WindowResult, describe_graph
from .vocab import Vocabulary

if TYPE_CHECKING:
    from .rnn import CharRNN

console = Console()


@dataclass
class LearnResult:
    """Per-window cost and perplexity histories of one `learn` call."""

    costs: list[float] = field(default_factory=list)
    perplexities: list[float] = field(default_factory=list)
    skipped: int = 0

    @property
    def windows(self) -> int:
        return len(self.costs)


def learn_sequence(
    rnn: CharRNN,
    sequence: Sequence[str],
    iterations: int,
    optimizer: Optimizer,
    *,
    clip: float | None = None,
    skip_failed_windows: bool = False,
) -> LearnResult:
    """Slide the BPTT window over `sequence` `iterations` times, updating once per window.

    Every pass starts from a zeroed carry; within a pass the carry of one
    window seeds the next. Sequences shorter than the window are a no-op.
    """
    if iterations < 1:
        raise ValueError("iterations must be >= 1")
    ids = rnn.vocabulary.encode(sequence)
    n = len(ids)
    plan = rnn.window
    result = LearnResult()
    if n < plan.steps:
        console.print(
            f"[yellow]Warning:[/] sequence of {n} symbols is shorter than the "
            f"window ({plan.steps}); nothing to learn."
        )
        return result
    params = rnn.learnables()
    names = [name for name, _ in rnn.params.named_parameters()]
    for _ in range(iterations):
        rnn.reset()
        for offset in range(n - plan.steps + 1):
            for t in range(plan.length):
                plan.load(t, ids[offset + t], ids[offset + t + 1])
            optimizer.zero_grad()
            try:
                window = plan.run(rnn.carry.state)
                cost, perplexity_sum = plan.read_scalars(window)
                _backward(window)
            except ExecutionError as exc:
                console.print(f"[red]Window at offset {offset} failed:[/] {escape(str(exc))}")
                if exc.trace:
                    console.print(escape(exc.trace))
                if not skip_failed_windows:
                    raise
                result.skipped += 1
                plan.reset()
                continue
            if clip is not None:
                clip_grad_norm_(params, clip)
            _optimizer_step(optimizer, rnn.params, names)
            result.costs.append(cost)
            result.perplexities.append(2.0 ** (perplexity_sum / (n - 1)))
            rnn.feedback(window)
            plan.reset()
    return result


def _backward(window: WindowResult) -> None:
    cost = cast(Tensor, window.cost)
    try:
        cost.backward()
    except RuntimeError as exc:
        raise ExecutionError(
            f"Gradient evaluation failed: {exc}",
            node="cost",
            value=float(cost.detach().item()),
            trace=describe_graph(cost),
        ) from exc


def _optimizer_step(optimizer: Optimizer, params: nn.Module, names: list[str]) -> None:
    try:
        optimizer.step()
    except (RuntimeError, ValueError) as exc:
        raise OptimizerError(f"Optimizer step failed: {exc}") from exc
    with torch.no_grad():
        for name, param in zip(names, params.parameters(), strict=True):
            if not bool(torch.isfinite(param).all()):
                raise OptimizerError(f"Parameter {name} is non-finite after the update")


def save_checkpoint(
    path: Path, params: ModelParameters, vocabulary: Vocabulary, model_cfg: ModelConfig
) -> Path:
    """Write parameters, vocabulary and topology to `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    state = {key: value.detach().to(device="cpu") for key, value in params.state_dict().items()}
    torch.save(
        {
            "state_dict": state,
            "symbols": list(vocabulary.symbols),
            "end": vocabulary.end,
            "model": model_cfg.model_dump(mode="json"),
        },
        path,
    )
    return path


def load_checkpoint(
    path: Path, device: str | torch.device = "cpu"
) -> tuple[ModelParameters, Vocabulary, ModelConfig]:
    """Rebuild parameters and vocabulary from a checkpoint written by `save_checkpoint`."""
    try:
        payload: Any = torch.load(  # nosec B614 - checkpoints produced locally
            path,
            map_location="cpu",
            weights_only=True,
        )
    except TypeError:
        payload = torch.load(  # nosec B614 - checkpoints produced locally
            path,
            map_location="cpu",
        )
    if not isinstance(payload, dict) or "state_dict" not in payload:
        raise ValueError(f"{path} is not a char_rnn checkpoint")
    model_cfg = ModelConfig(**payload["model"])
    vocabulary = Vocabulary(payload["symbols"], end=payload["end"])
    params = ModelParameters.from_config(model_cfg, len(vocabulary))
    try:
        params.load_state_dict(payload["state_dict"], strict=True)
    except RuntimeError as exc:
        msg = f"Checkpoint {path} does not fit its topology: {exc}"
        raise GraphConstructionError(msg) from exc
    params.check_shapes()
    return params.to(device), vocabulary, model_cfg


@dataclass
class EpochStats:
    epoch: int
    windows: int
    skipped: int
    mean_cost: float
    mean_perplexity: float


@dataclass
class TrainingReport:
    epochs: list[EpochStats]
    checkpoint: Path | None
    duration: float
    params: int

    def metrics(self) -> dict[str, float]:
        last = self.epochs[-1] if self.epochs else None
        windows = sum(stats.windows for stats in self.epochs)
        return {
            "cost": last.mean_cost if last else float("nan"),
            "perplexity": last.mean_perplexity if last else float("nan"),
            "windows": float(windows),
            "skipped": float(sum(stats.skipped for stats in self.epochs)),
            "windows_per_sec": windows / max(self.duration, 1e-6),
            "params": float(self.params),
        }


class CharRNNTrainer:
    """Trains a fresh (or resumed) model on a corpus as described by a RunSpec."""

    def __init__(
        self,
        checkpoint_dir: Path = Path("runs/checkpoints"),
        device: str | None = None,
    ) -> None:
        self.checkpoint_dir = checkpoint_dir
        if device:
            self.device = torch.device(device)
        elif torch.backends.cuda.is_built() and torch.cuda.is_available():
            self.device = torch.device("cuda")
        else:
            self.device = torch.device("cpu")

    def build(self, spec: RunSpec, vocabulary: Vocabulary) -> CharRNN:
        from .rnn import CharRNN

        torch.manual_seed(int(spec.train.seed))
        params = ModelParameters.from_config(spec.model, len(vocabulary)).to(self.device)
        return CharRNN(params, vocabulary, steps=spec.train.steps)

    def train(
        self,
        spec: RunSpec,
        corpus: Corpus,
        *,
        init_checkpoint: Path | None = None,
        checkpoint_path: Path | None = None,
    ) -> tuple[TrainingReport, CharRNN]:
        rnn = self.build(spec, corpus.vocabulary)
        if init_checkpoint is not None:
            self._load_into(rnn, init_checkpoint)
        optimizer = build_optimizer(rnn.learnables(), spec.train)
        console.print(
            f"[cyan]Training[/] {escape(str(spec.summary()))} on {len(corpus.sequences)} "
            f"sequences ({corpus.n_symbols} symbols)"
        )
        start_time = time.perf_counter()
        epochs: list[EpochStats] = []
        for epoch in range(spec.train.epochs):
            costs: list[float] = []
            perplexities: list[float] = []
            skipped = 0
            for sequence in corpus.sequences:
                learned = rnn.learn(
                    sequence,
                    spec.train.iterations,
                    optimizer,
                    clip=spec.train.clip,
                    skip_failed_windows=spec.train.skip_failed_windows,
                )
                costs.extend(learned.costs)
                perplexities.extend(learned.perplexities)
                skipped += learned.skipped
            stats = EpochStats(
                epoch=epoch,
                windows=len(costs),
                skipped=skipped,
                mean_cost=_mean(costs),
                mean_perplexity=_mean(perplexities),
            )
            epochs.append(stats)
            console.print(
                f"[cyan]Epoch {epoch}[/] windows={stats.windows} "
                f"cost={stats.mean_cost:.4f} ppl={stats.mean_perplexity:.4f}"
            )
        duration = max(time.perf_counter() - start_time, 1e-6)
        path = checkpoint_path or self.checkpoint_dir / f"{spec.model.name}.pt"
        checkpoint = save_checkpoint(path, rnn.params, rnn.vocabulary, spec.model)
        report = TrainingReport(
            epochs=epochs,
            checkpoint=checkpoint,
            duration=duration,
            params=count_parameters(rnn.params),
        )
        return report, rnn

    def _load_into(self, rnn: CharRNN, path: Path) -> None:
        params, vocabulary, _ = load_checkpoint(path, self.device)
        if vocabulary.symbols != rnn.vocabulary.symbols:
            raise GraphConstructionError(f"Checkpoint {path} was trained on another vocabulary")
        try:
            with torch.no_grad():
                rnn.params.load_state_dict(params.state_dict(), strict=True)
        except RuntimeError as exc:
            msg = f"Checkpoint {path} does not match the configured model: {exc}"
            raise GraphConstructionError(msg) from exc


def _mean(values: list[float]) -> float:
    if not values:
        return float("nan")
    total = math.fsum(values)
    return total / len(values)
