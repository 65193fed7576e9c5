"""Command-line utilities for the char_rnn package."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import get_version
from .api import generate_from_checkpoint, load_model, train_from_config
from .decoding import Prediction
from .models import count_parameters

app = typer.Typer(help="Character-level LSTM training and sampling")
console = Console()


def _print_prediction(prediction: Prediction) -> None:
    console.print(f"[bold]Sampled:[/] {escape(repr(prediction.sampled))}")
    console.print(f"[bold]ArgMax:[/] {escape(repr(prediction.argmax))}")


@app.command()
def version() -> None:
    """Print the installed package version."""
    typer.echo(get_version())


@app.command()
def train(
    config: Annotated[Path, typer.Argument(..., exists=True, readable=True)],
    out: Annotated[
        Path | None, typer.Option(help="Checkpoint path (default runs/checkpoints/<name>.pt).")
    ] = None,
    seed: Annotated[int | None, typer.Option(help="Override train.seed.")] = None,
    device: Annotated[str | None, typer.Option(help="Torch device (cpu/cuda).")] = None,
) -> None:
    """Train a model from a run config, then sample from it."""
    report, prediction = train_from_config(config, out_path=out, seed=seed, device=device)
    table = Table(title=f"Training ({config})")
    table.add_column("Epoch")
    table.add_column("Windows")
    table.add_column("Skipped")
    table.add_column("Cost")
    table.add_column("Perplexity")
    for stats in report.epochs:
        table.add_row(
            str(stats.epoch),
            str(stats.windows),
            str(stats.skipped),
            f"{stats.mean_cost:.4f}",
            f"{stats.mean_perplexity:.4f}",
        )
    console.print(table)
    metrics = report.metrics()
    console.print(
        f"[bold]Windows:[/] {int(metrics['windows'])} "
        f"(skipped {int(metrics['skipped'])}, {metrics['windows_per_sec']:.1f}/s), "
        f"[bold]Parameters:[/] {int(metrics['params'])}"
    )
    console.print(f"[bold green]Checkpoint written:[/] {report.checkpoint}")
    _print_prediction(prediction)


@app.command()
def generate(
    checkpoint: Annotated[Path, typer.Argument(..., exists=True, readable=True)],
    max_chars: Annotated[int, typer.Option(min=1)] = 100,
    temperature: Annotated[float, typer.Option(min=0.01)] = 1.0,
    seed: Annotated[int | None, typer.Option()] = None,
) -> None:
    """Print a sampled and a greedy continuation from a checkpoint."""
    prediction = generate_from_checkpoint(
        checkpoint, max_chars=max_chars, temperature=temperature, seed=seed
    )
    _print_prediction(prediction)


@app.command()
def inspect(
    checkpoint: Annotated[Path, typer.Argument(..., exists=True, readable=True)],
) -> None:
    """Show layer sizes, vocabulary and parameter count of a checkpoint."""
    rnn = load_model(checkpoint)
    table = Table(title=f"Layers ({checkpoint})")
    table.add_column("Layer")
    table.add_column("Input")
    table.add_column("Hidden")
    for depth, spec in enumerate(rnn.params.layer_specs):
        table.add_row(str(depth), str(spec.prev_size), str(spec.hidden_size))
    console.print(table)
    console.print(f"[bold]Vocabulary:[/] {len(rnn.vocabulary)} symbols")
    console.print(f"[bold]Parameters:[/] {count_parameters(rnn.params)}")


def main() -> None:
    """Entry point for `python -m char_rnn.cli`."""
    app()


if __name__ == "__main__":
    main()
