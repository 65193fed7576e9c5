"""Autoregressive generation with sampled or greedy symbol selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

import torch
from rich.console import Console
from rich.markup import escape
from torch import Tensor

from .errors import ExecutionError

if TYPE_CHECKING:
    from .rnn import CharRNN

Policy = Literal["sample", "argmax"]

console = Console()


@dataclass
class Prediction:
    sampled: str
    argmax: str


def apply_temperature(probs: Tensor, temperature: float = 1.0) -> Tensor:
    """Rescale a distribution as softmax(log(p) / temperature)."""
    if temperature <= 0.0:
        raise ValueError("temperature must be > 0")
    tiny = torch.finfo(probs.dtype).tiny
    logits = torch.log(probs.clamp_min(tiny)) / temperature
    return torch.softmax(logits, dim=-1)


def sample(
    probs: Tensor, temperature: float = 1.0, generator: torch.Generator | None = None
) -> int:
    weights = apply_temperature(probs, temperature)
    if generator is not None:
        weights = weights.to(generator.device)
    return int(torch.multinomial(weights, 1, generator=generator).item())


def max_sample(probs: Tensor) -> int:
    return int(torch.argmax(probs).item())


def generate(
    rnn: CharRNN,
    policy: Policy = "sample",
    *,
    max_chars: int = 100,
    temperature: float = 1.0,
    generator: torch.Generator | None = None,
) -> str:
    """Emit symbols until END or `max_chars` symbols, starting from a reset carry."""
    if max_chars < 0:
        raise ValueError("max_chars must be >= 0")
    vocab = rnn.vocabulary
    rnn.reset()
    emitted: list[int] = []
    while len(emitted) < max_chars:
        previous = emitted[-1] if emitted else None
        try:
            result = rnn.advance(previous)
        except ExecutionError as exc:
            console.print(f"[red]Generation failed ({policy}):[/] {escape(str(exc))}")
            raise
        probs = result.last_probs
        if policy == "argmax":
            chosen = max_sample(probs)
        else:
            chosen = sample(probs, temperature, generator)
        if chosen == vocab.end_index:
            break
        emitted.append(chosen)
        rnn.feedback(result)
        rnn.single.reset()
    rnn.single.reset()
    return vocab.decode(emitted)


def predict(
    rnn: CharRNN,
    *,
    max_chars: int = 100,
    temperature: float = 1.0,
    generator: torch.Generator | None = None,
) -> Prediction:
    """Run the sampled and the greedy decoder, each from a fresh carry."""
    sampled = generate(
        rnn, "sample", max_chars=max_chars, temperature=temperature, generator=generator
    )
    greedy = generate(rnn, "argmax", max_chars=max_chars)
    return Prediction(sampled=sampled, argmax=greedy)
