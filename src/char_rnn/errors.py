"""Failure kinds raised while wiring, running, or updating a model."""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal["graph", "execution", "optimizer"]


class CharRNNError(RuntimeError):
    """Base class; `kind` tells callers which stage failed."""

    kind: ErrorKind = "execution"


class GraphConstructionError(CharRNNError):
    """Shapes or configuration that cannot be wired together."""

    kind: ErrorKind = "graph"


class ExecutionError(CharRNNError):
    """Forward evaluation failed or produced an unusable value.

    `node` names the implicated computation (e.g. ``step2/stack`` or ``cost``),
    `value` carries its scalar value when one could be read, and `trace` is a
    bounded-depth rendering of the autograd graph feeding it.
    """

    kind: ErrorKind = "execution"

    def __init__(
        self,
        message: str,
        *,
        node: str | None = None,
        value: float | None = None,
        trace: str | None = None,
    ) -> None:
        super().__init__(message)
        self.node = node
        self.value = value
        self.trace = trace

    def __str__(self) -> str:
        base = super().__str__()
        if self.node is None:
            return base
        return f"{base} (node={self.node}, value={self.value})"


class OptimizerError(CharRNNError):
    """The optimizer step failed or left parameters non-finite."""

    kind: ErrorKind = "optimizer"
