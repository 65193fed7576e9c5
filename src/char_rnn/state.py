"""Recurrent state containers and the carry bridge between windows."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import torch
from torch import Tensor

from .errors import GraphConstructionError


@dataclass
class RecurrentState:
    """Per-layer hidden and cell vectors."""

    hiddens: list[Tensor]
    cells: list[Tensor]

    @classmethod
    def zeros(
        cls,
        hidden_sizes: Sequence[int],
        *,
        dtype: torch.dtype = torch.float32,
        device: torch.device | str | None = None,
    ) -> RecurrentState:
        return cls(
            hiddens=[torch.zeros(size, dtype=dtype, device=device) for size in hidden_sizes],
            cells=[torch.zeros(size, dtype=dtype, device=device) for size in hidden_sizes],
        )

    @property
    def n_layers(self) -> int:
        return len(self.hiddens)

    @property
    def hidden_sizes(self) -> list[int]:
        return [int(h.shape[0]) for h in self.hiddens]

    def check_compatible(self, hidden_sizes: Sequence[int]) -> None:
        """Raise when this state cannot feed a stack with `hidden_sizes`."""
        if self.n_layers != len(hidden_sizes) or len(self.cells) != len(hidden_sizes):
            raise GraphConstructionError(
                f"State has {self.n_layers} hidden / {len(self.cells)} cell vectors, "
                f"stack has {len(hidden_sizes)} layers"
            )
        for depth, (hidden, cell, size) in enumerate(
            zip(self.hiddens, self.cells, hidden_sizes, strict=True)
        ):
            if hidden.shape != (size,) or cell.shape != (size,):
                raise GraphConstructionError(
                    f"Layer {depth} state shapes {tuple(hidden.shape)}/{tuple(cell.shape)} "
                    f"do not match hidden size {size}"
                )

    def detached_copy(self) -> RecurrentState:
        return RecurrentState(
            hiddens=[h.detach().clone() for h in self.hiddens],
            cells=[c.detach().clone() for c in self.cells],
        )


class CarryState:
    """Initial state for the next window or generation step.

    `feedback` stores value copies of a computed state, so tensors recorded in
    a previous autograd graph are never written to. `reset` starts a new
    independent sequence.
    """

    def __init__(
        self,
        hidden_sizes: Sequence[int],
        *,
        dtype: torch.dtype = torch.float32,
        device: torch.device | str | None = None,
    ) -> None:
        self.hidden_sizes = list(hidden_sizes)
        self.dtype = dtype
        self.device = device
        self._state = RecurrentState.zeros(self.hidden_sizes, dtype=dtype, device=device)

    @property
    def state(self) -> RecurrentState:
        return self._state

    def reset(self) -> None:
        self._state = RecurrentState.zeros(self.hidden_sizes, dtype=self.dtype, device=self.device)

    def feedback(self, computed: RecurrentState) -> None:
        computed.check_compatible(self.hidden_sizes)
        self._state = computed.detached_copy()

    def is_zero(self) -> bool:
        with torch.no_grad():
            return all(
                not bool(t.any()) for t in (*self._state.hiddens, *self._state.cells)
            )
