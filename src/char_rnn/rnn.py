"""Character RNN: one parameter store, its execution plans, and the carry state."""

from __future__ import annotations

from collections.abc import Sequence

import torch
from torch import nn
from torch.optim import Optimizer

from .decoding import Prediction, predict
from .errors import ExecutionError, GraphConstructionError
from .models import ModelParameters
from .state import CarryState
from .trainer import LearnResult, learn_sequence
from .unroll import WindowPlan, WindowResult, describe_graph
from .vocab import Vocabulary


class CharRNN:
    """Ties a ModelParameters store to a vocabulary for training and sampling.

    Two plans share the same parameters: `window` unrolls `steps - 1`
    timesteps for truncated BPTT, `single` evaluates one timestep for
    generation. Both start from `carry`, which only `feedback` and `reset`
    change.
    """

    def __init__(self, params: ModelParameters, vocabulary: Vocabulary, steps: int = 2) -> None:
        if params.input_size != len(vocabulary) or params.output_size != len(vocabulary):
            raise GraphConstructionError(
                f"Model sizes in={params.input_size}/out={params.output_size} "
                f"do not match vocabulary of {len(vocabulary)} symbols"
            )
        self.params = params
        self.vocabulary = vocabulary
        self.window = WindowPlan(params, steps)
        self.single = WindowPlan(params, 2)
        self.carry = CarryState(
            params.hidden_sizes,
            dtype=params.embedding.dtype,
            device=params.embedding.device,
        )

    @property
    def steps(self) -> int:
        return self.window.steps

    def learnables(self) -> list[nn.Parameter]:
        return self.params.learnables()

    def reset(self) -> None:
        self.carry.reset()

    def feedback(self, result: WindowResult) -> None:
        self.carry.feedback(result.final_state)

    def advance(self, previous: int | None) -> WindowResult:
        """Evaluate one generation step after emitting `previous` (None at start)."""
        self.single.load(0, previous)
        with torch.no_grad():
            result = self.single.run(self.carry.state, score=False)
        probs = result.last_probs
        if not bool(torch.isfinite(probs).all()):
            raise ExecutionError(
                "Output distribution is non-finite",
                node="step0/decoder",
                trace=describe_graph(result.outputs[-1].logits),
            )
        return result

    def learn(
        self,
        sequence: Sequence[str],
        iterations: int,
        optimizer: Optimizer,
        *,
        clip: float | None = None,
        skip_failed_windows: bool = False,
    ) -> LearnResult:
        return learn_sequence(
            self,
            sequence,
            iterations,
            optimizer,
            clip=clip,
            skip_failed_windows=skip_failed_windows,
        )

    def predict(
        self,
        max_chars: int = 100,
        temperature: float = 1.0,
        generator: torch.Generator | None = None,
    ) -> Prediction:
        return predict(self, max_chars=max_chars, temperature=temperature, generator=generator)
