"""Truncated-BPTT window construction over a shared LSTM stack."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field

import torch
from torch import Tensor
from torch.nn import functional as F  # noqa: N812

from .errors import ExecutionError, GraphConstructionError
from .models import LSTMStack, ModelParameters
from .state import RecurrentState

LN2 = math.log(2.0)


@dataclass
class StepOutput:
    state: RecurrentState
    logits: Tensor
    probs: Tensor


@dataclass
class WindowResult:
    """Outputs of one unrolled window; `cost`/`perplexity` are None when unscored."""

    outputs: list[StepOutput] = field(default_factory=list)
    cost: Tensor | None = None
    perplexity: Tensor | None = None

    @property
    def final_state(self) -> RecurrentState:
        return self.outputs[-1].state

    @property
    def last_probs(self) -> Tensor:
        return self.outputs[-1].probs


def describe_graph(tensor: Tensor, depth: int = 3, width: int = 10) -> str:
    """Render the autograd functions feeding `tensor`, breadth first."""
    fn = tensor.grad_fn
    if fn is None:
        kind = "leaf parameter" if tensor.requires_grad else "constant"
        return f"{kind} shape={tuple(tensor.shape)}"
    lines: list[str] = []
    queue: deque[tuple[object, int]] = deque([(fn, 0)])
    seen: set[int] = set()
    while queue:
        node, level = queue.popleft()
        if id(node) in seen:
            continue
        seen.add(id(node))
        lines.append("  " * level + type(node).__name__)
        if level >= depth:
            continue
        children = [child for child, _ in getattr(node, "next_functions", ()) if child is not None]
        for child in children[:width]:
            queue.append((child, level + 1))
        if len(children) > width:
            lines.append("  " * (level + 1) + f"... {len(children) - width} more")
    return "\n".join(lines)


def _scalar(tensor: Tensor | None, node: str) -> float:
    if tensor is None or tensor.numel() != 1:
        shape = None if tensor is None else tuple(tensor.shape)
        raise ExecutionError(f"{node} is not a scalar (shape={shape})", node=node)
    value = float(tensor.detach().reshape(()).item())
    if not math.isfinite(value):
        raise ExecutionError(
            f"{node} is non-finite",
            node=node,
            value=value,
            trace=describe_graph(tensor),
        )
    return value


class WindowPlan:
    """Execution plan for `steps - 1` timesteps over one parameter store.

    The plan owns the one-hot input and target buffers for every timestep.
    Callers fill them with `load`, call `run` with the carry state, and call
    `reset` before the next cycle. The parameters are referenced, never
    copied, so every timestep of a run sees the same weights.
    """

    def __init__(self, params: ModelParameters, steps: int) -> None:
        if steps < 2:
            raise GraphConstructionError(
                f"Window length must be >= 2 (got {steps}); it yields steps-1 training pairs"
            )
        self.params = params
        self.stack = LSTMStack(params)
        self.steps = steps
        device = params.embedding.device
        dtype = params.embedding.dtype
        self.inputs = [
            torch.zeros(params.input_size, dtype=dtype, device=device) for _ in range(steps - 1)
        ]
        self.targets = [
            torch.zeros(params.output_size, dtype=dtype, device=device) for _ in range(steps - 1)
        ]

    @property
    def length(self) -> int:
        """Number of timesteps per run."""
        return self.steps - 1

    def load(self, t: int, source: int | None, target: int | None = None) -> None:
        """Set the one-hot buffers for timestep `t`; `None` leaves a zero vector."""
        self.inputs[t].zero_()
        if source is not None:
            self.inputs[t][source] = 1.0
        self.targets[t].zero_()
        if target is not None:
            self.targets[t][target] = 1.0

    def reset(self) -> None:
        for buf in (*self.inputs, *self.targets):
            buf.zero_()

    def run(self, carry: RecurrentState, *, score: bool = True) -> WindowResult:
        """Unroll the window from `carry`; accumulates cost/perplexity when `score`."""
        result = WindowResult()
        prev = carry
        cost: Tensor | None = None
        perplexity: Tensor | None = None
        node = "carry"
        last_node: Tensor | None = None
        try:
            for t in range(self.length):
                node = f"step{t}/embedding"
                x = self.stack.embed(self.inputs[t])
                last_node = x
                node = f"step{t}/stack"
                state, top_hidden = self.stack.step(x, prev)
                last_node = top_hidden
                node = f"step{t}/decoder"
                logits = self.stack.project(top_hidden)
                last_node = logits
                probs = F.softmax(logits, dim=-1)
                result.outputs.append(StepOutput(state=state, logits=logits, probs=probs))
                if score:
                    node = f"step{t}/loss"
                    log_probs = F.log_softmax(logits, dim=-1)
                    loss = -(log_probs @ self.targets[t])
                    perp = loss / LN2
                    cost = loss if cost is None else cost + loss
                    perplexity = perp if perplexity is None else perplexity + perp
                    last_node = cost
                prev = state
        except GraphConstructionError:
            raise
        except RuntimeError as exc:
            trace = describe_graph(last_node) if last_node is not None else None
            raise ExecutionError(
                f"Forward evaluation failed at {node}: {exc}", node=node, trace=trace
            ) from exc
        result.cost = cost
        result.perplexity = perplexity
        return result

    @staticmethod
    def read_scalars(result: WindowResult) -> tuple[float, float]:
        """Return `(cost, perplexity_sum)` as floats; raises ExecutionError if unusable."""
        return _scalar(result.cost, "cost"), _scalar(result.perplexity, "perplexity")
