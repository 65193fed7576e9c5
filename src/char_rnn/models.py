"""LSTM parameters, cells, and the layer stack used by every timestep."""

from __future__ import annotations

from typing import NamedTuple

import torch
from torch import Tensor, nn

from .dsl import ModelConfig
from .errors import GraphConstructionError
from .state import RecurrentState

GATE_TENSORS = (
    "wix",
    "wih",
    "bias_i",
    "wfx",
    "wfh",
    "bias_f",
    "wox",
    "woh",
    "bias_o",
    "wcx",
    "wch",
    "bias_c",
)


class LayerSpec(NamedTuple):
    prev_size: int
    hidden_size: int


class Gates(NamedTuple):
    input: Tensor
    forget: Tensor
    output: Tensor
    write: Tensor


class GateWeights(nn.Module):
    """Input, forget, output and cell-write weights for one layer."""

    def __init__(self, prev_size: int, hidden_size: int) -> None:
        super().__init__()
        self.spec = LayerSpec(prev_size, hidden_size)

        self.wix = nn.Parameter(torch.empty(hidden_size, prev_size))
        self.wih = nn.Parameter(torch.empty(hidden_size, hidden_size))
        self.bias_i = nn.Parameter(torch.zeros(hidden_size))

        self.wfx = nn.Parameter(torch.empty(hidden_size, prev_size))
        self.wfh = nn.Parameter(torch.empty(hidden_size, hidden_size))
        self.bias_f = nn.Parameter(torch.zeros(hidden_size))

        self.wox = nn.Parameter(torch.empty(hidden_size, prev_size))
        self.woh = nn.Parameter(torch.empty(hidden_size, hidden_size))
        self.bias_o = nn.Parameter(torch.zeros(hidden_size))

        self.wcx = nn.Parameter(torch.empty(hidden_size, prev_size))
        self.wch = nn.Parameter(torch.empty(hidden_size, hidden_size))
        self.bias_c = nn.Parameter(torch.zeros(hidden_size))

    def tensors(self) -> list[nn.Parameter]:
        return [getattr(self, name) for name in GATE_TENSORS]

    @torch.no_grad()
    def reset_parameters(self, std: float) -> None:
        for name in GATE_TENSORS:
            param = getattr(self, name)
            if name.startswith("bias"):
                param.zero_()
            else:
                param.normal_(0.0, std)

    def check_shapes(self) -> None:
        prev_size, hidden_size = self.spec
        for name in GATE_TENSORS:
            param = getattr(self, name)
            if name.startswith("bias"):
                expected: tuple[int, ...] = (hidden_size,)
            elif name.endswith("x"):
                expected = (hidden_size, prev_size)
            else:
                expected = (hidden_size, hidden_size)
            if tuple(param.shape) != expected:
                raise GraphConstructionError(
                    f"{name} has shape {tuple(param.shape)}, expected {expected}"
                )


class ModelParameters(nn.Module):
    """Every learnable tensor of the model; the only state the optimizer touches."""

    def __init__(
        self,
        input_size: int,
        embedding_size: int,
        output_size: int,
        hidden_sizes: list[int],
        init_std: float = 0.08,
    ) -> None:
        super().__init__()
        if not hidden_sizes:
            raise GraphConstructionError("Model requires at least one LSTM layer.")
        sizes = [input_size, embedding_size, output_size, *hidden_sizes]
        if any(int(size) <= 0 for size in sizes):
            raise GraphConstructionError(f"All sizes must be positive, got {sizes}")
        self.input_size = int(input_size)
        self.embedding_size = int(embedding_size)
        self.output_size = int(output_size)
        self.hidden_sizes = [int(size) for size in hidden_sizes]
        self.init_std = float(init_std)

        layers = []
        for depth, hidden_size in enumerate(self.hidden_sizes):
            prev_size = self.embedding_size if depth == 0 else self.hidden_sizes[depth - 1]
            layers.append(GateWeights(prev_size, hidden_size))
        self.layers = nn.ModuleList(layers)

        last_hidden = self.hidden_sizes[-1]
        self.whd = nn.Parameter(torch.empty(self.output_size, last_hidden))
        self.bias_d = nn.Parameter(torch.zeros(self.output_size))
        self.embedding = nn.Parameter(torch.empty(self.embedding_size, self.input_size))
        self.reset_parameters()

    @classmethod
    def from_config(cls, cfg: ModelConfig, vocab_size: int) -> ModelParameters:
        return cls(
            input_size=vocab_size,
            embedding_size=cfg.embedding_size,
            output_size=vocab_size,
            hidden_sizes=list(cfg.hidden_sizes),
            init_std=cfg.init_std,
        )

    @property
    def layer_specs(self) -> list[LayerSpec]:
        return [layer.spec for layer in self.gate_weights()]

    def gate_weights(self) -> list[GateWeights]:
        return [layer for layer in self.layers if isinstance(layer, GateWeights)]

    @torch.no_grad()
    def reset_parameters(self) -> None:
        for layer in self.gate_weights():
            layer.reset_parameters(self.init_std)
        self.whd.normal_(0.0, self.init_std)
        self.bias_d.zero_()
        self.embedding.normal_(0.0, self.init_std)

    def learnables(self) -> list[nn.Parameter]:
        params: list[nn.Parameter] = []
        for layer in self.gate_weights():
            params.extend(layer.tensors())
        params.append(self.whd)
        params.append(self.bias_d)
        params.append(self.embedding)
        return params

    def check_shapes(self) -> None:
        """Raise GraphConstructionError when the layers no longer chain."""
        prev = self.embedding_size
        for depth, layer in enumerate(self.gate_weights()):
            if layer.spec.prev_size != prev:
                raise GraphConstructionError(
                    f"Layer {depth} expects input size {layer.spec.prev_size}, "
                    f"previous layer produces {prev}"
                )
            try:
                layer.check_shapes()
            except GraphConstructionError as exc:
                raise GraphConstructionError(f"Layer {depth}: {exc}") from exc
            prev = layer.spec.hidden_size
        expected = {
            "whd": (self.output_size, prev),
            "bias_d": (self.output_size,),
            "embedding": (self.embedding_size, self.input_size),
        }
        for name, shape in expected.items():
            actual = tuple(getattr(self, name).shape)
            if actual != shape:
                raise GraphConstructionError(f"{name} has shape {actual}, expected {shape}")


def count_parameters(model: nn.Module) -> int:
    return sum(p.numel() for p in model.parameters())


class LSTMCell:
    """One layer's timestep update; holds a reference to shared weights."""

    def __init__(self, weights: GateWeights, name: str = "0") -> None:
        self.weights = weights
        self.name = name

    @property
    def prev_size(self) -> int:
        return self.weights.spec.prev_size

    @property
    def hidden_size(self) -> int:
        return self.weights.spec.hidden_size

    def gates(self, x: Tensor, prev_hidden: Tensor) -> Gates:
        if x.shape != (self.prev_size,):
            raise GraphConstructionError(
                f"Layer {self.name} expects input of size {self.prev_size}, "
                f"got shape {tuple(x.shape)}"
            )
        if prev_hidden.shape != (self.hidden_size,):
            raise GraphConstructionError(
                f"Layer {self.name} expects hidden of size {self.hidden_size}, "
                f"got shape {tuple(prev_hidden.shape)}"
            )
        w = self.weights
        input_gate = torch.sigmoid(w.wix @ x + w.wih @ prev_hidden + w.bias_i)
        forget_gate = torch.sigmoid(w.wfx @ x + w.wfh @ prev_hidden + w.bias_f)
        output_gate = torch.sigmoid(w.wox @ x + w.woh @ prev_hidden + w.bias_o)
        cell_write = torch.tanh(w.wcx @ x + w.wch @ prev_hidden + w.bias_c)
        return Gates(input_gate, forget_gate, output_gate, cell_write)

    def __call__(
        self, x: Tensor, prev_hidden: Tensor, prev_cell: Tensor
    ) -> tuple[Tensor, Tensor]:
        gates = self.gates(x, prev_hidden)
        # prev_cell may feed other timesteps too; never update it in place
        cell = gates.forget * prev_cell + gates.input * gates.write
        hidden = gates.output * torch.tanh(cell)
        return hidden, cell


class LSTMStack:
    """Layers of cells wired to one ModelParameters store."""

    def __init__(self, params: ModelParameters) -> None:
        params.check_shapes()
        self.params = params
        self.cells = [
            LSTMCell(weights, str(depth)) for depth, weights in enumerate(params.gate_weights())
        ]

    @property
    def hidden_sizes(self) -> list[int]:
        return list(self.params.hidden_sizes)

    def embed(self, one_hot: Tensor) -> Tensor:
        return self.params.embedding @ one_hot

    def step(self, x: Tensor, prev: RecurrentState) -> tuple[RecurrentState, Tensor]:
        """Advance every layer by one timestep; returns new state and top hidden."""
        prev.check_compatible(self.hidden_sizes)
        hiddens: list[Tensor] = []
        cells: list[Tensor] = []
        layer_input = x
        for depth, cell_fn in enumerate(self.cells):
            hidden, cell = cell_fn(layer_input, prev.hiddens[depth], prev.cells[depth])
            hiddens.append(hidden)
            cells.append(cell)
            layer_input = hidden
        return RecurrentState(hiddens=hiddens, cells=cells), hiddens[-1]

    def project(self, top_hidden: Tensor) -> Tensor:
        return self.params.whd @ top_hidden + self.params.bias_d
