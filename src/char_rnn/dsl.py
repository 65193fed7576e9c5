"""Typed run configuration for training and sampling character models."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import ujson as json
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .vocab import DEFAULT_END


class ModelConfig(BaseModel):
    """Stacked LSTM topology and initialization policy."""

    name: str = "char-rnn"
    embedding_size: int = Field(gt=0)
    hidden_sizes: list[int]
    init_std: float = Field(default=0.08, gt=0.0)

    @field_validator("hidden_sizes")
    @classmethod
    def non_empty_positive(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("Model requires at least one LSTM layer.")
        if any(size <= 0 for size in value):
            raise ValueError("hidden_sizes must all be > 0")
        return value

    @property
    def n_layers(self) -> int:
        return len(self.hidden_sizes)


class OptimizerConfig(BaseModel):
    """Optimizer selection and hyperparameters."""

    name: Literal["adamw", "adam", "rmsprop", "sgd"] = "adamw"
    lr: float | None = Field(default=None, gt=0.0)
    betas: tuple[float, float] | None = None
    eps: float | None = Field(default=None, gt=0.0)
    weight_decay: float | None = Field(default=None, ge=0.0)
    momentum: float | None = Field(default=None, ge=0.0)


class TrainSchedule(BaseModel):
    """Truncated-BPTT window and update schedule."""

    steps: int = Field(default=25, ge=2, description="Window length; steps-1 symbol pairs.")
    iterations: int = Field(default=1, ge=1, description="Passes over each sequence.")
    epochs: int = Field(default=1, ge=1)
    lr: float = Field(default=1e-2, gt=0)
    clip: float | None = Field(default=5.0, gt=0.0)
    weight_decay: float = Field(default=0.0, ge=0.0)
    seed: int = 0
    skip_failed_windows: bool = False
    init_checkpoint: str | None = None
    optimizer: OptimizerConfig = Field(default_factory=lambda: OptimizerConfig())


class DataConfig(BaseModel):
    """Where the training text comes from and how it is split."""

    text: str | None = None
    path: str | None = None
    split_lines: bool = True
    end_symbol: str = Field(default=DEFAULT_END, min_length=1, max_length=1)

    @model_validator(mode="after")
    def exactly_one_source(self) -> DataConfig:
        if (self.text is None) == (self.path is None):
            raise ValueError("data requires exactly one of `text` or `path`")
        return self


class GenerateConfig(BaseModel):
    """Decoding knobs shared by sampled and greedy generation."""

    max_chars: int = Field(default=100, ge=1)
    temperature: float = Field(default=1.0, gt=0.0)
    seed: int | None = None


class RunSpec(BaseModel):
    """Top-level config entity."""

    model: ModelConfig
    train: TrainSchedule = Field(default_factory=TrainSchedule)
    data: DataConfig
    generate: GenerateConfig = Field(default_factory=GenerateConfig)

    def summary(self) -> dict[str, Any]:
        """Return a JSON-friendly summary for console output."""
        return {
            "name": self.model.name,
            "layers": self.model.n_layers,
            "hidden_sizes": list(self.model.hidden_sizes),
            "embedding_size": self.model.embedding_size,
            "steps": self.train.steps,
            "optimizer": self.train.optimizer.name,
        }


def load_run_spec(path: str | Path) -> RunSpec:
    """Load a run config from YAML or JSON."""
    path = Path(path)
    data: Any
    text = path.read_text()
    if path.suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    try:
        return RunSpec(**data)
    except ValidationError as exc:
        raise ValueError(f"Invalid config {path}") from exc


def save_run_spec(spec: RunSpec, path: str | Path) -> None:
    """Persist a run config as YAML or JSON based on file suffix."""
    path = Path(path)
    if path.suffix in {".yaml", ".yml"}:
        path.write_text(yaml.safe_dump(spec.model_dump(mode="json"), sort_keys=False))
    else:
        path.write_text(json.dumps(spec.model_dump(mode="json"), indent=2))
