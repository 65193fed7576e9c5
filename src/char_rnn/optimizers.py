"""Optimizer registry built from the run's train schedule."""

from __future__ import annotations

from collections.abc import Iterable

import torch
from torch.optim import SGD, Adam, AdamW, Optimizer, RMSprop

from .dsl import OptimizerConfig, TrainSchedule


def build_optimizer(params: Iterable[torch.nn.Parameter], schedule: TrainSchedule) -> Optimizer:
    cfg: OptimizerConfig = getattr(schedule, "optimizer", OptimizerConfig())
    name = (cfg.name or "adamw").lower()
    # Optimizer overrides win over the schedule-level values
    lr = float(cfg.lr if cfg.lr is not None else schedule.lr)
    weight_decay = float(
        cfg.weight_decay if cfg.weight_decay is not None else schedule.weight_decay
    )
    params = list(params)
    if name == "adamw":
        betas = cfg.betas if cfg.betas is not None else (0.9, 0.999)
        eps = cfg.eps if cfg.eps is not None else 1e-8
        return AdamW(params, lr=lr, betas=betas, eps=eps, weight_decay=weight_decay)
    if name == "adam":
        betas = cfg.betas if cfg.betas is not None else (0.9, 0.999)
        eps = cfg.eps if cfg.eps is not None else 1e-8
        return Adam(params, lr=lr, betas=betas, eps=eps, weight_decay=weight_decay)
    if name == "rmsprop":
        eps = cfg.eps if cfg.eps is not None else 1e-8
        momentum = cfg.momentum if cfg.momentum is not None else 0.0
        return RMSprop(params, lr=lr, eps=eps, momentum=momentum, weight_decay=weight_decay)
    if name == "sgd":
        momentum = cfg.momentum if cfg.momentum is not None else 0.0
        return SGD(params, lr=lr, momentum=momentum, weight_decay=weight_decay)
    raise ValueError(f"Unsupported optimizer: {name}")
