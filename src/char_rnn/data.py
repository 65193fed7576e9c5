"""Corpus loading: text into independent END-terminated sequences."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .dsl import DataConfig
from .vocab import Vocabulary


@dataclass
class Corpus:
    sequences: list[str]
    vocabulary: Vocabulary

    @classmethod
    def from_config(cls, cfg: DataConfig, *, root: Path | None = None) -> Corpus:
        """Read `cfg.text` or `cfg.path` (relative paths resolve against `root`)."""
        if cfg.text is not None:
            raw = cfg.text
        else:
            path = Path(str(cfg.path))
            if root is not None and not path.is_absolute():
                path = root / path
            raw = path.read_text(encoding="utf-8")
        return cls.from_text(raw, end=cfg.end_symbol, split_lines=cfg.split_lines)

    @classmethod
    def from_text(cls, raw: str, *, end: str, split_lines: bool = True) -> Corpus:
        if end in raw:
            raise ValueError(f"Corpus text contains the reserved END symbol {end!r}")
        if split_lines:
            chunks = [line for line in raw.splitlines() if line.strip()]
        else:
            chunks = [raw] if raw else []
        if not chunks:
            raise ValueError("Corpus is empty")
        vocabulary = Vocabulary.from_text(chunks, end=end)
        return cls(sequences=[chunk + end for chunk in chunks], vocabulary=vocabulary)

    @property
    def n_symbols(self) -> int:
        return sum(len(seq) for seq in self.sequences)
