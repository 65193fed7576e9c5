"""Symbol <-> index mapping with a reserved END symbol."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

DEFAULT_END = "\x03"


class Vocabulary:
    """Read-only bidirectional lookup between symbols and dense indices.

    The END symbol is always present and always the last index.
    """

    def __init__(self, symbols: Iterable[str], end: str = DEFAULT_END) -> None:
        ordered: list[str] = []
        seen: set[str] = set()
        for symbol in symbols:
            if symbol == end or symbol in seen:
                continue
            seen.add(symbol)
            ordered.append(symbol)
        ordered.append(end)
        self.end = end
        self._symbols = tuple(ordered)
        self._index = {symbol: idx for idx, symbol in enumerate(self._symbols)}

    @classmethod
    def from_text(cls, texts: Iterable[str], end: str = DEFAULT_END) -> Vocabulary:
        chars: set[str] = set()
        for text in texts:
            chars.update(text)
        return cls(sorted(chars), end=end)

    @property
    def symbols(self) -> tuple[str, ...]:
        return self._symbols

    @property
    def end_index(self) -> int:
        return self._index[self.end]

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._index

    def index(self, symbol: str) -> int:
        try:
            return self._index[symbol]
        except KeyError:
            raise ValueError(f"Symbol {symbol!r} is not in the vocabulary") from None

    def symbol(self, index: int) -> str:
        if not 0 <= index < len(self._symbols):
            raise ValueError(f"Index {index} outside vocabulary of size {len(self)}")
        return self._symbols[index]

    def encode(self, sequence: Sequence[str], *, append_end: bool = False) -> list[int]:
        ids = [self.index(symbol) for symbol in sequence]
        if append_end:
            ids.append(self.end_index)
        return ids

    def decode(self, ids: Iterable[int]) -> str:
        return "".join(self.symbol(idx) for idx in ids)

    def __repr__(self) -> str:
        return f"Vocabulary(size={len(self)}, end={self.end!r})"
