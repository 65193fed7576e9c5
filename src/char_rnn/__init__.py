"""
char_rnn
========

Character-level LSTM language models trained with truncated backpropagation
through time, plus sampled and greedy text generation.
"""

from importlib.metadata import PackageNotFoundError, version


def get_version() -> str:
    """Return the installed package version or '0.0.0' when unavailable."""
    try:
        return version("char_rnn")
    except PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
