from pathlib import Path

import pytest

from char_rnn.data import Corpus
from char_rnn.dsl import DataConfig
from char_rnn.vocab import Vocabulary


def test_vocabulary_lookup_and_end_symbol() -> None:
    vocab = Vocabulary("abca", end="$")
    assert vocab.symbols == ("a", "b", "c", "$")
    assert len(vocab) == 4
    assert vocab.end_index == 3
    assert vocab.index("c") == 2
    assert vocab.symbol(1) == "b"
    assert vocab.encode("cab", append_end=True) == [2, 0, 1, 3]
    assert vocab.decode([0, 1, 2]) == "abc"
    assert "$" in vocab
    with pytest.raises(ValueError):
        vocab.index("z")
    with pytest.raises(ValueError):
        vocab.symbol(4)


def test_vocabulary_from_text_is_sorted() -> None:
    vocab = Vocabulary.from_text(["cab", "ba d"])
    assert vocab.symbols[:-1] == (" ", "a", "b", "c", "d")
    assert vocab.symbols[-1] == vocab.end


def test_corpus_splits_lines_and_terminates_sequences() -> None:
    corpus = Corpus.from_text("ab\n\nba\n", end="$")
    assert corpus.sequences == ["ab$", "ba$"]
    assert corpus.vocabulary.symbols == ("a", "b", "$")
    assert corpus.n_symbols == 6

    whole = Corpus.from_text("ab\nba", end="$", split_lines=False)
    assert whole.sequences == ["ab\nba$"]
    assert "\n" in whole.vocabulary


def test_corpus_rejects_reserved_end_and_empty_text() -> None:
    with pytest.raises(ValueError, match="reserved END"):
        Corpus.from_text("a$b", end="$")
    with pytest.raises(ValueError, match="empty"):
        Corpus.from_text("\n\n", end="$")


def test_corpus_reads_paths_relative_to_root(tmp_path: Path) -> None:
    (tmp_path / "corpus.txt").write_text("hello\nworld\n", encoding="utf-8")
    corpus = Corpus.from_config(DataConfig(path="corpus.txt"), root=tmp_path)
    assert [seq[:-1] for seq in corpus.sequences] == ["hello", "world"]
    assert corpus.vocabulary.end == corpus.sequences[0][-1]
