import pytest
import torch

from char_rnn.dsl import RunSpec
from char_rnn.models import ModelParameters
from char_rnn.rnn import CharRNN
from char_rnn.vocab import Vocabulary


@pytest.fixture()
def abc_vocab() -> Vocabulary:
    return Vocabulary("abc")


@pytest.fixture()
def tiny_params(abc_vocab: Vocabulary) -> ModelParameters:
    torch.manual_seed(0)
    return ModelParameters(
        input_size=len(abc_vocab),
        embedding_size=5,
        output_size=len(abc_vocab),
        hidden_sizes=[4, 4, 4],
        init_std=0.1,
    )


@pytest.fixture()
def tiny_rnn(tiny_params: ModelParameters, abc_vocab: Vocabulary) -> CharRNN:
    return CharRNN(tiny_params, abc_vocab, steps=3)


@pytest.fixture()
def tiny_spec() -> RunSpec:
    return RunSpec(
        model={"name": "abc-tiny", "embedding_size": 5, "hidden_sizes": [4, 4, 4]},
        train={
            "steps": 3,
            "iterations": 2,
            "epochs": 2,
            "lr": 0.05,
            "clip": 5.0,
            "seed": 0,
            "optimizer": {"name": "adam"},
        },
        data={"text": "abc\nabcabc\n"},
        generate={"max_chars": 12, "temperature": 0.8, "seed": 0},
    )
