import pytest
import torch

from char_rnn.decoding import apply_temperature, generate, max_sample, sample
from char_rnn.errors import ExecutionError
from char_rnn.rnn import CharRNN


def _force_symbol(rnn: CharRNN, index: int) -> None:
    """Make every step put (almost) all mass on `index`, whatever the input."""
    with torch.no_grad():
        rnn.params.whd.zero_()
        rnn.params.bias_d.fill_(-1e4)
        rnn.params.bias_d[index] = 0.0


def test_temperature_sharpens_and_flattens() -> None:
    probs = torch.tensor([0.1, 0.2, 0.7])
    assert torch.allclose(apply_temperature(probs, 1.0), probs, atol=1e-6)
    assert apply_temperature(probs, 0.5).max() > probs.max()
    assert apply_temperature(probs, 2.0).max() < probs.max()
    assert apply_temperature(probs, 0.5).sum().item() == pytest.approx(1.0, rel=1e-5)
    with pytest.raises(ValueError):
        apply_temperature(probs, 0.0)


def test_selection_policies() -> None:
    probs = torch.tensor([0.05, 0.9, 0.05])
    assert max_sample(probs) == 1
    one_hot = torch.tensor([0.0, 0.0, 1.0])
    assert sample(one_hot) == 2
    draws_a = [sample(probs, generator=torch.Generator().manual_seed(7)) for _ in range(3)]
    draws_b = [sample(probs, generator=torch.Generator().manual_seed(7)) for _ in range(3)]
    assert draws_a == draws_b


def test_generation_stops_immediately_on_end(tiny_rnn: CharRNN) -> None:
    _force_symbol(tiny_rnn, tiny_rnn.vocabulary.end_index)
    assert generate(tiny_rnn, "argmax", max_chars=20) == ""
    generator = torch.Generator().manual_seed(0)
    assert generate(tiny_rnn, "sample", max_chars=20, generator=generator) == ""
    prediction = tiny_rnn.predict(max_chars=20)
    assert prediction.sampled == ""
    assert prediction.argmax == ""


@pytest.mark.parametrize("max_chars", [1, 5, 17])
def test_generation_never_exceeds_the_cap(tiny_rnn: CharRNN, max_chars: int) -> None:
    _force_symbol(tiny_rnn, tiny_rnn.vocabulary.index("a"))
    assert generate(tiny_rnn, "argmax", max_chars=max_chars) == "a" * max_chars
    sampled = generate(tiny_rnn, "sample", max_chars=max_chars, temperature=3.0)
    assert len(sampled) <= max_chars
    assert set(sampled) <= {"a", "b", "c"}


def test_first_step_uses_a_zero_input(tiny_rnn: CharRNN) -> None:
    tiny_rnn.reset()
    tiny_rnn.single.load(0, 2)
    tiny_rnn.advance(None)
    assert not bool(tiny_rnn.single.inputs[0].any())


def test_each_policy_starts_from_a_fresh_carry(tiny_rnn: CharRNN) -> None:
    first = tiny_rnn.predict(max_chars=15, generator=torch.Generator().manual_seed(3))
    second = tiny_rnn.predict(max_chars=15, generator=torch.Generator().manual_seed(3))
    assert first == second
    assert len(first.sampled) <= 15
    assert len(first.argmax) <= 15


def test_non_finite_distribution_aborts_generation(tiny_rnn: CharRNN) -> None:
    with torch.no_grad():
        tiny_rnn.params.bias_d[0] = float("nan")
    for policy in ("argmax", "sample"):
        with pytest.raises(ExecutionError) as info:
            generate(tiny_rnn, policy, max_chars=5)
        assert info.value.node == "step0/decoder"
        assert info.value.trace
