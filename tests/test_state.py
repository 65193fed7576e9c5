import pytest
import torch

from char_rnn.errors import GraphConstructionError
from char_rnn.state import CarryState, RecurrentState


def test_reset_yields_zero_vectors_for_every_layer() -> None:
    carry = CarryState([4, 2, 3])
    carry.feedback(
        RecurrentState(
            hiddens=[torch.ones(4), torch.ones(2), torch.ones(3)],
            cells=[torch.full((4,), 2.0), torch.full((2,), 2.0), torch.full((3,), 2.0)],
        )
    )
    assert not carry.is_zero()
    carry.reset()
    assert carry.is_zero()
    for hidden, cell, size in zip(carry.state.hiddens, carry.state.cells, [4, 2, 3], strict=True):
        assert torch.equal(hidden, torch.zeros(size))
        assert torch.equal(cell, torch.zeros(size))


def test_feedback_copies_values_instead_of_aliasing() -> None:
    carry = CarryState([3])
    weight = torch.ones(3, requires_grad=True)
    computed = RecurrentState(hiddens=[weight * 2.0], cells=[weight * 3.0])
    carry.feedback(computed)

    assert carry.state.hiddens[0] is not computed.hiddens[0]
    assert not carry.state.hiddens[0].requires_grad
    assert carry.state.hiddens[0].grad_fn is None
    with torch.no_grad():
        computed.hiddens[0].add_(10.0)
    assert torch.equal(carry.state.hiddens[0], torch.full((3,), 2.0))
    assert torch.equal(carry.state.cells[0], torch.full((3,), 3.0))


def test_feedback_rejects_mismatched_layers() -> None:
    carry = CarryState([3, 3])
    with pytest.raises(GraphConstructionError):
        carry.feedback(RecurrentState.zeros([3]))
    with pytest.raises(GraphConstructionError):
        carry.feedback(RecurrentState.zeros([3, 4]))
