"""
Tests for sampling strategies.
"""

import pytest
import torch

from persona_chat.sampling.sampling import (
    SamplingParams,
    apply_logit_bias,
    apply_repetition_penalty,
    greedy_sampling,
    make_rng,
    sample,
    top_k_sampling,
    top_p_sampling,
)


@pytest.fixture
def logits() -> torch.Tensor:
    return torch.tensor([[1.0, 4.0, 2.0, -1.0, 3.0]])


@pytest.mark.unit
def test_sampling_params_defaults():
    """Test the default sampling parameters."""
    params = SamplingParams()

    assert params.temperature == pytest.approx(0.80)
    assert params.top_k == 40
    assert params.top_p == pytest.approx(0.95)
    assert params.repetition_penalty == pytest.approx(1.30)
    assert params.repetition_penalty_last_n == 64
    assert params.logit_bias is None


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs",
    [
        {"temperature": -0.1},
        {"top_p": 0.0},
        {"top_p": 1.5},
        {"top_k": -1},
        {"repetition_penalty": 0.0},
        {"repetition_penalty_last_n": -1},
    ],
)
def test_sampling_params_validation(kwargs):
    with pytest.raises(ValueError):
        SamplingParams(**kwargs)


@pytest.mark.unit
def test_greedy_sampling(logits):
    assert greedy_sampling(logits).tolist() == [1]


@pytest.mark.unit
def test_top_k_sampling_masks_the_rest(logits):
    """Test that only the k largest logits survive."""
    masked = top_k_sampling(logits, 2)

    assert torch.isfinite(masked).sum().item() == 2
    assert masked[0, 1] == 4.0
    assert masked[0, 4] == 3.0


@pytest.mark.unit
def test_top_k_larger_than_vocab_is_noop(logits):
    assert torch.equal(top_k_sampling(logits, 100), logits)


@pytest.mark.unit
def test_top_p_keeps_top_token(logits):
    """Test that a tiny p still keeps the most likely token."""
    masked = top_p_sampling(logits, 0.01)

    assert torch.isfinite(masked).sum().item() == 1
    assert masked[0, 1] == 4.0


@pytest.mark.unit
def test_top_p_one_is_noop(logits):
    assert torch.equal(top_p_sampling(logits, 1.0), logits)


@pytest.mark.unit
def test_logit_bias(logits):
    biased = apply_logit_bias(logits, {3: 10.0})

    assert biased[0, 3] == 9.0
    assert logits[0, 3] == -1.0


@pytest.mark.unit
def test_repetition_penalty(logits):
    """Test that seen tokens are pushed towards lower probability."""
    penalized = apply_repetition_penalty(logits, [1, 3, 1], 2.0)

    assert penalized[0, 1] == 2.0  # positive logit divided
    assert penalized[0, 3] == -2.0  # negative logit multiplied
    assert penalized[0, 0] == 1.0  # unseen token unchanged


@pytest.mark.unit
def test_sample_temperature_zero_is_greedy(logits):
    params = SamplingParams(temperature=0.0)

    assert sample(logits, params).tolist() == [1]


@pytest.mark.unit
def test_sample_top_k_one_is_deterministic(logits):
    """Test that top_k=1 always picks the argmax whatever the generator."""
    params = SamplingParams(top_k=1, repetition_penalty=1.0)
    rng = make_rng(123)

    picks = {sample(logits, params, generator=rng).item() for _ in range(20)}

    assert picks == {1}


@pytest.mark.unit
def test_sample_repetition_window(logits):
    """Test that only the last n previous tokens are penalised."""
    params = SamplingParams(
        temperature=0.0, repetition_penalty=100.0, repetition_penalty_last_n=1
    )

    # Token 1 is outside the window, token 4 inside
    assert sample(logits, params, previous_tokens=[1, 4]).tolist() == [1]
    # Token 1 inside the window
    assert sample(logits, params, previous_tokens=[4, 1]).tolist() == [4]


@pytest.mark.unit
def test_sample_is_reproducible_with_same_seed():
    """Test that equal seeds give equal sample sequences from one generator."""
    logits = torch.zeros(1, 50)
    params = SamplingParams(top_k=0, top_p=1.0, temperature=1.0)

    rng_a = make_rng(42)
    rng_b = make_rng(42)
    draws_a = [sample(logits, params, generator=rng_a).item() for _ in range(10)]
    draws_b = [sample(logits, params, generator=rng_b).item() for _ in range(10)]

    assert draws_a == draws_b


@pytest.mark.unit
def test_shared_generator_advances_between_draws():
    """Test that reusing one generator does not repeat the same draw."""
    logits = torch.zeros(1, 1000)
    params = SamplingParams(top_k=0, top_p=1.0, temperature=1.0)
    rng = make_rng(0)

    draws = [sample(logits, params, generator=rng).item() for _ in range(10)]

    assert len(set(draws)) > 1


@pytest.mark.unit
def test_sample_output_shape():
    logits = torch.randn(1, 32)

    token = sample(logits, SamplingParams(), generator=make_rng(1))

    assert token.shape == (1,)
    assert 0 <= token.item() < 32
