"""
Sampling strategies for text generation.

This module turns the logits of the last position into the next token id.
All randomness comes from an explicit torch.Generator so that one generator,
created once per chat, drives every sampling step.
"""

import torch
from dataclasses import dataclass
from typing import Dict, Optional, Sequence


@dataclass
class SamplingParams:
    """Parameters for sampling strategies."""
    temperature: float = 0.80
    top_p: float = 0.95
    top_k: int = 40
    repetition_penalty: float = 1.30
    repetition_penalty_last_n: int = 64
    logit_bias: Optional[Dict[int, float]] = None

    def __post_init__(self) -> None:
        if self.temperature < 0.0:
            raise ValueError(f"temperature must be non-negative, got {self.temperature}")
        if not 0.0 < self.top_p <= 1.0:
            raise ValueError(f"top_p must be in (0, 1], got {self.top_p}")
        if self.top_k < 0:
            raise ValueError(f"top_k must be non-negative, got {self.top_k}")
        if self.repetition_penalty <= 0.0:
            raise ValueError(
                f"repetition_penalty must be positive, got {self.repetition_penalty}"
            )
        if self.repetition_penalty_last_n < 0:
            raise ValueError(
                "repetition_penalty_last_n must be non-negative, "
                f"got {self.repetition_penalty_last_n}"
            )


def make_rng(seed: Optional[int] = None) -> torch.Generator:
    """Create the generator shared by every sampling step of a chat.

    Args:
        seed: Fixed seed for reproducible sampling, or None for fresh entropy

    Returns:
        CPU torch.Generator
    """
    generator = torch.Generator(device="cpu")
    if seed is None:
        generator.seed()
    else:
        generator.manual_seed(seed)
    return generator


def greedy_sampling(logits: torch.Tensor) -> torch.Tensor:
    """Greedy sampling (argmax)."""
    return logits.argmax(dim=-1)


def temperature_scaling(logits: torch.Tensor, temperature: float) -> torch.Tensor:
    """Apply temperature scaling."""
    return logits / temperature


def top_k_sampling(logits: torch.Tensor, k: int) -> torch.Tensor:
    """Top-k sampling."""
    if k <= 0 or k >= logits.shape[-1]:
        return logits

    top_k_logits, top_k_indices = torch.topk(logits, k, dim=-1)

    mask = torch.full_like(logits, float('-inf'))
    mask.scatter_(-1, top_k_indices, top_k_logits)

    return mask


def top_p_sampling(logits: torch.Tensor, p: float) -> torch.Tensor:
    """Top-p (nucleus) sampling."""
    if p >= 1.0:
        return logits

    sorted_logits, sorted_indices = torch.sort(logits, descending=True, dim=-1)
    cumulative_probs = torch.cumsum(torch.softmax(sorted_logits, dim=-1), dim=-1)

    # Keep the smallest prefix whose mass reaches p; the top token always survives
    sorted_to_remove = cumulative_probs > p
    sorted_to_remove[..., 1:] = sorted_to_remove[..., :-1].clone()
    sorted_to_remove[..., 0] = False

    to_remove = sorted_to_remove.scatter(-1, sorted_indices, sorted_to_remove)
    return logits.masked_fill(to_remove, float('-inf'))


def apply_logit_bias(logits: torch.Tensor, bias: Optional[Dict[int, float]]) -> torch.Tensor:
    """Add a fixed bias to selected token ids."""
    if not bias:
        return logits

    logits = logits.clone()
    for token_id, value in bias.items():
        logits[..., token_id] += value
    return logits


def apply_repetition_penalty(
    logits: torch.Tensor, previous_tokens: Sequence[int], penalty: float
) -> torch.Tensor:
    """Apply repetition penalty to every token id in previous_tokens."""
    if penalty == 1.0 or len(previous_tokens) == 0:
        return logits

    index = torch.tensor(sorted(set(previous_tokens)), dtype=torch.long)
    index = index.unsqueeze(0).expand(logits.shape[0], -1)

    scores = torch.gather(logits, -1, index)
    scores = torch.where(scores > 0, scores / penalty, scores * penalty)

    return logits.scatter(-1, index, scores)


def sample(
    logits: torch.Tensor,
    params: SamplingParams,
    previous_tokens: Sequence[int] = (),
    generator: Optional[torch.Generator] = None,
) -> torch.Tensor:
    """Sample next token using specified parameters.

    Args:
        logits: Next-token logits of shape [batch_size, vocab_size]
        params: Sampling parameters
        previous_tokens: Token history used for the repetition penalty
        generator: Source of randomness; reused across calls by the caller

    Returns:
        Sampled token ids of shape [batch_size]
    """
    logits = apply_logit_bias(logits.float(), params.logit_bias)

    if params.repetition_penalty_last_n > 0:
        window = list(previous_tokens)[-params.repetition_penalty_last_n:]
        logits = apply_repetition_penalty(logits, window, params.repetition_penalty)

    if params.temperature == 0.0:
        return greedy_sampling(logits)

    if params.temperature != 1.0:
        logits = temperature_scaling(logits, params.temperature)

    if params.top_k > 0:
        logits = top_k_sampling(logits, params.top_k)

    if params.top_p < 1.0:
        logits = top_p_sampling(logits, params.top_p)

    probs = torch.softmax(logits, dim=-1)

    return torch.multinomial(probs, num_samples=1, generator=generator).squeeze(-1)
