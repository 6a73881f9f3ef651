"""
Token sampling and generation control.

Provides:
- SamplingParams: Sampling configuration dataclass
- sample: Logit bias, repetition penalty, temperature, top-k, top-p
- make_rng: The single generator shared by a chat's sampling steps
- Stop sequence truncation lives in persona_chat.sampling.stop
"""

from persona_chat.sampling.sampling import SamplingParams, make_rng, sample

__all__ = ["SamplingParams", "make_rng", "sample"]
