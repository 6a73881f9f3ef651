"""
Inference statistics accumulated across prompt feeding and prediction.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict

# Counts saturate at the largest unsigned 64-bit value.
MAX_COUNT = 2**64 - 1


def _saturating_count(a: int, b: int) -> int:
    return min(a + b, MAX_COUNT)


def _saturating_duration(a: timedelta, b: timedelta) -> timedelta:
    try:
        return a + b
    except OverflowError:
        return timedelta.max


@dataclass(frozen=True)
class InferenceStats:
    """Timing and token counters for one or more inference calls.

    Attributes:
        feed_prompt_duration: Wall time spent feeding prompt tokens
        prompt_tokens: Number of prompt tokens fed
        predict_duration: Wall time spent predicting new tokens
        predict_tokens: Number of tokens predicted
    """

    feed_prompt_duration: timedelta = timedelta(0)
    prompt_tokens: int = 0
    predict_duration: timedelta = timedelta(0)
    predict_tokens: int = 0

    def saturating_add(self, other: "InferenceStats") -> "InferenceStats":
        """Combine two stats values, clamping at the representable maximum.

        Args:
            other: Stats to add to this one

        Returns:
            New InferenceStats holding the field-wise sums
        """
        return InferenceStats(
            feed_prompt_duration=_saturating_duration(
                self.feed_prompt_duration, other.feed_prompt_duration
            ),
            prompt_tokens=_saturating_count(self.prompt_tokens, other.prompt_tokens),
            predict_duration=_saturating_duration(
                self.predict_duration, other.predict_duration
            ),
            predict_tokens=_saturating_count(self.predict_tokens, other.predict_tokens),
        )

    def __add__(self, other: "InferenceStats") -> "InferenceStats":
        if not isinstance(other, InferenceStats):
            return NotImplemented
        return self.saturating_add(other)

    @property
    def per_token_duration_ms(self) -> float:
        """Average prediction time per token in milliseconds."""
        if self.predict_tokens == 0:
            return 0.0
        return _millis(self.predict_duration) / self.predict_tokens

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feed_prompt_duration_ms": _millis(self.feed_prompt_duration),
            "prompt_tokens": self.prompt_tokens,
            "predict_duration_ms": _millis(self.predict_duration),
            "predict_tokens": self.predict_tokens,
            "per_token_duration_ms": self.per_token_duration_ms,
        }

    def __str__(self) -> str:
        return (
            f"feed_prompt_duration: {_millis(self.feed_prompt_duration)}ms\n"
            f"prompt_tokens: {self.prompt_tokens}\n"
            f"predict_duration: {_millis(self.predict_duration)}ms\n"
            f"predict_tokens: {self.predict_tokens}\n"
            f"per_token_duration: {self.per_token_duration_ms:.3f}ms"
        )


def _millis(duration: timedelta) -> int:
    return duration // timedelta(milliseconds=1)


class StatsRecorder:
    """Mutable counterpart of InferenceStats filled in while a stream runs."""

    def __init__(self):
        self._stats = InferenceStats()

    def record_prompt(self, tokens: int, duration: timedelta) -> None:
        self._stats += InferenceStats(feed_prompt_duration=duration, prompt_tokens=tokens)

    def record_prediction(self, tokens: int, duration: timedelta) -> None:
        self._stats += InferenceStats(predict_duration=duration, predict_tokens=tokens)

    def snapshot(self) -> InferenceStats:
        return self._stats
