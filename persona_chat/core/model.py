"""
Backend-neutral inference capability.

A backend implements three things: loading a Model, starting a Session on it,
and running inference on that Session. The chat loop only ever talks to the
abstract types defined here, so an alternate engine can be dropped in without
touching it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple

import torch

from persona_chat.core.stats import InferenceStats, StatsRecorder
from persona_chat.sampling.sampling import SamplingParams


class ModelArchitecture(Enum):
    """Supported model families and the Hugging Face model types they accept."""

    LLAMA = ("llama",)
    GPT2 = ("gpt2",)
    GPTJ = ("gptj",)
    GPT_NEOX = ("gpt_neox",)
    BLOOM = ("bloom",)
    MPT = ("mpt",)
    FALCON = ("falcon", "RefinedWeb", "RefinedWebModel")

    @property
    def model_types(self) -> Tuple[str, ...]:
        return self.value

    def accepts(self, model_type: str) -> bool:
        return model_type in self.model_types

    @classmethod
    def from_name(cls, name: str) -> "ModelArchitecture":
        """Parse an architecture tag such as "llama" or "gpt-neox".

        Raises:
            ValueError: If the tag names no known architecture
        """
        key = name.strip().upper().replace("-", "_")
        try:
            return cls[key]
        except KeyError:
            valid = ", ".join(member.name.lower() for member in cls)
            raise ValueError(f"unknown model architecture {name!r} (expected one of: {valid})")


class TokenizerSourceKind(Enum):
    """Where the tokenizer comes from."""

    EMBEDDED = "embedded"  # Shipped alongside the model weights
    FILE = "file"  # A local tokenizer.json
    REMOTE = "remote"  # A Hugging Face Hub repository


@dataclass(frozen=True)
class TokenizerSource:
    kind: TokenizerSourceKind
    location: Optional[str] = None

    @classmethod
    def embedded(cls) -> "TokenizerSource":
        return cls(TokenizerSourceKind.EMBEDDED)

    @classmethod
    def file(cls, path: str) -> "TokenizerSource":
        return cls(TokenizerSourceKind.FILE, str(path))

    @classmethod
    def remote(cls, repository: str) -> "TokenizerSource":
        return cls(TokenizerSourceKind.REMOTE, repository)


@dataclass
class ModelParams:
    """Parameters that apply to loading a model.

    Attributes:
        device: Device to run inference on ("cpu" or "cuda")
        dtype: Weight dtype after loading
        context_size: Override for the context window; None uses the model's own
    """

    device: str = "cpu"
    dtype: torch.dtype = torch.float32
    context_size: Optional[int] = None


class LoadStage(Enum):
    """Stages reported while a model loads."""

    CONFIG_LOADED = "config_loaded"
    TOKENIZER_LOADED = "tokenizer_loaded"
    WEIGHTS_LOADED = "weights_loaded"
    LOADED = "loaded"


@dataclass(frozen=True)
class LoadProgress:
    stage: LoadStage
    parameter_count: Optional[int] = None
    elapsed: Optional[timedelta] = None


LoadProgressCallback = Callable[[LoadProgress], None]


@dataclass
class SessionParams:
    """Parameters for a new inference session.

    Attributes:
        batch_size: Number of prompt tokens fed per forward pass
    """

    batch_size: int = 8

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")


class TokenKind(Enum):
    """Origin of a token produced by a session."""

    SNAPSHOT = "snapshot"  # Replayed from earlier history
    PROMPT = "prompt"  # Fed from the prompt text
    INFERRED = "inferred"  # Predicted by the model


@dataclass(frozen=True)
class InferenceToken:
    kind: TokenKind
    text: str
    token_id: Optional[int] = None


@dataclass
class InferenceRequest:
    """A single inference turn.

    Attributes:
        prompt: Text fed to the session before prediction starts
        parameters: Sampling parameters for predicted tokens
        play_back_previous_tokens: Replay the session history before feeding
        maximum_token_count: Cap on predicted tokens; None means unbounded
    """

    prompt: str
    parameters: SamplingParams = field(default_factory=SamplingParams)
    play_back_previous_tokens: bool = False
    maximum_token_count: Optional[int] = None


class TokenStream:
    """Lazy, finite, non-restartable sequence of InferenceToken.

    The producer is started on first iteration. Closing the stream (or
    breaking out of the loop and calling close) stops the producer; stats
    then cover exactly the work done up to that point.
    """

    def __init__(self, producer: Callable[[StatsRecorder], Iterator[InferenceToken]]):
        self._recorder = StatsRecorder()
        self._tokens = producer(self._recorder)
        self._started = False

    def __iter__(self) -> Iterator[InferenceToken]:
        if self._started:
            raise RuntimeError("TokenStream can only be iterated once")
        self._started = True
        return self._tokens

    def close(self) -> None:
        self._tokens.close()

    def __enter__(self) -> "TokenStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def drain(self) -> List[InferenceToken]:
        """Consume the whole stream and return its tokens."""
        with self:
            return list(self)

    @property
    def stats(self) -> InferenceStats:
        return self._recorder.snapshot()


class Session(ABC):
    """Stateful inference context bound to one Model.

    The token history only ever grows: everything fed or predicted is kept.
    A session is not safe to share between threads.
    """

    @property
    @abstractmethod
    def tokens(self) -> List[int]:
        """Copy of the token history."""

    @property
    def n_past(self) -> int:
        return len(self.tokens)

    @abstractmethod
    def feed_prompt(self, prompt: str) -> TokenStream:
        """Feed prompt text, yielding one PROMPT token per fed token."""

    @abstractmethod
    def infer(self, request: InferenceRequest, rng: torch.Generator) -> TokenStream:
        """Feed request.prompt and predict tokens until end-of-text or the cap.

        Args:
            request: Prompt, sampling parameters and playback settings
            rng: Generator reused for every sampling step

        Returns:
            Stream of SNAPSHOT (if requested), PROMPT and INFERRED tokens
        """


class Model(ABC):
    """Loaded model handle. Read-only once loaded."""

    architecture: ModelArchitecture

    @property
    @abstractmethod
    def context_size(self) -> int:
        """Maximum number of tokens a session can hold."""

    @property
    @abstractmethod
    def eos_token_id(self) -> Optional[int]:
        """Token id that ends generation."""

    @abstractmethod
    def tokenize(self, text: str) -> List[int]:
        """Encode text without special tokens."""

    @abstractmethod
    def start_session(self, params: Optional[SessionParams] = None) -> Session:
        """Create a fresh session with empty history."""


class ModelBackend(ABC):
    """Loads models for one inference engine."""

    name: str

    @abstractmethod
    def load(
        self,
        architecture: Optional[ModelArchitecture],
        model_path: str,
        tokenizer_source: TokenizerSource,
        params: ModelParams,
        progress_callback: LoadProgressCallback,
    ) -> Model:
        """Load a model, reporting progress through progress_callback."""
