"""
Core chat engine module.

Provides the backend-neutral pieces the chat loop is written against:
- ChatConfig: Startup configuration (model path, persona, stop tag, sampling)
- Model / Session: Inference capability implemented by backends
- InferenceRequest / TokenStream: Per-turn request and lazy token producer
- InferenceStats: Saturating timing and token counters
- load_dynamic: Backend dispatch for model loading
"""

from persona_chat.core.config import ChatConfig
from persona_chat.core.errors import (
    ChatError,
    ContextFullError,
    InferenceError,
    ModelLoadError,
    TokenizerConflictError,
)
from persona_chat.core.model import (
    InferenceRequest,
    InferenceToken,
    Model,
    ModelArchitecture,
    Session,
    SessionParams,
    TokenKind,
    TokenizerSource,
    TokenStream,
)
from persona_chat.core.stats import InferenceStats

__all__ = [
    "ChatConfig",
    "ChatError",
    "ContextFullError",
    "InferenceError",
    "ModelLoadError",
    "TokenizerConflictError",
    "InferenceRequest",
    "InferenceToken",
    "Model",
    "ModelArchitecture",
    "Session",
    "SessionParams",
    "TokenKind",
    "TokenizerSource",
    "TokenStream",
    "InferenceStats",
]
