"""
Exceptions raised by the chat engine.

Everything here is fatal to the process except where the conversation loop
says otherwise; the only place these are caught is the command-line entry point.
"""


class ChatError(Exception):
    """Base class for persona_chat errors."""


class ModelLoadError(ChatError, ValueError):
    """The model weights, config or tokenizer could not be loaded."""


class TokenizerConflictError(ChatError, ValueError):
    """Both a local tokenizer file and a remote tokenizer repository were given."""


class InferenceError(ChatError, RuntimeError):
    """Feeding a prompt or predicting a token failed inside the engine."""


class ContextFullError(InferenceError):
    """The session has no room left in the model's context window."""

    def __init__(self, context_size: int, requested: int):
        self.context_size = context_size
        self.requested = requested
        super().__init__(
            f"context window full: {requested} tokens requested, "
            f"model supports {context_size}"
        )
