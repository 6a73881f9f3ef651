"""
Inference backends.

Provides:
- TransformersBackend: Hugging Face AutoModelForCausalLM checkpoints
"""

from persona_chat.backends.transformers_backend import (
    TransformersBackend,
    TransformersModel,
    TransformersSession,
)

__all__ = ["TransformersBackend", "TransformersModel", "TransformersSession"]
