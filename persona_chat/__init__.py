"""
persona_chat: a minimal interactive chat client for local causal language models.

This package provides:
- A backend-neutral model/session capability (load, start_session, infer)
- A Hugging Face transformers backend with KV-cache sessions
- Token sampling and stop-sequence truncation stages
- A persona prompt seeder, conversation loop and stats reporter
"""

__version__ = "0.1.0"
__author__ = "persona-chat contributors"

from persona_chat.core.config import ChatConfig
from persona_chat.core.stats import InferenceStats
from persona_chat.chat.app import run_chat

__all__ = ["ChatConfig", "InferenceStats", "run_chat"]
