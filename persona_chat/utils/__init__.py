"""
Utilities and helper functions.

Provides:
- Logging configuration
"""

from persona_chat.utils.logging import setup_logger

__all__ = ["setup_logger"]
