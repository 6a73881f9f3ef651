"""
Interactive chat built on a model session.

Provides:
- seed_session: Feeds the persona and scripted history
- Conversation: Read-infer-print loop with stop-sequence truncation
- report_stats: End-of-run stats summary
- ConsoleWriter / LineReader: Terminal output and line input
- run_chat: Everything above, in order
"""

from persona_chat.chat.console import ConsoleWriter, LineReader
from persona_chat.chat.conversation import Conversation, ConversationState
from persona_chat.chat.report import report_stats
from persona_chat.chat.seeder import seed_session
from persona_chat.chat.app import run_chat

__all__ = [
    "ConsoleWriter",
    "LineReader",
    "Conversation",
    "ConversationState",
    "report_stats",
    "seed_session",
    "run_chat",
]
