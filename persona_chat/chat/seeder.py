"""
Seeds a fresh session with the persona and scripted history.
"""

import logging

from persona_chat.chat.console import ConsoleWriter
from persona_chat.core.errors import InferenceError
from persona_chat.core.model import Session
from persona_chat.core.stats import InferenceStats
from persona_chat.sampling.stop import prompt_text

logger = logging.getLogger(__name__)


def seed_session(session: Session, prompt: str, writer: ConsoleWriter) -> InferenceStats:
    """Feed prompt into session, echoing every token as it is fed.

    Every token is accepted; seeding cannot be cancelled part way.

    Args:
        session: Fresh session to seed
        prompt: Persona followed by the scripted history
        writer: Console the echoed tokens are written to

    Returns:
        Stats of the prompt feed

    Raises:
        InferenceError: If the prompt could not be fed; the session is unusable
    """
    stream = session.feed_prompt(prompt)
    try:
        with stream:
            for text in prompt_text(stream):
                writer.write_token(text)
    except InferenceError as e:
        raise InferenceError(f"Failed to ingest initial prompt: {e}") from e

    logger.debug("Seeded session with %d tokens", stream.stats.prompt_tokens)
    return stream.stats
