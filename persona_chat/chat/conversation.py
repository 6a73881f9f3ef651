"""
Interactive conversation loop.

Each turn reads one line, wraps it in the role-tagged template, and streams
the session's predictions to the console until the assistant's stop tag, end
of text, or the context limit. The loop has two states: it waits for input
until the input source signals end-of-stream or an interrupt, and then it is
terminated.
"""

import logging
from enum import Enum

import torch

from persona_chat.chat.console import ConsoleWriter, LineReader
from persona_chat.core.config import ChatConfig
from persona_chat.core.model import InferenceRequest, Session
from persona_chat.core.stats import InferenceStats
from persona_chat.sampling.stop import inferred_text, truncate_at_stop_sequence

logger = logging.getLogger(__name__)


class ConversationState(Enum):
    """State of the conversation loop."""

    AWAITING_INPUT = "awaiting_input"
    TERMINATED = "terminated"


class Conversation:
    """Runs turns against one session until the input source ends.

    Attributes:
        session: Session seeded with the persona
        config: Role tags, stop sequence and sampling parameters
        reader: Source of user lines
        writer: Console the reply is streamed to
        rng: Generator shared by every turn's sampling
        state: Current loop state
        turns: Number of completed turns
        stats: Stats accumulated over all turns
    """

    def __init__(
        self,
        session: Session,
        config: ChatConfig,
        reader: LineReader,
        writer: ConsoleWriter,
        rng: torch.Generator,
    ):
        self.session = session
        self.config = config
        self.reader = reader
        self.writer = writer
        self.rng = rng
        self.state = ConversationState.AWAITING_INPUT
        self.turns = 0
        self.stats = InferenceStats()

    def make_request(self, line: str) -> InferenceRequest:
        return InferenceRequest(
            prompt=self.config.format_turn(line),
            parameters=self.config.sampling_params,
            play_back_previous_tokens=False,
            maximum_token_count=None,
        )

    def turn(self, line: str) -> InferenceStats:
        """Run one turn and stream the reply.

        Raises:
            InferenceError: If the engine fails; this is fatal to the chat
        """
        stream = self.session.infer(self.make_request(line), self.rng)
        with stream:
            reply = truncate_at_stop_sequence(inferred_text(stream), self.config.stop_sequences)
            for text in reply:
                self.writer.write_token(text)

        turn_stats = stream.stats
        self.stats = self.stats.saturating_add(turn_stats)
        self.turns += 1
        logger.debug("Turn %d stats: %s", self.turns, turn_stats.to_dict())
        return turn_stats

    def step(self) -> ConversationState:
        """Read one line and, if one arrived, run a turn for it."""
        self.writer.newline()
        try:
            line = self.reader.readline(self.config.user_prompt())
        except (EOFError, KeyboardInterrupt):
            self.state = ConversationState.TERMINATED
            return self.state
        except UnicodeDecodeError as e:
            self.writer.write_line(str(e))
            return self.state

        self.turn(line)
        return self.state

    def run(self) -> InferenceStats:
        """Loop until the input source ends, then return the accumulated stats."""
        while self.state is ConversationState.AWAITING_INPUT:
            self.step()

        logger.info("Conversation ended after %d turns", self.turns)
        return self.stats
