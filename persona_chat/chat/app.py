"""
Wires the loader, seeder, conversation loop and stats reporter together.
"""

import logging
from typing import Optional

from persona_chat.chat.console import ConsoleWriter, LineReader
from persona_chat.chat.conversation import Conversation
from persona_chat.chat.report import report_stats
from persona_chat.chat.seeder import seed_session
from persona_chat.core.config import ChatConfig
from persona_chat.core.loader import load_dynamic, load_progress_callback_stdout
from persona_chat.core.model import Model, ModelParams
from persona_chat.core.stats import InferenceStats
from persona_chat.sampling.sampling import make_rng

logger = logging.getLogger(__name__)


def load_model(config: ChatConfig) -> Model:
    """Load the configured model.

    The tokenizer source is resolved first, so a conflicting tokenizer
    configuration fails before any file is touched.

    Raises:
        TokenizerConflictError: If both tokenizer_path and tokenizer_repository are set
        ModelLoadError: If the model cannot be loaded
    """
    tokenizer_source = config.tokenizer_source()
    return load_dynamic(
        config.model_architecture,
        config.model_path,
        tokenizer_source,
        ModelParams(device=config.device),
        load_progress_callback_stdout,
    )


def run_chat(
    config: ChatConfig,
    model: Optional[Model] = None,
    reader: Optional[LineReader] = None,
    writer: Optional[ConsoleWriter] = None,
) -> InferenceStats:
    """Run a whole chat: load, seed, converse, report.

    Args:
        config: Chat configuration
        model: Already loaded model; loaded from config when None
        reader: Source of user lines; the terminal when None
        writer: Console for all output; stdout when None

    Returns:
        Stats accumulated over the conversation turns

    Raises:
        ChatError: On any fatal load, seed or inference failure
    """
    writer = writer or ConsoleWriter()
    reader = reader or LineReader()

    if model is None:
        model = load_model(config)

    session = model.start_session(config.session_params())
    seed_session(session, config.seed_prompt(), writer)

    rng = make_rng(config.seed)
    conversation = Conversation(session, config, reader, writer, rng)
    stats = conversation.run()

    report_stats(stats, writer)
    return stats
