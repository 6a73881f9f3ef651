"""
Command-line entry point.
"""

import logging
import sys
from typing import Optional

from transformers.utils import logging as hf_logging

from persona_chat.chat.app import run_chat
from persona_chat.core.config import ChatConfig
from persona_chat.core.errors import ChatError
from persona_chat.utils.logging import setup_logger


def main(config: Optional[ChatConfig] = None) -> int:
    """Run the chat and return the process exit status.

    Every fatal error ends up here: it is logged, a diagnostic is printed, and
    the exit status is 1. Normal end of input returns 0.
    """
    logger = setup_logger()
    hf_logging.set_verbosity_error()

    try:
        run_chat(config or ChatConfig())
    except ChatError as e:
        logger.error("Fatal: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted during inference")
        print("error: interrupted", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
