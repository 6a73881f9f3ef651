"""
Console input and output for the chat loop.
"""

import sys
from typing import Callable, Optional, TextIO


class ConsoleWriter:
    """Writes streamed text to the console, flushing after every token."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout

    def write_token(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def write_line(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def newline(self) -> None:
        self.write_line()


class LineReader:
    """Reads one line of user input at a time.

    With the default input function and an interactive stdin, GNU readline is
    loaded where the platform provides it, which gives line editing and
    history recall. Piped input is read without it. EOFError and
    KeyboardInterrupt are passed through to the caller unchanged.
    """

    def __init__(self, input_fn: Callable[[str], str] = input):
        self._input = input_fn
        self.history_enabled = False
        if input_fn is input and sys.stdin is not None and sys.stdin.isatty():
            self.history_enabled = _enable_readline()

    def readline(self, prompt: str) -> str:
        return self._input(prompt)


def _enable_readline() -> bool:
    """Load the readline module so input() gains editing and history."""
    try:
        import readline  # noqa: F401
    except ImportError:
        return False
    return True
