"""
Stop sequence detection over streamed text.

These are transformation stages over a lazy token stream: the chat loop
chains them between the session's producer and the console writer.
"""

from typing import Iterable, Iterator, Sequence, Union

from persona_chat.core.model import InferenceToken, TokenKind


def inferred_text(tokens: Iterable[InferenceToken]) -> Iterator[str]:
    """Yield the text of tokens the model predicted, skipping prompt echo."""
    for token in tokens:
        if token.kind is TokenKind.INFERRED:
            yield token.text


def prompt_text(tokens: Iterable[InferenceToken]) -> Iterator[str]:
    """Yield the text of fed and replayed tokens, skipping predictions."""
    for token in tokens:
        if token.kind is not TokenKind.INFERRED:
            yield token.text


def _partial_match_length(text: str, stop_sequence: str) -> int:
    """Length of the longest suffix of text that is a proper prefix of stop_sequence."""
    longest = min(len(text), len(stop_sequence) - 1)
    for size in range(longest, 0, -1):
        if stop_sequence.startswith(text[-size:]):
            return size
    return 0


def _first_match(text: str, stop_sequences: Sequence[str]) -> int:
    """Index of the earliest occurrence of any stop sequence in text, or -1."""
    found = [index for index in (text.find(stop) for stop in stop_sequences) if index >= 0]
    return min(found) if found else -1


def truncate_at_stop_sequence(
    pieces: Iterable[str], stop_sequences: Union[str, Sequence[str]]
) -> Iterator[str]:
    """Pass text through until a stop sequence appears, then stop.

    Text that might be the beginning of a stop sequence is held back until
    the next piece decides it. Once a stop sequence is found, only the text
    before the earliest match is emitted and the source is not read further.

    Args:
        pieces: Text fragments in generation order
        stop_sequences: One marker, or several; whichever appears first wins

    Yields:
        Text fragments that are safe to print
    """
    if isinstance(stop_sequences, str):
        stop_sequences = (stop_sequences,)
    stop_sequences = [stop for stop in stop_sequences if stop]
    if not stop_sequences:
        yield from pieces
        return

    pending = ""
    for piece in pieces:
        pending += piece

        index = _first_match(pending, stop_sequences)
        if index >= 0:
            if index > 0:
                yield pending[:index]
            return

        held = max(_partial_match_length(pending, stop) for stop in stop_sequences)
        ready = pending[: len(pending) - held]
        pending = pending[len(pending) - held:]
        if ready:
            yield ready

    if pending:
        yield pending
