"""
End-of-run statistics report.
"""

from persona_chat.chat.console import ConsoleWriter
from persona_chat.core.stats import InferenceStats


def report_stats(stats: InferenceStats, writer: ConsoleWriter) -> None:
    """Print the accumulated inference stats."""
    writer.write_line(f"\n\nInference stats:\n{stats}")
