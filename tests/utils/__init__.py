"""Test utilities for persona_chat."""

from tests.utils.fakes import FakeModel, FakeSession, ScriptedReader

__all__ = [
    "FakeModel",
    "FakeSession",
    "ScriptedReader",
]
