"""
Tests for the command-line entry point and its exit status.
"""

import logging

import pytest

from persona_chat import cli
from persona_chat.core.config import ChatConfig
from persona_chat.core.errors import InferenceError, ModelLoadError
from persona_chat.core.stats import InferenceStats


@pytest.mark.unit
def test_main_returns_zero_on_normal_exit(monkeypatch):
    monkeypatch.setattr(cli, "run_chat", lambda config: InferenceStats())

    assert cli.main(ChatConfig()) == 0


@pytest.mark.unit
def test_main_uses_default_config(monkeypatch):
    """Test that without arguments the built-in configuration is used."""
    seen = []
    monkeypatch.setattr(cli, "run_chat", lambda config: seen.append(config))

    cli.main()

    assert isinstance(seen[0], ChatConfig)
    assert seen[0].persona == "A chat between a human and an assistant."


@pytest.mark.unit
@pytest.mark.parametrize(
    "error",
    [
        ModelLoadError("Failed to load llama model"),
        InferenceError("context window full"),
        KeyboardInterrupt(),
    ],
)
def test_main_fatal_errors_exit_nonzero(monkeypatch, capsys, error):
    """Test that every fatal error prints a diagnostic and exits with status 1."""

    def fail(config):
        raise error

    monkeypatch.setattr(cli, "run_chat", fail)

    assert cli.main(ChatConfig()) == 1
    assert "error:" in capsys.readouterr().err


@pytest.mark.unit
def test_main_missing_model_exits_nonzero(tmp_path, capsys):
    """Test a real load attempt against a path that does not exist."""
    config = ChatConfig(model_path=str(tmp_path / "no-such-model"))

    assert cli.main(config) == 1
    assert "does not exist" in capsys.readouterr().err


@pytest.fixture(autouse=True)
def _detach_log_handlers():
    """Drop handlers bound to the captured stderr once each test is done."""
    yield
    logger = logging.getLogger("persona_chat")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
