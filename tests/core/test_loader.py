"""
Tests for load_dynamic backend dispatch and progress reporting.
"""

from datetime import timedelta

import pytest

from persona_chat.core import loader
from persona_chat.core.errors import ModelLoadError
from persona_chat.core.loader import (
    get_backend,
    load_dynamic,
    load_progress_callback_stdout,
    register_backend,
)
from persona_chat.core.model import (
    LoadProgress,
    LoadStage,
    ModelArchitecture,
    ModelBackend,
    TokenizerSource,
)
from tests.utils.fakes import FakeModel


class RecordingBackend(ModelBackend):
    """Backend returning a FakeModel and remembering how it was called."""

    name = "recording"

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def load(self, architecture, model_path, tokenizer_source, params, progress_callback):
        self.calls.append((architecture, model_path, tokenizer_source, params))
        if self.error is not None:
            raise self.error
        progress_callback(LoadProgress(LoadStage.LOADED, elapsed=timedelta(seconds=1)))
        return FakeModel()


@pytest.fixture
def recording_backend(monkeypatch):
    monkeypatch.setattr(loader, "_BACKENDS", {})
    backend = RecordingBackend()
    register_backend(backend)
    return backend


@pytest.mark.unit
def test_load_dynamic_dispatches_to_backend(recording_backend):
    """Test that load_dynamic hands every argument to the named backend."""
    events = []

    model = load_dynamic(
        ModelArchitecture.LLAMA,
        "models/llama",
        TokenizerSource.embedded(),
        progress_callback=events.append,
        backend="recording",
    )

    assert isinstance(model, FakeModel)
    architecture, path, source, params = recording_backend.calls[0]
    assert architecture is ModelArchitecture.LLAMA
    assert path == "models/llama"
    assert source == TokenizerSource.embedded()
    assert params.device == "cpu"
    assert [event.stage for event in events] == [LoadStage.LOADED]


@pytest.mark.unit
def test_load_dynamic_wraps_backend_errors(monkeypatch):
    """Test that any backend failure surfaces as ModelLoadError naming the path."""
    monkeypatch.setattr(loader, "_BACKENDS", {})
    register_backend(RecordingBackend(error=OSError("bad magic")))

    with pytest.raises(ModelLoadError, match="models/broken") as excinfo:
        load_dynamic(
            ModelArchitecture.LLAMA,
            "models/broken",
            TokenizerSource.embedded(),
            backend="recording",
        )

    assert isinstance(excinfo.value.__cause__, OSError)


@pytest.mark.unit
def test_load_dynamic_rejects_empty_path(recording_backend):
    with pytest.raises(ModelLoadError):
        load_dynamic(None, "", TokenizerSource.embedded(), backend="recording")

    assert recording_backend.calls == []


@pytest.mark.unit
def test_get_backend_unknown_name(recording_backend):
    with pytest.raises(ModelLoadError, match="unknown backend"):
        get_backend("onnx")


@pytest.mark.unit
def test_get_backend_registers_transformers_on_demand(monkeypatch):
    """Test that the default backend is available without explicit registration."""
    monkeypatch.setattr(loader, "_BACKENDS", {})

    backend = get_backend("transformers")

    assert backend.name == "transformers"


@pytest.mark.unit
def test_load_dynamic_missing_model_path(tmp_path):
    """Test that a missing checkpoint directory is a ModelLoadError."""
    with pytest.raises(ModelLoadError, match="does not exist"):
        load_dynamic(
            ModelArchitecture.LLAMA,
            str(tmp_path / "missing"),
            TokenizerSource.embedded(),
            progress_callback=lambda progress: None,
        )


@pytest.mark.unit
def test_load_progress_callback_stdout(capsys):
    """Test that every load stage is printed on its own line."""
    load_progress_callback_stdout(LoadProgress(LoadStage.CONFIG_LOADED))
    load_progress_callback_stdout(LoadProgress(LoadStage.TOKENIZER_LOADED))
    load_progress_callback_stdout(LoadProgress(LoadStage.WEIGHTS_LOADED, parameter_count=1234567))
    load_progress_callback_stdout(LoadProgress(LoadStage.LOADED, elapsed=timedelta(seconds=2.5)))

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "Loaded hyperparameters",
        "Loaded tokenizer",
        "Loaded 1,234,567 parameters",
        "Loading of model complete in 2.50s",
    ]


@pytest.mark.unit
def test_load_progress_callback_stdout_without_parameter_count(capsys):
    """Test that a backend may report loaded weights without counting them."""
    load_progress_callback_stdout(LoadProgress(LoadStage.WEIGHTS_LOADED))

    assert capsys.readouterr().out == "Loaded weights\n"
