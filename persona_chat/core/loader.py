"""
Model loading with backend dispatch and progress reporting.
"""

import logging
from typing import Dict, Optional

from persona_chat.core.errors import ModelLoadError
from persona_chat.core.model import (
    LoadProgress,
    LoadProgressCallback,
    LoadStage,
    Model,
    ModelArchitecture,
    ModelBackend,
    ModelParams,
    TokenizerSource,
)

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "transformers"

_BACKENDS: Dict[str, ModelBackend] = {}


def register_backend(backend: ModelBackend) -> None:
    """Make a backend available to load_dynamic under backend.name."""
    _BACKENDS[backend.name] = backend


def get_backend(name: str) -> ModelBackend:
    if name not in _BACKENDS and name == DEFAULT_BACKEND:
        from persona_chat.backends.transformers_backend import TransformersBackend

        register_backend(TransformersBackend())

    try:
        return _BACKENDS[name]
    except KeyError:
        raise ModelLoadError(
            f"unknown backend {name!r} (registered: {', '.join(sorted(_BACKENDS)) or 'none'})"
        )


def load_progress_callback_stdout(progress: LoadProgress) -> None:
    """Print load progress to stdout, one line per stage."""
    if progress.stage is LoadStage.CONFIG_LOADED:
        print("Loaded hyperparameters")
    elif progress.stage is LoadStage.TOKENIZER_LOADED:
        print("Loaded tokenizer")
    elif progress.stage is LoadStage.WEIGHTS_LOADED:
        if progress.parameter_count is None:
            print("Loaded weights")
        else:
            print(f"Loaded {progress.parameter_count:,} parameters")
    elif progress.stage is LoadStage.LOADED:
        seconds = progress.elapsed.total_seconds() if progress.elapsed else 0.0
        print(f"Loading of model complete in {seconds:.2f}s")


def load_dynamic(
    architecture: Optional[ModelArchitecture],
    model_path: str,
    tokenizer_source: TokenizerSource,
    params: Optional[ModelParams] = None,
    progress_callback: LoadProgressCallback = load_progress_callback_stdout,
    backend: str = DEFAULT_BACKEND,
) -> Model:
    """Load a model with the named backend.

    Args:
        architecture: Architecture the checkpoint must match, or None to accept any
        model_path: Path to the model directory
        tokenizer_source: Where to load the tokenizer from
        params: Device, dtype and context size settings
        progress_callback: Called once per LoadProgress event
        backend: Name of a registered backend

    Returns:
        Loaded Model ready to start sessions

    Raises:
        ModelLoadError: If the model or tokenizer cannot be loaded
    """
    if not model_path:
        raise ModelLoadError("model_path cannot be empty")

    name = architecture.name.lower() if architecture else "auto"
    logger.info("Loading %s model from %s with %s backend", name, model_path, backend)

    loader = get_backend(backend)
    try:
        return loader.load(
            architecture,
            model_path,
            tokenizer_source,
            params or ModelParams(),
            progress_callback,
        )
    except ModelLoadError:
        raise
    except Exception as e:
        raise ModelLoadError(f"Failed to load {name} model from {model_path!r}: {e}") from e
