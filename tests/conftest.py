"""
Pytest configuration and shared fixtures for persona_chat tests.

This module provides reusable fixtures for testing, including:
- A tiny randomly initialised Llama checkpoint saved to a temporary directory
- A byte-level BPE tokenizer built in memory (no downloads)
- CPU device enforcement
- Fake models, readers and writers for the chat loop
"""

import io
import os
from pathlib import Path

import pytest
import torch
from persona_chat.chat.console import ConsoleWriter
from persona_chat.core.loader import load_dynamic
from persona_chat.core.model import ModelArchitecture, TokenizerSource
from tests.utils.tiny_model import build_byte_tokenizer, build_tiny_llama

# Force CPU-only testing by disabling CUDA
os.environ["CUDA_VISIBLE_DEVICES"] = ""


@pytest.fixture(scope="session")
def cpu_device() -> torch.device:
    """Force CPU device for all tests."""
    return torch.device("cpu")


@pytest.fixture(scope="session")
def tiny_model_dir(tmp_path_factory) -> Path:
    """
    Save a tiny Llama checkpoint and its tokenizer to a temporary directory.

    The directory has the same layout as a Hugging Face checkpoint
    (config.json, weights, tokenizer.json, tokenizer_config.json), so it
    exercises the real loading path.

    Returns:
        Path: Directory holding the checkpoint
    """
    path = tmp_path_factory.mktemp("tiny-llama")
    build_tiny_llama().save_pretrained(path)
    build_byte_tokenizer().save_pretrained(path)
    return path


@pytest.fixture(scope="session")
def tiny_model(tiny_model_dir):
    """
    Load the tiny checkpoint through load_dynamic (session-scoped).

    Returns:
        TransformersModel: Loaded model on CPU
    """
    return load_dynamic(
        ModelArchitecture.LLAMA,
        str(tiny_model_dir),
        TokenizerSource.embedded(),
        progress_callback=lambda progress: None,
    )


@pytest.fixture
def output() -> io.StringIO:
    """Buffer standing in for stdout."""
    return io.StringIO()


@pytest.fixture
def writer(output) -> ConsoleWriter:
    """ConsoleWriter that writes into the output buffer."""
    return ConsoleWriter(output)
