"""
Chat client configuration.

This module defines the ChatConfig class which holds every value the chat
client needs at startup: which model to load and how, the persona and scripted
opening line, the role tags that frame each turn, and sampling parameters.
"""

from typing import Any, Dict, Optional, Tuple

from persona_chat.core.errors import TokenizerConflictError
from persona_chat.core.model import ModelArchitecture, SessionParams, TokenizerSource
from persona_chat.sampling.sampling import SamplingParams

DEFAULT_MODEL_PATH = "models/llama-2-7b-chat.Q8_0.gguf"
DEFAULT_CHARACTER_NAME = "### Assistant"
DEFAULT_USER_NAME = "### Human"
DEFAULT_PERSONA = "A chat between a human and an assistant."
DEFAULT_GREETING = "Hello - How may I help you today?"


class ChatConfig:
    """Configuration class for the chat client.

    Attributes:
        model_architecture: Architecture tag the checkpoint must match.
        model_path: Checkpoint directory or single model file (.gguf).
        tokenizer_path: Local tokenizer.json to use instead of the embedded one.
        tokenizer_repository: Hub repository to fetch the tokenizer from.
        character_name: Role tag of the assistant, e.g. "### Assistant".
        user_name: Role tag of the human, e.g. "### Human".
        persona: System persona fed before anything else.
        history: Scripted conversation fed after the persona.
        stop_tag: Text that ends a reply; defaults to either role tag.
        sampling_params: Sampling parameters for every turn.
        seed: Seed of the sampling generator; None for fresh entropy.
        device: Device to run inference on.
        batch_size: Prompt tokens fed per forward pass.
    """

    def __init__(
        self,
        model_architecture: ModelArchitecture = ModelArchitecture.LLAMA,
        model_path: str = DEFAULT_MODEL_PATH,
        tokenizer_path: Optional[str] = None,
        tokenizer_repository: Optional[str] = None,
        character_name: str = DEFAULT_CHARACTER_NAME,
        user_name: str = DEFAULT_USER_NAME,
        persona: str = DEFAULT_PERSONA,
        history: Optional[str] = None,
        stop_tag: Optional[str] = None,
        sampling_params: Optional[SamplingParams] = None,
        seed: Optional[int] = None,
        device: str = "cpu",
        batch_size: int = 8,
    ) -> None:
        self.model_architecture = model_architecture
        self.model_path = str(model_path)
        self.tokenizer_path = tokenizer_path
        self.tokenizer_repository = tokenizer_repository
        self.character_name = character_name
        self.user_name = user_name
        self.persona = persona
        if history is None:
            history = f"{character_name}: {DEFAULT_GREETING}"
        self.history = history
        self.stop_tag = stop_tag
        self.sampling_params = sampling_params or SamplingParams()
        self.seed = seed
        self.device = device
        self.batch_size = batch_size

        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            TokenizerConflictError: If both tokenizer_path and tokenizer_repository are set.
            ValueError: If any other value is invalid.
        """
        if self.tokenizer_path is not None and self.tokenizer_repository is not None:
            raise TokenizerConflictError(
                "Cannot specify both tokenizer_path and tokenizer_repository"
            )
        if not self.model_path:
            raise ValueError("model_path cannot be empty")
        if not self.character_name or not self.character_name.strip():
            raise ValueError("character_name cannot be empty")
        if not self.user_name or not self.user_name.strip():
            raise ValueError("user_name cannot be empty")
        if self.character_name == self.user_name:
            raise ValueError(
                f"character_name and user_name must differ, both are {self.user_name!r}"
            )
        if self.stop_tag is not None and not self.stop_tag:
            raise ValueError("stop_tag cannot be empty")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

    def tokenizer_source(self) -> TokenizerSource:
        """Resolve where the tokenizer is loaded from.

        Returns:
            TokenizerSource for the local file, remote repository or embedded tokenizer.

        Raises:
            TokenizerConflictError: If both a file and a repository are configured.
        """
        if self.tokenizer_path is not None and self.tokenizer_repository is not None:
            raise TokenizerConflictError(
                "Cannot specify both tokenizer_path and tokenizer_repository"
            )
        if self.tokenizer_path is not None:
            return TokenizerSource.file(self.tokenizer_path)
        if self.tokenizer_repository is not None:
            return TokenizerSource.remote(self.tokenizer_repository)
        return TokenizerSource.embedded()

    def session_params(self) -> SessionParams:
        return SessionParams(batch_size=self.batch_size)

    @property
    def stop_sequences(self) -> Tuple[str, ...]:
        """Markers that end the assistant's turn.

        Without a stop_tag the reply ends at whichever role tag the model
        writes first: the user's, as it starts the next question, or its own,
        as it starts a second answer.
        """
        if self.stop_tag is not None:
            return (self.stop_tag,)
        return (f"{self.user_name}:", f"{self.character_name}:")

    def seed_prompt(self) -> str:
        return f"{self.persona}\n{self.history}"

    def user_prompt(self) -> str:
        return f"{self.user_name}: "

    def format_turn(self, line: str) -> str:
        """Wrap one line of user input in the role-tagged turn template."""
        return f"{self.user_name}: {line}\n{self.character_name}:"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary.

        Returns:
            Dictionary containing all configuration parameters.
        """
        return {
            "model_architecture": self.model_architecture.name.lower(),
            "model_path": self.model_path,
            "tokenizer_path": self.tokenizer_path,
            "tokenizer_repository": self.tokenizer_repository,
            "character_name": self.character_name,
            "user_name": self.user_name,
            "persona": self.persona,
            "history": self.history,
            "stop_tag": self.stop_tag,
            "sampling_params": dict(vars(self.sampling_params)),
            "seed": self.seed,
            "device": self.device,
            "batch_size": self.batch_size,
        }

    def __repr__(self) -> str:
        return (
            f"ChatConfig("
            f"model_architecture={self.model_architecture.name.lower()}, "
            f"model_path='{self.model_path}', "
            f"character_name='{self.character_name}', "
            f"user_name='{self.user_name}', "
            f"device='{self.device}'"
            f")"
        )
