"""
Hugging Face transformers backend.

Loads any AutoModelForCausalLM checkpoint and runs sessions against it with a
KV cache, so each turn only pays for the tokens it adds.
"""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import torch
from transformers import (
    AutoConfig,
    AutoModelForCausalLM,
    AutoTokenizer,
    PreTrainedModel,
    PreTrainedTokenizerBase,
    PreTrainedTokenizerFast,
)

from persona_chat.core.errors import ContextFullError, InferenceError, ModelLoadError
from persona_chat.core.model import (
    InferenceRequest,
    InferenceToken,
    LoadProgress,
    LoadProgressCallback,
    LoadStage,
    Model,
    ModelArchitecture,
    ModelBackend,
    ModelParams,
    Session,
    SessionParams,
    TokenizerSource,
    TokenizerSourceKind,
    TokenKind,
    TokenStream,
)
from persona_chat.core.stats import StatsRecorder
from persona_chat.sampling.sampling import sample

logger = logging.getLogger(__name__)

# Used when neither the params nor the checkpoint name a context window
FALLBACK_CONTEXT_SIZE = 2048

GGUF_SUFFIX = ".gguf"


def _elapsed(start: float) -> timedelta:
    return timedelta(seconds=time.perf_counter() - start)


class IncrementalDetokenizer:
    """Turns a growing list of token ids into text, one token at a time.

    Decoding a single token on its own loses context (leading spaces of
    sentencepiece tokens, characters split across byte tokens), so each new
    token is decoded together with the tokens before it and only the new
    suffix is returned. Text ending in an incomplete character is held back
    until a later token completes it.
    """

    def __init__(self, decode: Callable[[List[int]], str]):
        self._decode = decode
        self._tokens: List[int] = []
        self._prefix_offset = 0
        self._read_offset = 0

    def push(self, token_id: int) -> str:
        self._tokens.append(token_id)

        prefix_text = self._decode(self._tokens[self._prefix_offset:self._read_offset])
        new_text = self._decode(self._tokens[self._prefix_offset:])

        if len(new_text) > len(prefix_text) and not new_text.endswith("\ufffd"):
            self._prefix_offset = self._read_offset
            self._read_offset = len(self._tokens)
            return new_text[len(prefix_text):]
        return ""


def _special_token_id(from_tokenizer: Optional[int], from_config: Any) -> Optional[int]:
    token_id = from_tokenizer if from_tokenizer is not None else from_config
    if isinstance(token_id, (list, tuple)):
        token_id = token_id[0] if token_id else None
    return token_id


class TransformersModel(Model):
    """A causal LM and its tokenizer."""

    def __init__(
        self,
        hf_model: PreTrainedModel,
        tokenizer: PreTrainedTokenizerBase,
        architecture: Optional[ModelArchitecture],
        params: ModelParams,
    ):
        self.hf_model = hf_model
        self.tokenizer = tokenizer
        self.architecture = architecture
        self.device = params.device

        config = hf_model.config
        self._context_size = (
            params.context_size
            or getattr(config, "max_position_embeddings", None)
            or FALLBACK_CONTEXT_SIZE
        )

        # A standalone tokenizer.json names no special tokens; the checkpoint does
        self._eos_token_id = _special_token_id(tokenizer.eos_token_id, config.eos_token_id)
        self._bos_token_id = _special_token_id(
            tokenizer.bos_token_id, getattr(config, "bos_token_id", None)
        )

    @property
    def context_size(self) -> int:
        return self._context_size

    @property
    def eos_token_id(self) -> Optional[int]:
        return self._eos_token_id

    @property
    def bos_token_id(self) -> Optional[int]:
        return self._bos_token_id

    def tokenize(self, text: str) -> List[int]:
        return self.tokenizer.encode(text, add_special_tokens=False)

    def decode(self, token_ids: List[int]) -> str:
        return self.tokenizer.decode(
            token_ids,
            skip_special_tokens=True,
            clean_up_tokenization_spaces=False,
        )

    def forward(self, token_ids: List[int], past_key_values: Any) -> Tuple[torch.Tensor, Any]:
        """Run token_ids through the model on top of past_key_values.

        Returns:
            Logits of the last position as a CPU float tensor [1, vocab_size],
            and the updated KV cache
        """
        input_ids = torch.tensor([token_ids], dtype=torch.long, device=self.device)
        with torch.no_grad():
            output = self.hf_model(
                input_ids=input_ids,
                past_key_values=past_key_values,
                use_cache=True,
            )
        logits = output.logits[:, -1, :].float().cpu()
        return logits, output.past_key_values

    def start_session(self, params: Optional[SessionParams] = None) -> "TransformersSession":
        return TransformersSession(self, params or SessionParams())


class TransformersSession(Session):
    """Session holding the token history and KV cache of one conversation."""

    def __init__(self, model: TransformersModel, params: SessionParams):
        self._model = model
        self._params = params
        self._tokens: List[int] = []
        self._past_key_values: Any = None
        self._last_logits: Optional[torch.Tensor] = None
        self._detokenizer = IncrementalDetokenizer(model.decode)

    @property
    def tokens(self) -> List[int]:
        return list(self._tokens)

    def feed_prompt(self, prompt: str) -> TokenStream:
        return TokenStream(lambda recorder: self._feed(prompt, recorder))

    def infer(self, request: InferenceRequest, rng: torch.Generator) -> TokenStream:
        return TokenStream(lambda recorder: self._infer(request, rng, recorder))

    def _check_room(self, count: int) -> None:
        requested = len(self._tokens) + count
        if requested > self._model.context_size:
            raise ContextFullError(self._model.context_size, requested)

    def _evaluate(self, token_ids: List[int]) -> None:
        try:
            logits, past_key_values = self._model.forward(token_ids, self._past_key_values)
        except Exception as e:
            raise InferenceError(f"forward pass failed: {e}") from e

        self._past_key_values = past_key_values
        self._last_logits = logits
        self._tokens.extend(token_ids)

    def _feed(self, prompt: str, recorder: StatsRecorder) -> Iterator[InferenceToken]:
        token_ids = self._model.tokenize(prompt)
        if not self._tokens and self._model.bos_token_id is not None:
            token_ids = [self._model.bos_token_id] + token_ids

        self._check_room(len(token_ids))

        batch_size = self._params.batch_size
        for start in range(0, len(token_ids), batch_size):
            batch = token_ids[start:start + batch_size]

            started = time.perf_counter()
            self._evaluate(batch)
            recorder.record_prompt(len(batch), _elapsed(started))

            # Decode the whole batch before yielding so the detokenizer never
            # falls behind the history if the consumer stops early
            fed = [
                InferenceToken(TokenKind.PROMPT, self._detokenizer.push(token_id), token_id)
                for token_id in batch
            ]
            yield from fed

    def _infer(
        self,
        request: InferenceRequest,
        rng: torch.Generator,
        recorder: StatsRecorder,
    ) -> Iterator[InferenceToken]:
        if request.play_back_previous_tokens:
            replay = IncrementalDetokenizer(self._model.decode)
            for token_id in self.tokens:
                yield InferenceToken(TokenKind.SNAPSHOT, replay.push(token_id), token_id)

        if request.prompt:
            yield from self._feed(request.prompt, recorder)

        if self._last_logits is None:
            raise InferenceError("cannot predict before any prompt has been fed")

        eos_token_id = self._model.eos_token_id
        produced = 0
        while request.maximum_token_count is None or produced < request.maximum_token_count:
            started = time.perf_counter()
            token_id = int(
                sample(self._last_logits, request.parameters, self._tokens, rng)[0]
            )

            if token_id == eos_token_id:
                recorder.record_prediction(0, _elapsed(started))
                logger.debug("End of text after %d tokens", produced)
                return

            self._check_room(1)
            self._evaluate([token_id])
            recorder.record_prediction(1, _elapsed(started))
            produced += 1

            yield InferenceToken(TokenKind.INFERRED, self._detokenizer.push(token_id), token_id)


@dataclass(frozen=True)
class Checkpoint:
    """What from_pretrained is pointed at for a model path.

    A directory is a Hugging Face checkpoint. A single ".gguf" file is read
    through transformers' GGUF support, which takes the containing directory
    plus the file name. Any other single file is taken to be the weights of
    the checkpoint directory it sits in.
    """

    directory: str
    gguf_file: Optional[str] = None

    @classmethod
    def resolve(cls, model_path: str) -> "Checkpoint":
        path = Path(model_path)
        if not path.exists():
            raise ModelLoadError(f"model path {model_path!r} does not exist")
        if path.is_dir():
            return cls(str(path))
        if path.suffix.lower() == GGUF_SUFFIX:
            return cls(str(path.parent), gguf_file=path.name)
        return cls(str(path.parent))

    def from_pretrained_kwargs(self) -> Dict[str, Any]:
        if self.gguf_file is None:
            return {}
        return {"gguf_file": self.gguf_file}


def _load_tokenizer(checkpoint: Checkpoint, source: TokenizerSource) -> PreTrainedTokenizerBase:
    if source.kind is TokenizerSourceKind.FILE:
        if not Path(source.location).is_file():
            raise ModelLoadError(f"tokenizer file {source.location!r} does not exist")
        return PreTrainedTokenizerFast(tokenizer_file=source.location)
    if source.kind is TokenizerSourceKind.REMOTE:
        return AutoTokenizer.from_pretrained(source.location)
    return AutoTokenizer.from_pretrained(
        checkpoint.directory, **checkpoint.from_pretrained_kwargs()
    )


class TransformersBackend(ModelBackend):
    """Loads checkpoints with AutoModelForCausalLM."""

    name = "transformers"

    def load(
        self,
        architecture: Optional[ModelArchitecture],
        model_path: str,
        tokenizer_source: TokenizerSource,
        params: ModelParams,
        progress_callback: LoadProgressCallback,
    ) -> TransformersModel:
        started = time.perf_counter()

        checkpoint = Checkpoint.resolve(model_path)
        pretrained_kwargs = checkpoint.from_pretrained_kwargs()

        hf_config = AutoConfig.from_pretrained(checkpoint.directory, **pretrained_kwargs)
        if architecture is not None and not architecture.accepts(hf_config.model_type):
            raise ModelLoadError(
                f"model at {model_path!r} is {hf_config.model_type!r}, "
                f"expected {architecture.name.lower()}"
            )
        if architecture is None:
            architecture = next(
                (arch for arch in ModelArchitecture if arch.accepts(hf_config.model_type)),
                None,
            )
        progress_callback(LoadProgress(LoadStage.CONFIG_LOADED))

        tokenizer = _load_tokenizer(checkpoint, tokenizer_source)
        progress_callback(LoadProgress(LoadStage.TOKENIZER_LOADED))

        hf_model = AutoModelForCausalLM.from_pretrained(
            checkpoint.directory,
            config=hf_config,
            torch_dtype=params.dtype,
            **pretrained_kwargs,
        )
        hf_model = hf_model.to(params.device)
        hf_model.eval()

        parameter_count = sum(p.numel() for p in hf_model.parameters())
        progress_callback(LoadProgress(LoadStage.WEIGHTS_LOADED, parameter_count=parameter_count))

        model = TransformersModel(hf_model, tokenizer, architecture, params)
        logger.debug(
            "Model ready: type=%s context_size=%d bos=%s eos=%s",
            hf_config.model_type,
            model.context_size,
            model.bos_token_id,
            model.eos_token_id,
        )
        progress_callback(LoadProgress(LoadStage.LOADED, elapsed=_elapsed(started)))
        return model
