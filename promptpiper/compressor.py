from typing import Any, Dict, Optional

import tiktoken
from loguru import logger

from .adapters import ModelFamily, get_adapter
from .cancellation import CancellationToken
from .exceptions import InputError
from .loading import ModelConfig, ModelHandle, load_model_handle
from .pipeline import compress_prompt_pipeline
from .schemas import CompressionRequest, CompressionResult
from .text_ops import get_token_length
from .utils import seed_everything


class PromptCompressor:
    """
    Token-classification prompt compressor.

    Wraps a loaded `ModelHandle` together with the reference tokenizer used
    for cost accounting. The word adapter pair is fixed here from the
    handle's model family.
    """

    def __init__(
            self,
            handle: ModelHandle,
            oai_tokenizer=None,
            max_batch_size: int = 50,
            reference_encoding: str = "o200k_base",
    ):
        logger.info(f"Initializing PromptCompressor for model '{handle.key}' ({handle.family.value})")
        seed_everything(42)
        self.handle = handle
        self.adapter = get_adapter(handle.family)
        self.oai_tokenizer = (
            oai_tokenizer if oai_tokenizer is not None else tiktoken.get_encoding(reference_encoding)
        )
        self.max_batch_size = max_batch_size

    @classmethod
    def from_pretrained(
            cls,
            model_name: str = "./models",
            family: ModelFamily = ModelFamily.BERT_MULTILINGUAL,
            device_map: str = "cpu",
            model_config: Optional[Dict[str, Any]] = None,
            max_batch_size: int = 50,
            max_force_token: int = 100,
            oai_tokenizer=None,
    ) -> "PromptCompressor":
        config = ModelConfig(
            key=model_name,
            model_name=model_name,
            family=family,
            model_options=model_config or {},
        )
        handle = load_model_handle(config, device_map=device_map, max_force_token=max_force_token)
        return cls(handle, oai_tokenizer=oai_tokenizer, max_batch_size=max_batch_size)

    @property
    def tokenizer(self):
        return self.handle.tokenizer

    @property
    def max_force_token(self) -> int:
        return len(self.handle.added_tokens)

    def __call__(self, *args, **kwargs):
        return self.compress(*args, **kwargs)

    def run(
            self,
            request: CompressionRequest,
            cancel_token: Optional[CancellationToken] = None,
    ) -> CompressionResult:
        return compress_prompt_pipeline(
            request,
            model=self.handle.model,
            tokenizer=self.handle.tokenizer,
            device=self.handle.device,
            oai_tokenizer=self.oai_tokenizer,
            max_seq_len=self.handle.max_seq_len,
            max_batch_size=self.max_batch_size,
            special_tokens=self.handle.special_tokens,
            added_tokens=self.handle.added_tokens,
            adapter=self.adapter,
            cancel_token=cancel_token,
        )

    def compress(
            self,
            context: str,
            request: Optional[CompressionRequest] = None,
            cancel_token: Optional[CancellationToken] = None,
            **options,
    ) -> str:
        """
        Compresses `context` and returns the shortened text.

        Options are either given as a `CompressionRequest` (whose own context
        is ignored) or as keyword arguments: rate, target_token, token_to_word,
        force_tokens, force_reserve_digit, drop_consecutive, chunk_end_tokens.
        """
        if not isinstance(context, str):
            raise InputError(f"context must be a string, got {type(context).__name__}")
        if request is None:
            request = CompressionRequest(context=context, **options)
        else:
            request = CompressionRequest(**{**request.model_dump(), **options, "context": context})
        return self.run(request, cancel_token).compressed_prompt

    def compress_prompt(
            self,
            context: str,
            cancel_token: Optional[CancellationToken] = None,
            **options,
    ) -> Dict[str, Any]:
        request = CompressionRequest(context=context, **options)
        return self.run(request, cancel_token).model_dump(exclude_none=True)

    def get_token_length(
            self,
            text: str,
            add_special_tokens: bool = True,
            use_oai_tokenizer: bool = False,
    ) -> int:
        return get_token_length(
            text,
            tokenizer=self.handle.tokenizer,
            oai_tokenizer=self.oai_tokenizer,
            add_special_tokens=add_special_tokens,
            use_oai_tokenizer=use_oai_tokenizer,
        )
