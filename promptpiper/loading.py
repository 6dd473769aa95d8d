from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple

import torch
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from transformers import (
    AutoConfig,
    AutoModelForTokenClassification,
    AutoTokenizer,
)

from .adapters import ModelFamily
from .config import Settings


class ModelConfig(BaseModel):
    """Registry entry resolving a short model key to everything needed to load it."""
    model_config = ConfigDict(protected_namespaces=())

    key: str
    model_name: str
    family: ModelFamily
    size: str = "unknown"
    description: str = ""
    max_seq_len: int = 512
    model_options: Dict[str, Any] = Field(default_factory=dict)


DEFAULT_MODELS: Dict[str, ModelConfig] = {
    "bert": ModelConfig(
        key="bert",
        model_name="microsoft/llmlingua-2-bert-base-multilingual-cased-meetingbank",
        family=ModelFamily.BERT_MULTILINGUAL,
        size="710MB",
        description="Balanced accuracy and speed",
    ),
    "xlm-roberta": ModelConfig(
        key="xlm-roberta",
        model_name="microsoft/llmlingua-2-xlm-roberta-large-meetingbank",
        family=ModelFamily.XLM_ROBERTA,
        size="2.2GB",
        description="Best accuracy, highest resource usage",
    ),
}


def default_registry(settings: Optional[Settings] = None) -> Dict[str, ModelConfig]:
    settings = settings or Settings()
    registry = dict(DEFAULT_MODELS)
    registry["local"] = ModelConfig(
        key="local",
        model_name=settings.model_path,
        family=ModelFamily.BERT_MULTILINGUAL,
        description="Locally stored token classification checkpoint",
    )
    return registry


@dataclass(frozen=True)
class ModelHandle:
    """A loaded classifier and tokenizer; read-only once built."""
    key: str
    model: Any
    tokenizer: Any
    device: str
    family: ModelFamily
    max_seq_len: int
    special_tokens: FrozenSet[str]
    added_tokens: Tuple[str, ...]


def load_model_and_tokenizer(
    model_name: str,
    device_map: str = "cuda",
    model_config: Optional[Dict[str, Any]] = None,
) -> Tuple[Any, Any, str, int]:
    logger.info(f"Loading model: {model_name} on {device_map}")
    model_config = dict(model_config or {})
    model_config.setdefault("trust_remote_code", True)

    logger.debug("Loading AutoConfig...")
    config = AutoConfig.from_pretrained(model_name, **model_config)
    logger.debug("Loading AutoTokenizer...")
    tokenizer = AutoTokenizer.from_pretrained(model_name, **model_config)

    device = (
        device_map
        if any(key in device_map for key in ["cuda", "cpu", "mps"])
        else "cuda"
    )
    logger.info(f"Using device: {device}")

    dtype = model_config.pop("dtype", "auto" if device == "cuda" else torch.float32)
    model = AutoModelForTokenClassification.from_pretrained(
        model_name,
        dtype=dtype,
        device_map=device,
        config=config,
        ignore_mismatched_sizes=True,
        **model_config,
    )
    model.eval()

    logger.info("Model loaded successfully.")
    return model, tokenizer, device, config.max_position_embeddings


def init_placeholder_tokens(model, tokenizer, max_force_token: int = 100) -> Tuple[FrozenSet[str], Tuple[str, ...]]:
    """
    Registers the `[NEW{i}]` placeholder pool as additional special tokens and
    returns the special tokens to skip while merging words.
    """
    special_tokens = frozenset(
        v
        for k, v in tokenizer.special_tokens_map.items()
        if k != "additional_special_tokens"
    )

    added_tokens = tuple(f"[NEW{i}]" for i in range(max_force_token))
    tokenizer.add_special_tokens(
        {"additional_special_tokens": list(added_tokens)}
    )
    model.resize_token_embeddings(len(tokenizer))
    return special_tokens, added_tokens


def load_model_handle(
    config: ModelConfig,
    device_map: str = "cpu",
    max_force_token: int = 100,
) -> ModelHandle:
    model, tokenizer, device, max_position_embeddings = load_model_and_tokenizer(
        config.model_name, device_map=device_map, model_config=config.model_options
    )
    special_tokens, added_tokens = init_placeholder_tokens(model, tokenizer, max_force_token)
    max_seq_len = min(config.max_seq_len, max_position_embeddings or config.max_seq_len)
    logger.debug(f"Model '{config.key}' ready: family={config.family.value}, max_seq_len={max_seq_len}")
    return ModelHandle(
        key=config.key,
        model=model,
        tokenizer=tokenizer,
        device=device,
        family=config.family,
        max_seq_len=max_seq_len,
        special_tokens=special_tokens,
        added_tokens=added_tokens,
    )
