from .adapters import ModelFamily, WordAdapter, get_adapter
from .cancellation import CancellationToken
from .compressor import PromptCompressor
from .config import Settings, configure_logging
from .exceptions import (
    CompressionCancelled,
    ConfigurationError,
    DependencyError,
    InputError,
    PromptPiperError,
)
from .loading import DEFAULT_MODELS, ModelConfig, ModelHandle, load_model_handle
from .manager import ModelManager, ModelStatus
from .schemas import CompressionRequest, CompressionResult
from .utils import percentile

__all__ = [
    "CancellationToken",
    "CompressionCancelled",
    "CompressionRequest",
    "CompressionResult",
    "ConfigurationError",
    "DEFAULT_MODELS",
    "DependencyError",
    "InputError",
    "ModelConfig",
    "ModelFamily",
    "ModelHandle",
    "ModelManager",
    "ModelStatus",
    "PromptCompressor",
    "PromptPiperError",
    "Settings",
    "WordAdapter",
    "configure_logging",
    "get_adapter",
    "load_model_handle",
    "percentile",
]
