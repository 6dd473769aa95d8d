import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from loguru import logger

from .cancellation import CancellationToken
from .compressor import PromptCompressor
from .config import Settings
from .exceptions import ConfigurationError, DependencyError
from .loading import ModelConfig, ModelHandle, default_registry, load_model_handle
from .schemas import CompressionRequest, CompressionResult


class ModelStatus(str, Enum):
    UNLOADED = "not-loaded"
    LOADING = "loading"
    READY = "loaded"


@dataclass
class ModelState:
    status: ModelStatus = ModelStatus.UNLOADED
    compressor: Optional[PromptCompressor] = None


class ModelManager:
    """
    Owns the loaded compressor for each registered model key.

    One model is active at a time. While a load is in flight every caller,
    whatever key it asks for, waits for that load to settle; concurrent
    requests for the key being loaded share the same load instead of
    starting another one.
    """

    def __init__(
        self,
        registry: Optional[Dict[str, ModelConfig]] = None,
        settings: Optional[Settings] = None,
        loader: Callable[..., ModelHandle] = load_model_handle,
        oai_tokenizer=None,
    ):
        self.settings = settings or Settings()
        self.registry = dict(registry) if registry is not None else default_registry(self.settings)
        self._loader = loader
        self._oai_tokenizer = oai_tokenizer
        self._states: Dict[str, ModelState] = {key: ModelState() for key in self.registry}
        self._lock = asyncio.Lock()
        self._pending: Optional[asyncio.Future] = None
        self._pending_key: Optional[str] = None
        self._load_task: Optional[asyncio.Task] = None
        self.active: Optional[str] = None

    def resolve(self, key: str) -> ModelConfig:
        config = self.registry.get(key)
        if config is None:
            raise ConfigurationError(
                f"Unknown model: {key}. Available models: {', '.join(sorted(self.registry))}"
            )
        return config

    def status(self, key: str) -> ModelStatus:
        self.resolve(key)
        return self._states[key].status

    def _build(self, config: ModelConfig) -> PromptCompressor:
        logger.info(f"Loading model '{config.key}': {config.model_name} ({config.size})")
        handle = self._loader(
            config,
            device_map=self.settings.device,
            max_force_token=self.settings.max_force_token,
        )
        return PromptCompressor(
            handle,
            oai_tokenizer=self._oai_tokenizer,
            max_batch_size=self.settings.max_batch_size,
            reference_encoding=self.settings.reference_encoding,
        )

    def _settle_load(self, state: ModelState, status: ModelStatus):
        state.status = status
        self._pending = self._pending_key = None
        self._load_task = None

    def _start_load(self, key: str, config: ModelConfig):
        pending = asyncio.get_running_loop().create_future()
        self._pending, self._pending_key = pending, key
        self._states[key].status = ModelStatus.LOADING
        # owned by the manager so a cancelled caller does not abort the shared load
        self._load_task = asyncio.create_task(self._load_in_background(key, config, pending))

    async def _load_in_background(self, key: str, config: ModelConfig, pending: asyncio.Future):
        state = self._states[key]
        try:
            compressor = await asyncio.to_thread(self._build, config)
        except asyncio.CancelledError:
            logger.warning(f"Load of model '{key}' was cancelled")
            self._settle_load(state, ModelStatus.UNLOADED)
            # waiters wake up, see the model unloaded and decide for themselves
            pending.set_result(None)
            raise
        except Exception as e:
            self._settle_load(state, ModelStatus.UNLOADED)
            error = DependencyError(f"Failed to load model '{key}': {e}")
            error.__cause__ = e
            logger.error(str(error))
            pending.set_exception(error)
            # mark retrieved when nobody is waiting
            pending.exception()
            return

        for other_key, other in self._states.items():
            if other_key != key and other.status is ModelStatus.READY:
                logger.info(f"Unloading model '{other_key}'")
                other.status, other.compressor = ModelStatus.UNLOADED, None
        state.compressor = compressor
        self._settle_load(state, ModelStatus.READY)
        self.active = key
        pending.set_result(compressor)
        logger.info(f"Model '{key}' is ready")

    async def load(self, key: str) -> PromptCompressor:
        config = self.resolve(key)
        state = self._states[key]
        while True:
            async with self._lock:
                if self._pending is None:
                    if state.status is ModelStatus.READY:
                        return state.compressor
                    self._start_load(key, config)
                pending, pending_key = self._pending, self._pending_key

            if pending_key != key:
                logger.debug(f"Waiting for in-flight load of '{pending_key}' before serving '{key}'")
            try:
                await asyncio.shield(pending)
            except DependencyError:
                if pending_key == key:
                    raise

    async def shutdown(self):
        """Cancels an in-flight load, if any, and waits for it to settle."""
        task = self._load_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    async def compress(
        self,
        key: str,
        request: CompressionRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CompressionResult:
        compressor = await self.load(key)
        return await asyncio.to_thread(compressor.run, request, cancel_token)
