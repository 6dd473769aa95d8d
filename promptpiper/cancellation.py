import threading
from typing import Optional

from loguru import logger

from .exceptions import CompressionCancelled


class CancellationToken:
    """
    Cooperative cancellation flag shared between the caller and a running
    compression. The pipeline calls `raise_if_cancelled` between its slow
    stages (tokenization, every inference batch, selection).
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled"):
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = ""):
        if self._event.is_set():
            logger.debug(f"Compression cancelled at stage '{stage}': {self.reason}")
            raise CompressionCancelled(f"{self.reason} (stage: {stage})" if stage else self.reason)


def check_cancelled(cancel_token: Optional[CancellationToken], stage: str = ""):
    if cancel_token is not None:
        cancel_token.raise_if_cancelled(stage)
