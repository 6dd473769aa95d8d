import os
import sys

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model: str = "bert"
    model_path: str = "./models"
    device: str = "cpu"
    max_batch_size: int = 50
    max_force_token: int = 100
    reference_encoding: str = "o200k_base"
    log_level: str = "INFO"
    preload: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            model=os.getenv("PROMPTPIPER_MODEL", "bert"),
            model_path=os.getenv("PROMPTPIPER_MODEL_PATH", "./models"),
            device=os.getenv("PROMPTPIPER_DEVICE", "cpu"),
            max_batch_size=int(os.getenv("PROMPTPIPER_MAX_BATCH_SIZE", "50")),
            max_force_token=int(os.getenv("PROMPTPIPER_MAX_FORCE_TOKEN", "100")),
            reference_encoding=os.getenv("PROMPTPIPER_REFERENCE_ENCODING", "o200k_base"),
            log_level=os.getenv("PROMPTPIPER_LOG_LEVEL", "INFO"),
            preload=_env_bool("PROMPTPIPER_PRELOAD", False),
        )


def configure_logging(level: str = "INFO"):
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
