"""
Configuration management
"""
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent / "data" / "srd"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


class Settings(BaseModel):
    """Engine settings"""

    # Rules data
    srd_data_dir: Path = Path(os.getenv("SRD_DATA_DIR", str(DEFAULT_DATA_DIR)))

    # Logging
    log_level: str = os.getenv("SRD_LOG_LEVEL", "INFO")

    # Whether a spell lost to a failed concentration check still spends its slot
    consume_slot_on_disruption: bool = _env_bool("SRD_CONSUME_SLOT_ON_DISRUPTION", True)

    # Round guard for run_until_complete (0 = unbounded)
    max_rounds: int = _env_int("SRD_MAX_ROUNDS") or 0

    # Seed for the default dice roller
    random_seed: Optional[int] = _env_int("SRD_RANDOM_SEED")

    model_config = ConfigDict(frozen=True)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("max_rounds")
    @classmethod
    def check_max_rounds(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_rounds must be >= 0")
        return value


# Default settings instance
settings = Settings()


def validate_config(config: Optional[Settings] = None) -> bool:
    """
    Check that the configuration is usable

    Returns:
        bool: whether the rules data directory exists
    """
    config = config or settings
    if not config.srd_data_dir.is_dir():
        logger.warning("SRD data directory does not exist: %s", config.srd_data_dir)
        return False
    return True


def configure_logging(level: Optional[str] = None) -> None:
    """Install a basic root handler at the configured level."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
