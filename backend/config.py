"""Configuration management for the UHF RFID capture service.

Loads configuration from a JSON file with environment-based overrides.
The loaded configuration is read-only and is passed explicitly to the
decoder, recorder and publisher.
"""

import json
import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


def get_app_dir() -> Path:
    """Get the application directory.

    When running as PyInstaller bundle, returns the directory containing the .exe.
    When running as script, returns the backend directory.
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    return Path(__file__).parent


class DeviceConfig(BaseModel):
    """Identity of the reader device this process captures from."""

    model_config = ConfigDict(frozen=True)

    unique_id: str = "reader-01"
    mode: str = "auto"
    protocol: str = "kingjoin"


class StorageConfig(BaseModel):
    """Storage configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "data/capture.db"


class PersistConfig(BaseModel):
    """Bounds for saving a scan."""

    model_config = ConfigDict(frozen=True)

    timeout_seconds: float = Field(default=5.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: float = Field(default=0.5, ge=0)
    max_backoff_seconds: float = Field(default=5.0, ge=0)


class MqttConfig(BaseModel):
    """MQTT broker configuration for publishing decoded scans."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 1883
    username: str = ""
    password: str = ""
    use_tls: bool = False
    topic_scans: str = "reader/{unique_id}/scans"


class CaptureConfig(BaseModel):
    """Complete capture service configuration."""

    model_config = ConfigDict(frozen=True)

    device: DeviceConfig = Field(default_factory=DeviceConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    persist: PersistConfig = Field(default_factory=PersistConfig)
    mqtt: MqttConfig = Field(default_factory=MqttConfig)


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    config_path: str = Field(
        default="conf/capture-config.json",
        description="Path to JSON configuration file",
    )
    env: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    class Config:
        env_prefix = "UHF_"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings (read once per process)."""
    return Settings()


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    """Work out which JSON file to load.

    An explicit path wins. Otherwise the settings path is taken relative to
    the app directory. In both cases an environment variant
    (``<stem>.<env><suffix>``) is preferred when it exists.
    """
    settings = get_settings()

    if config_path:
        path = Path(config_path)
    else:
        path = get_app_dir() / settings.config_path

    env_path = path.parent / f"{path.stem}.{settings.env}{path.suffix}"
    if env_path.exists():
        logger.info(f"Using environment config: {env_path}")
        return env_path
    return path


def load_config(config_path: Optional[str] = None) -> CaptureConfig:
    """Load configuration from JSON file.

    Args:
        config_path: Optional path to config file. If not provided,
                     uses path from settings.

    Returns:
        CaptureConfig instance with loaded configuration.
    """
    path = resolve_config_path(config_path)

    if path.exists():
        logger.info(f"Loading configuration from: {path}")
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return CaptureConfig.model_validate(data)

    logger.warning(f"Config file not found at {path}, using defaults")
    return CaptureConfig()
