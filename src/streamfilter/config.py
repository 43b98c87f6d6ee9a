"""Configuration management for streamfilter.

Configuration Discovery Precedence (Highest to Lowest Priority):
===============================================================

1. **STREAMFILTER_CONFIG_DIR Environment Variable** (Highest Priority)
   - Looks for: `${STREAMFILTER_CONFIG_DIR}/streamfilter.yaml`
   - Use case: Development, testing, custom deployments

2. **~/.streamfilter Directory** (Fallback)
   - Looks for: `~/.streamfilter/streamfilter.yaml`
   - Use case: Default user installations

The first existing `streamfilter.yaml` found in this order is used.
If none is found, defaults apply. Individual settings can also be given as
environment variables (`STREAMFILTER_READ_BLOCK_SIZE=4096`).

Example streamfilter.yaml:
--------
streamfilter:
  debug: true
  read_block_size: 4096
  flush_read_on_eof: false
  filters:
    - dechunk
    - name: zlib.deflate
      params:
        level: 9
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "streamfilter.yaml"


class FilterEntry(BaseModel):
    """A named built-in transform with optional parameters."""

    name: str
    """Built-in transform name (e.g. 'string.toupper')"""

    params: dict[str, Any] = Field(default_factory=dict)
    """Keyword arguments passed to the transform factory"""


class StreamFilterConfig(BaseSettings):
    """Main configuration for streamfilter that reads from streamfilter.yaml."""

    model_config = SettingsConfigDict(
        env_prefix="STREAMFILTER_",
        case_sensitive=False,
        extra="ignore",
    )

    # Core settings
    debug: bool = False

    # Bytes requested from the raw stream per read-chain dispatch
    read_block_size: int = 8192

    # Deliver end-of-stream to the read chain when the raw source hits EOF
    flush_read_on_eof: bool = False

    # Default write chain for the CLI (names or {"name": ..., "params": {...}})
    filters: list[str | FilterEntry] = Field(default_factory=list)

    # Path the configuration was loaded from
    config_path: Path | None = None

    @field_validator("read_block_size")
    @classmethod
    def _positive_block_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("read_block_size must be positive")
        return value

    def filter_entries(self) -> list[FilterEntry]:
        """Default filters normalized to FilterEntry objects."""
        return [FilterEntry(name=f) if isinstance(f, str) else f for f in self.filters]

    @classmethod
    def from_yaml(cls, yaml_path: Path, **kwargs: Any) -> "StreamFilterConfig":
        """Load configuration from a streamfilter.yaml file.

        Args:
            yaml_path: Path to the streamfilter.yaml file
            **kwargs: Overrides applied on top of the file

        Returns:
            StreamFilterConfig instance
        """
        data: dict[str, Any] = {}
        if yaml_path.exists():
            with yaml_path.open() as f:
                loaded = yaml.safe_load(f) or {}
            section = loaded.get("streamfilter", {})
            if isinstance(section, dict):
                data.update(section)
            else:
                logger.warning(f"Invalid streamfilter section in {yaml_path}: {type(section)}")

        data.update(kwargs)
        return cls(config_path=yaml_path, **data)


def configure_logging(config: StreamFilterConfig) -> None:
    """Raise the streamfilter loggers to DEBUG when debug is enabled."""
    if not config.debug:
        return
    package_logger = logging.getLogger("streamfilter")
    package_logger.setLevel(logging.DEBUG)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(name)s:%(levelname)s: %(message)s"))
        package_logger.addHandler(handler)


# Global configuration instance
_config_instance: StreamFilterConfig | None = None
_config_lock = threading.Lock()


def get_config() -> StreamFilterConfig:
    """Get the configuration instance."""
    global _config_instance

    if _config_instance is None:
        with _config_lock:
            # Double-check locking pattern
            if _config_instance is None:
                env_config_dir = os.environ.get("STREAMFILTER_CONFIG_DIR")
                if env_config_dir:
                    config_dir = Path(env_config_dir)
                    logger.info(f"Using config directory from environment: {config_dir}")
                else:
                    config_dir = Path.home() / ".streamfilter"

                yaml_path = config_dir / CONFIG_FILENAME
                if yaml_path.exists():
                    logger.info(f"Loading streamfilter config from: {yaml_path}")
                    _config_instance = StreamFilterConfig.from_yaml(yaml_path)
                else:
                    logger.debug(f"{yaml_path} not found, using default config")
                    _config_instance = StreamFilterConfig()

    return _config_instance


def set_config_instance(config: StreamFilterConfig) -> None:
    """Set the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = config


def clear_config_instance() -> None:
    """Clear the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = None
