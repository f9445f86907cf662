"""
Module for loading uploader configuration.
"""
import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .auth import DEFAULT_AUTHORITY
from .byte_range import DEFAULT_CHUNK_SIZE, validate_chunk_size
from .client import DEFAULT_BASE_URL
from .errors import ValidationError
from .retry import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_DELAY, DEFAULT_MAX_RETRIES
from .transfer import DEFAULT_SMALL_FILE_THRESHOLD

logger = logging.getLogger(__name__)

# Environment variable -> config field
ENV_VARS = {
    "CLIENT_ID": "client_id",
    "CLIENT_SECRET": "client_secret",
    "TENANT_ID": "tenant_id",
    "USER_ID": "user_id",
}


@dataclass
class UploaderConfig:
    """Settings for the uploader."""
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    authority: str = DEFAULT_AUTHORITY
    chunk_size: int = DEFAULT_CHUNK_SIZE
    small_file_threshold: int = DEFAULT_SMALL_FILE_THRESHOLD
    max_concurrency: int = 4
    max_retries: int = DEFAULT_MAX_RETRIES
    initial_delay: float = DEFAULT_INITIAL_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    timeout: float = 60
    verify_hash: bool = True

    def __post_init__(self):
        """Validate the configuration."""
        validate_chunk_size(self.chunk_size)
        if self.max_concurrency < 1:
            raise ValidationError("max_concurrency must be at least 1")
        if self.max_retries < 0:
            raise ValidationError("max_retries cannot be negative")
        if self.initial_delay < 0 or self.max_delay < self.initial_delay:
            raise ValidationError("Retry delays must satisfy 0 <= initial_delay <= max_delay")
        if self.small_file_threshold < 0:
            raise ValidationError("small_file_threshold cannot be negative")

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret and self.tenant_id)

    @classmethod
    def from_sources(cls, config_file: Optional[Path] = None,
                     overrides: Optional[Mapping[str, Any]] = None,
                     environ: Optional[Mapping[str, str]] = None) -> "UploaderConfig":
        """Build a config from a JSON file, the environment and explicit overrides.

        Later sources win. Overrides set to None are ignored.

        Args:
            config_file: Optional JSON config file
            overrides: Values from the command line
            environ: Environment mapping, os.environ by default

        Returns:
            UploaderConfig object
        """
        environ = os.environ if environ is None else environ
        known = {f.name for f in fields(cls)}

        values: Dict[str, Any] = {}
        for key, value in load_config(config_file).items():
            if key in known:
                values[key] = value
            else:
                logger.warning(f"Ignoring unknown config key: {key}")

        for var, key in ENV_VARS.items():
            if environ.get(var):
                values[key] = environ[var]

        for key, value in (overrides or {}).items():
            if value is not None:
                values[key] = value

        return cls(**values)


def load_config(config_file: Optional[Path] = None) -> dict:
    """Load configuration from a JSON file.

    Args:
        config_file: Path to config file

    Returns:
        Dictionary of configuration values
    """
    if not config_file:
        return {}

    try:
        with open(config_file) as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ValidationError(f"Error loading config file {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ValidationError(f"Config file {config_file} must contain a JSON object")
    return data
