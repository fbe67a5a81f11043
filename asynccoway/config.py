"""
Platform configuration.
"""

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from asynccoway.exceptions.config import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://iocare.coway.com/api/v1"


class CowayConfig(BaseModel):
    """Configuration of the Coway platform."""

    model_config = ConfigDict(extra="ignore")

    platform: str = Field(default="CowayPlatform")
    name: str = Field(default="Coway")

    access_token: str = Field(..., min_length=1, description="IoCare bearer token")
    refresh_token: Optional[str] = Field(default=None)

    base_url: str = Field(default=DEFAULT_BASE_URL)

    polling_interval: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between two poll cycles"
    )
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout of a single IoCare request in seconds"
    )
    discovery_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts made to list the account devices before giving up"
    )
    discovery_backoff: float = Field(
        default=30.0,
        ge=0,
        description="Seconds to wait between two discovery attempts"
    )
    page_size: int = Field(default=100, ge=1, le=100)


def parse_coway_config(raw: Optional[Mapping[str, Any]]) -> Optional[CowayConfig]:
    """Validate a raw platform configuration.

    A configuration where any supplied key is null or an empty string is
    treated as not yet configured, the same as one that fails validation.

    Returns:
        The parsed configuration, or None if the platform is not configured
    """
    if not raw:
        logger.warning("The coway config is not yet configured.")
        return None
    for key, value in raw.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            logger.warning(f"The coway config is not yet configured (empty '{key}').")
            return None
    try:
        return CowayConfig.model_validate(dict(raw))
    except ValidationError as exc:
        logger.warning(f"The coway config is invalid: {exc}")
        return None


def load_config(path: Union[str, Path]) -> Optional[CowayConfig]:
    """Load and validate a JSON configuration file.

    Raises:
        ConfigurationError: If the file cannot be read or is not valid JSON
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Failed to read configuration {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration {path} must be a JSON object")
    return parse_coway_config(raw)
