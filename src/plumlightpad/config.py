# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Client settings.

Settings live in a YAML file. Account credentials never do: they are read
from the environment only.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .const import (
    API_BASE_URL,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_SESSION_LIFETIME,
)
from .models import DeviceEndpoint

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".plumlightpad"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

ENV_EMAIL = "PLUM_EMAIL"
ENV_PASSWORD = "PLUM_PASSWORD"


@dataclass
class ClientSettings:
    """Tunables for talking to the house service and to Lightpads."""

    api_base_url: str = API_BASE_URL
    house_id: Optional[str] = None
    port: int = DEFAULT_PORT
    encrypted: bool = True
    verify_certificate: bool = False
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    session_lifetime: Optional[float] = DEFAULT_SESSION_LIFETIME

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClientSettings":
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown settings: %s", ", ".join(sorted(unknown)))
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def load(cls, config_file: Path = DEFAULT_CONFIG_FILE) -> "ClientSettings":
        """Load settings from file, falling back to defaults if it is missing."""
        if not config_file.exists():
            return cls()

        with open(config_file, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{config_file} must contain a YAML mapping")
        return cls.from_dict(data)

    def save(self, config_file: Path = DEFAULT_CONFIG_FILE) -> None:
        """Save settings to file."""
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, "w") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False, default_flow_style=False)

    def endpoint(self, host: str, lightpad_id: str = "", load_id: str = "") -> DeviceEndpoint:
        """Build an endpoint for a Lightpad using these settings."""
        return DeviceEndpoint(
            host=host,
            port=self.port,
            lightpad_id=lightpad_id,
            load_id=load_id,
            encrypted=self.encrypted,
            verify_certificate=self.verify_certificate,
        )


def credentials_from_env() -> Optional[tuple[str, str]]:
    """Return (email, password) from the environment, if both are set."""
    email = os.environ.get(ENV_EMAIL)
    password = os.environ.get(ENV_PASSWORD)
    if not email or not password:
        return None
    return email, password
