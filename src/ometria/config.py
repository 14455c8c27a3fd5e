"""SDK configuration."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any

from .delivery import DEFAULT_BASE_URL


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class OmetriaConfig:
    """
    Configuration for an Ometria instance.

    Can be set via:
    - Constructor arguments
    - Environment variables (OMETRIA_*)
    - YAML or JSON file

    Immutable once built; a new instance is needed to change settings.
    """
    # Queue length that triggers an automatic flush
    flush_limit: int = field(
        default_factory=lambda: int(os.environ.get("OMETRIA_FLUSH_LIMIT", "20"))
    )

    # Events endpoint
    base_url: str = field(
        default_factory=lambda: os.environ.get("OMETRIA_BASE_URL", DEFAULT_BASE_URL)
    )

    # Request timeout (seconds)
    timeout: float = field(
        default_factory=lambda: float(os.environ.get("OMETRIA_TIMEOUT", "30"))
    )

    # Timed retry after a transport failure (seconds, 0 = disabled)
    retry_interval_seconds: float = field(
        default_factory=lambda: float(os.environ.get("OMETRIA_RETRY_INTERVAL", "0"))
    )

    is_logging_enabled: bool = field(
        default_factory=lambda: _env_bool("OMETRIA_LOGGING", False)
    )

    # Automatic tracking switches; the host app delivers the actual signals
    automatically_track_notifications: bool = True
    automatically_track_app_lifecycle: bool = True
    automatically_track_screen_listing: bool = False

    # Where first-launch flag and installation id are persisted (None = memory only)
    settings_path: str | None = field(
        default_factory=lambda: os.environ.get("OMETRIA_SETTINGS_PATH")
    )

    # Baseline context overrides
    app_id: str | None = None
    platform: str | None = None
    os_version: str | None = None

    def __post_init__(self):
        if self.flush_limit < 1:
            raise ValueError(f"flush_limit must be positive, got {self.flush_limit}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.retry_interval_seconds < 0:
            raise ValueError(
                f"retry_interval_seconds cannot be negative, got {self.retry_interval_seconds}"
            )
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {self.base_url!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OmetriaConfig:
        """Create config from dictionary."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str) -> OmetriaConfig:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> OmetriaConfig:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
