"""On-device settings: first-launch flag, installation id, last launch."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


@dataclass
class OmetriaDefaults:
    """
    Small key store backing the SDK's persistent flags.

    Writes go through a temp file and an atomic replace. Without a path
    values live in memory for the lifetime of the process.
    """
    path: str | None = None

    _values: dict[str, Any] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def __post_init__(self):
        if self.path:
            self._values = self._load()

    def _load(self) -> dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed settings file {self.path}")
            return {}
        return data

    def _save(self) -> None:
        """
        Persist current values (caller holds lock).

        A failed write is logged and the values stay in memory.
        """
        if not self.path:
            return
        target = Path(self.path)
        tmp = target.with_suffix(target.suffix + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(self._values, f)
            os.replace(tmp, target)
        except OSError as e:
            logger.warning(f"Could not write settings file {self.path}, keeping values in memory: {e}")
            try:
                tmp.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.debug(f"Could not remove {tmp}: {cleanup_error}")

    def _get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def _set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value
            self._save()

    @property
    def is_first_launch(self) -> bool:
        return bool(self._get("isFirstLaunch", True))

    @is_first_launch.setter
    def is_first_launch(self, value: bool) -> None:
        self._set("isFirstLaunch", bool(value))

    @property
    def installation_id(self) -> str | None:
        return self._get("installationId")

    @installation_id.setter
    def installation_id(self, value: str | None) -> None:
        self._set("installationId", value)

    @property
    def last_launch_date(self) -> datetime | None:
        raw = self._get("lastLaunchDate")
        return datetime.fromisoformat(raw) if raw else None

    @last_launch_date.setter
    def last_launch_date(self, value: datetime) -> None:
        self._set("lastLaunchDate", value.isoformat())
