"""Tracked event types."""

from __future__ import annotations

import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any


class OmetriaEventType(str, Enum):
    """Kinds of events the SDK knows how to report."""
    APP_INSTALLED = "appInstalled"
    APP_LAUNCHED = "appLaunched"
    APP_BACKGROUNDED = "appBackgrounded"
    APP_FOREGROUNDED = "appForegrounded"
    SCREEN_VIEWED = "screenViewed"
    PROFILE_IDENTIFIED = "profileIdentified"
    PROFILE_DEIDENTIFIED = "profileDeidentified"
    PRODUCT_VIEWED = "productViewed"
    PRODUCT_CATEGORY_VIEWED = "productCategoryViewed"
    WISHLIST_ADDED_TO = "wishlistAddedTo"
    WISHLIST_REMOVED_FROM = "wishlistRemovedFrom"
    BASKET_VIEWED = "basketViewed"
    BASKET_UPDATED = "basketUpdated"
    ORDER_COMPLETED = "orderCompleted"
    PUSH_TOKEN_REFRESHED = "pushTokenRefreshed"
    NOTIFICATION_RECEIVED = "notificationReceived"
    NOTIFICATION_INTERACTED = "notificationInteracted"
    DEEP_LINK_OPENED = "deepLinkOpened"
    CUSTOM = "custom"


class ConstructionError(ValueError):
    """Raised when an event payload holds a value that cannot go on the wire."""
    pass


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2020-08-19T10:00:00.123Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _freeze(value: Any, path: str) -> Any:
    # bool is checked before the numeric types since it subclasses int
    if isinstance(value, (str, bool)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ConstructionError(f"{path}: non-finite number {value!r}")
        return value
    if isinstance(value, Mapping):
        frozen = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ConstructionError(f"{path}: mapping key {key!r} is not a string")
            frozen[key] = _freeze(item, f"{path}.{key}")
        return MappingProxyType(frozen)
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item, f"{path}[{i}]") for i, item in enumerate(value))
    raise ConstructionError(f"{path}: unsupported value type {type(value).__name__}")


def validate_payload(payload: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """
    Check a payload and return a read-only deep copy of it.

    Accepted values are strings, numbers, booleans and nested mappings or
    sequences of those.

    Raises:
        ConstructionError: If any value falls outside that set
    """
    if payload is None:
        return MappingProxyType({})
    if not isinstance(payload, Mapping):
        raise ConstructionError(f"payload must be a mapping, got {type(payload).__name__}")
    return _freeze(payload, "payload")


def thaw(value: Any) -> Any:
    """Turn a frozen payload value back into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


@dataclass(frozen=True, eq=False)
class Event:
    """
    A single tracked occurrence.

    Events are immutable and compare by identity: two events with the
    same kind and payload are still distinct queue entries.
    """
    kind: str
    payload: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    # Baseline fields (installation id, app id, platform...) merged into
    # the batch envelope from the first event
    context: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        kind = self.kind.value if isinstance(self.kind, OmetriaEventType) else self.kind
        if not isinstance(kind, str) or not kind:
            raise ConstructionError(f"event kind must be a non-empty string, got {self.kind!r}")
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "payload", validate_payload(self.payload))
        object.__setattr__(self, "context", validate_payload(self.context))

    @classmethod
    def create(
        cls,
        kind: OmetriaEventType | str,
        payload: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> Event:
        """Factory stamping the event with the current UTC time."""
        return cls(
            kind=kind,
            payload=payload or {},
            context=context or {},
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire form: reserved fields plus the flattened payload."""
        data = thaw(self.payload)
        data.update({
            "eventId": self.event_id,
            "eventType": self.kind,
            "dtOccurred": format_timestamp(self.timestamp),
        })
        return data

    def base_dict(self) -> dict[str, Any]:
        """Baseline fields contributed to a batch envelope."""
        return thaw(self.context)

    def __repr__(self) -> str:
        return f"Event(kind={self.kind!r}, event_id={self.event_id!r})"
