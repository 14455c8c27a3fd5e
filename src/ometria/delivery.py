"""Batch serialization and delivery to the mobile events endpoint."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence, Union

import httpx

from .events import Event, format_timestamp


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://mobile-events.ometria.com"
SUBMIT_PATH = "/v1/mobile-events"
VALIDATE_PATH = "/v1/mobile-events/validate"
AUTH_HEADER = "X-Ometria-Auth"


# =============================================================================
# Outcomes
# =============================================================================

@dataclass(frozen=True)
class Delivered:
    """The endpoint accepted the batch."""
    status_code: int = 200
    body: str = ""


@dataclass(frozen=True)
class Rejected:
    """
    The endpoint refused the batch. Retrying the same batch will not help.

    status_code is 0 when the request could not be built (bad api token).
    """
    reason: str
    status_code: int = 400


@dataclass(frozen=True)
class TransportFailure:
    """The attempt did not complete (network, timeout, 5xx, serialization)."""
    cause: str
    status_code: int | None = None


DeliveryOutcome = Union[Delivered, Rejected, TransportFailure]


@dataclass(frozen=True)
class Acknowledged:
    """Validation endpoint accepted the batch."""
    status_code: int = 200
    body: Any = None


@dataclass(frozen=True)
class RemoteError:
    """Validation did not succeed, for whatever reason."""
    message: str
    status_code: int | None = None


ValidationResult = Union[Acknowledged, RemoteError]


# =============================================================================
# Batch
# =============================================================================

@dataclass(frozen=True)
class Batch:
    """
    Ordered snapshot of drained events.

    `sent_at` is stamped when the batch goes on the wire.
    """
    events: tuple[Event, ...]
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.events:
            raise ValueError("A batch needs at least one event")

    def __len__(self) -> int:
        return len(self.events)

    def to_envelope(self) -> dict[str, Any]:
        """
        Build the request body.

        Baseline fields of the first event sit at the top level, next to
        the serialized events and the `dtSent` marker.
        """
        envelope = self.events[0].base_dict()
        envelope["events"] = [event.to_dict() for event in self.events]
        envelope["dtSent"] = format_timestamp(self.sent_at)
        return envelope


# =============================================================================
# Client
# =============================================================================

@dataclass(frozen=True)
class DeliveryClient:
    """
    Stateless sender for event batches.

    Usage:
        client = DeliveryClient(api_token="...")
        outcome = client.submit(events)

    Never raises for remote problems; every failure is mapped to a typed
    outcome. Safe to share between threads.
    """
    api_token: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0

    # Custom httpx transport (tests use httpx.MockTransport)
    transport: httpx.BaseTransport | None = None

    def submit(self, events: Sequence[Event]) -> DeliveryOutcome:
        """
        Send a batch to the ingestion endpoint.

        Args:
            events: Non-empty ordered events

        Returns:
            Delivered on 2xx, Rejected on 4xx, TransportFailure otherwise
        """
        batch = self._make_batch(events)

        try:
            body = self._encode(batch)
        except (TypeError, ValueError) as e:
            logger.error(f"Could not serialize batch of {len(batch)} events: {e}")
            return TransportFailure(cause=f"serialization failed: {e}")

        logger.debug(f"Performing flush of {len(batch)} events: {body.decode('utf-8')}")

        try:
            response = self._post(SUBMIT_PATH, body)
        except UnicodeEncodeError as e:
            # Header values must be ASCII; a bad token fails the same way every time
            logger.error(f"API token cannot be sent as a header: {e}")
            return Rejected(reason=f"invalid api token: {e}", status_code=0)
        except httpx.TimeoutException as e:
            logger.error(f"Flush timed out after {self.timeout}s: {e}")
            return TransportFailure(cause=f"timeout: {e}")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Flush failed: {e}")
            return TransportFailure(cause=str(e) or type(e).__name__)

        status = response.status_code
        if 200 <= status < 300:
            logger.debug(f"Server response: {status} {response.text}")
            return Delivered(status_code=status, body=response.text)
        if 400 <= status < 500:
            logger.error(f"Batch rejected: {status} {response.text[:500]}")
            return Rejected(reason=response.text, status_code=status)

        logger.error(f"Flush failed with status {status}")
        return TransportFailure(cause=f"HTTP {status}: {response.text[:200]}", status_code=status)

    def validate(self, events: Sequence[Event]) -> ValidationResult:
        """
        Send a batch to the validation endpoint.

        Nothing is stored server side; use this to check a batch's schema.
        """
        batch = self._make_batch(events)

        try:
            body = self._encode(batch)
            response = self._post(VALIDATE_PATH, body)
        except UnicodeEncodeError as e:
            logger.error(f"API token cannot be sent as a header: {e}")
            return RemoteError(message=f"invalid api token: {e}")
        except (TypeError, ValueError) as e:
            logger.error(f"Could not serialize batch for validation: {e}")
            return RemoteError(message=f"serialization failed: {e}")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Validation request failed: {e}")
            return RemoteError(message=str(e) or type(e).__name__)

        if 200 <= response.status_code < 300:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            logger.info(f"Validation response: {payload}")
            return Acknowledged(status_code=response.status_code, body=payload)

        logger.error(f"Validation failed: {response.status_code} {response.text[:500]}")
        return RemoteError(message=response.text, status_code=response.status_code)

    def _make_batch(self, events: Sequence[Event]) -> Batch:
        if isinstance(events, Batch):
            events = events.events
        if not events:
            raise ValueError("Cannot deliver an empty batch")
        return Batch(events=tuple(events))

    def _encode(self, batch: Batch) -> bytes:
        return json.dumps(batch.to_envelope(), allow_nan=False).encode("utf-8")

    def _get_headers(self) -> dict[str, str]:
        """Build request headers."""
        return {
            AUTH_HEADER: self.api_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _post(self, path: str, body: bytes) -> httpx.Response:
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            return client.post(
                f"{self.base_url.rstrip('/')}{path}",
                headers=self._get_headers(),
                content=body,
            )
