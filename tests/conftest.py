"""Shared test fixtures for the Ometria SDK tests."""

from __future__ import annotations

import threading
from typing import Sequence

import pytest

from ometria.client import Ometria
from ometria.config import OmetriaConfig
from ometria.defaults import OmetriaDefaults
from ometria.delivery import Acknowledged, Delivered, DeliveryOutcome
from ometria.events import Event
from ometria.handler import EventHandler


# =============================================================================
# Delivery doubles
# =============================================================================

class ScriptedSender:
    """
    Stand-in for DeliveryClient.

    Returns scripted outcomes in order (Delivered once the script runs
    out) and records every batch it was handed. With `gate` set, submit
    blocks until the gate is opened, which keeps a flush in flight.
    """

    def __init__(self, outcomes: Sequence[DeliveryOutcome] = (), gate: threading.Event | None = None):
        self.outcomes = list(outcomes)
        self.gate = gate
        self.batches: list[list[Event]] = []
        self.validated: list[list[Event]] = []
        self.entered = threading.Event()

    def submit(self, events: Sequence[Event]) -> DeliveryOutcome:
        self.batches.append(list(events))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.outcomes:
            return self.outcomes.pop(0)
        return Delivered()

    def validate(self, events: Sequence[Event]):
        self.validated.append(list(events))
        return Acknowledged(body={"status": "ok"})

    @property
    def submit_count(self) -> int:
        return len(self.batches)


@pytest.fixture
def sender() -> ScriptedSender:
    return ScriptedSender()


@pytest.fixture
def make_handler():
    """Factory for event handlers that are closed after the test."""
    handlers: list[EventHandler] = []

    def factory(delivery, **kwargs) -> EventHandler:
        handler = EventHandler(delivery=delivery, **kwargs)
        handlers.append(handler)
        return handler

    yield factory

    for handler in handlers:
        handler.close(flush=False)


# =============================================================================
# Facade fixtures
# =============================================================================

@pytest.fixture
def config() -> OmetriaConfig:
    """Test configuration with a limit high enough to never auto-flush."""
    return OmetriaConfig(
        flush_limit=100,
        base_url="https://events.test",
        timeout=5.0,
        retry_interval_seconds=0.0,
        is_logging_enabled=True,
        settings_path=None,
        app_id="com.example.shop",
        platform="TestOS",
        os_version="1.0",
    )


@pytest.fixture
def ometria(config, sender):
    """An Ometria instance wired to the scripted sender."""
    instance = Ometria("test-token", config, delivery=sender, defaults=OmetriaDefaults())
    yield instance
    instance.close(flush=False)


@pytest.fixture(autouse=True)
def reset_shared_instance():
    """Forget the process-wide instance between tests."""
    yield
    Ometria.reset_shared_instance()
