"""
Ometria SDK - event tracking with batched delivery.

Usage:
    from ometria import Ometria, OmetriaConfig, OmetriaBasket, OmetriaBasketItem

    Ometria.initialize(api_token="...", config=OmetriaConfig(flush_limit=10))
    ometria = Ometria.shared_instance()

    ometria.track_screen_viewed_event(screen_name="home")
    ometria.track_basket_updated_event(OmetriaBasket(
        total_price=12.0,
        currency="USD",
        items=[OmetriaBasketItem(product_id="product-1", quantity=1, price=12.0)],
    ))

    # Lifecycle signals from the host app flush the queue
    ometria.track_app_backgrounded_event()
"""

__version__ = "0.1.0"

from .basket import OmetriaBasket, OmetriaBasketItem
from .config import OmetriaConfig
from .delivery import (
    Acknowledged,
    Batch,
    Delivered,
    DeliveryClient,
    DeliveryOutcome,
    Rejected,
    RemoteError,
    TransportFailure,
)
from .events import ConstructionError, Event, OmetriaEventType
from .handler import EventHandler
from .queue import EventQueue
from .client import Ometria, OmetriaNotInitialized, initialize, shared_instance

__all__ = [
    # Facade
    "Ometria",
    "OmetriaConfig",
    "OmetriaNotInitialized",
    "initialize",
    "shared_instance",
    # Payload types
    "OmetriaBasket",
    "OmetriaBasketItem",
    "OmetriaEventType",
    "Event",
    "ConstructionError",
    # Core engine
    "EventQueue",
    "EventHandler",
    "DeliveryClient",
    "Batch",
    # Outcomes
    "DeliveryOutcome",
    "Delivered",
    "Rejected",
    "TransportFailure",
    "Acknowledged",
    "RemoteError",
]
