"""Public Ometria facade and the process-wide instance."""

from __future__ import annotations

import logging
import platform
import threading
import uuid
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Any, Mapping

from . import __version__
from .basket import OmetriaBasket
from .config import OmetriaConfig
from .defaults import OmetriaDefaults
from .delivery import DeliveryClient
from .events import ConstructionError, OmetriaEventType
from .handler import BatchSender, EventHandler
from .notifications import NotificationHandler


logger = logging.getLogger(__name__)

_package_logger = logging.getLogger("ometria")


class OmetriaNotInitialized(RuntimeError):
    """shared_instance() was called before initialize()."""
    pass


class Ometria:
    """
    Entry point for tracking events.

    Usage:
        from ometria import Ometria, OmetriaConfig

        Ometria.initialize(api_token="...", config=OmetriaConfig(flush_limit=10))
        Ometria.shared_instance().track_product_viewed_event(product_id="sku-1")

    Tracking methods never raise; problems are logged under the
    "ometria" logger.
    """

    _instance: Ometria | None = None
    _instance_lock = threading.Lock()

    def __init__(
        self,
        api_token: str,
        config: OmetriaConfig | None = None,
        delivery: BatchSender | None = None,
        defaults: OmetriaDefaults | None = None,
    ):
        self.api_token = api_token
        self.config = config or OmetriaConfig()
        self.defaults = defaults or OmetriaDefaults(path=self.config.settings_path)

        if delivery is None:
            delivery = DeliveryClient(
                api_token=api_token,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
            )

        self.event_handler = EventHandler(
            delivery=delivery,
            flush_limit=self.config.flush_limit,
            retry_interval_seconds=self.config.retry_interval_seconds,
        )
        self.notification_handler = NotificationHandler(track=self._track_event)

        self._is_logging_enabled = False
        self.is_logging_enabled = self.config.is_logging_enabled

    # -------------------------------------------------------------------------
    # Process-wide instance
    # -------------------------------------------------------------------------

    @classmethod
    def initialize(
        cls,
        api_token: str,
        config: OmetriaConfig | None = None,
        **kwargs: Any,
    ) -> Ometria:
        """
        Create the shared instance and record the app launch.

        Calling it again replaces (and closes) the previous instance.
        """
        ometria = cls(api_token, config, **kwargs)
        with cls._instance_lock:
            previous, cls._instance = cls._instance, ometria
        if previous is not None:
            previous.close()
        ometria._handle_application_launch()
        return ometria

    @classmethod
    def shared_instance(cls) -> Ometria:
        """The instance created by initialize()."""
        instance = cls._instance
        if instance is None:
            raise OmetriaNotInitialized(
                "Ometria.initialize(api_token=...) must be called before shared_instance()"
            )
        return instance

    @classmethod
    def reset_shared_instance(cls) -> None:
        """Close and forget the shared instance."""
        with cls._instance_lock:
            instance, cls._instance = cls._instance, None
        if instance is not None:
            instance.close(flush=False)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    @property
    def is_logging_enabled(self) -> bool:
        return self._is_logging_enabled

    @is_logging_enabled.setter
    def is_logging_enabled(self, enabled: bool) -> None:
        self._is_logging_enabled = enabled
        if enabled:
            _package_logger.setLevel(logging.DEBUG)
            logger.debug("Logger Enabled")
        else:
            logger.debug("Logger Disabled")
            _package_logger.setLevel(logging.CRITICAL + 1)

    # -------------------------------------------------------------------------
    # Application launch
    # -------------------------------------------------------------------------

    def _handle_application_launch(self) -> None:
        self.defaults.last_launch_date = datetime.now(timezone.utc)
        if self.defaults.is_first_launch:
            self._handle_app_install()
        self.track_app_launched_event()

    def _handle_app_install(self) -> None:
        self.defaults.is_first_launch = False
        if self.defaults.installation_id is None:
            self.defaults.installation_id = str(uuid.uuid4())
        self.track_app_installed_event()

    def _base_context(self) -> dict[str, Any]:
        """Baseline fields sent once per batch."""
        context = {
            "platform": self.config.platform or platform.system(),
            "osVersion": self.config.os_version or platform.release(),
            "sdkVersion": __version__,
        }
        if self.defaults.installation_id:
            context["installationId"] = self.defaults.installation_id
        if self.config.app_id:
            context["appId"] = self.config.app_id
        return context

    # -------------------------------------------------------------------------
    # Event tracking
    # -------------------------------------------------------------------------

    def _track_event(self, kind: OmetriaEventType, data: Mapping[str, Any] | None = None) -> None:
        try:
            self.event_handler.process_event(kind, data or {}, self._base_context())
        except ConstructionError as e:
            logger.error(f"Dropping {kind.value} event with invalid data: {e}")

    # Application related events

    def track_app_installed_event(self) -> None:
        self._track_event(OmetriaEventType.APP_INSTALLED)

    def track_app_launched_event(self) -> None:
        self._track_event(OmetriaEventType.APP_LAUNCHED)

    def track_app_backgrounded_event(self) -> None:
        """Lifecycle signal: the app went to the background. Flushes."""
        self._track_event(OmetriaEventType.APP_BACKGROUNDED)
        self.event_handler.flush_events()

    def track_app_foregrounded_event(self) -> None:
        """Lifecycle signal: the app came back. Flushes and reports buffered notifications."""
        self._track_event(OmetriaEventType.APP_FOREGROUNDED)
        self.event_handler.flush_events()
        self.notification_handler.process_delivered_notifications()

    def track_screen_viewed_event(
        self,
        screen_name: str,
        additional_info: Mapping[str, Any] | None = None,
    ) -> None:
        data = dict(additional_info or {})
        data["page"] = screen_name
        self._track_event(OmetriaEventType.SCREEN_VIEWED, data)

    def track_profile_identified_event(
        self,
        email: str | None = None,
        customer_id: str | None = None,
    ) -> None:
        """Identify the profile by email or customer id (exactly one)."""
        if (email is None) == (customer_id is None):
            logger.error("track_profile_identified_event needs exactly one of email or customer_id")
            return
        if email is not None:
            self._track_event(OmetriaEventType.PROFILE_IDENTIFIED, {"email": email})
        else:
            self._track_event(OmetriaEventType.PROFILE_IDENTIFIED, {"customerId": customer_id})

    def track_profile_deidentified_event(self) -> None:
        self._track_event(OmetriaEventType.PROFILE_DEIDENTIFIED)

    # Product related events

    def track_product_viewed_event(self, product_id: str) -> None:
        self._track_event(OmetriaEventType.PRODUCT_VIEWED, {"productId": product_id})

    def track_product_category_viewed_event(self, category: str) -> None:
        self._track_event(OmetriaEventType.PRODUCT_CATEGORY_VIEWED, {"category": category})

    def track_wishlist_added_to_event(self, product_id: str) -> None:
        self._track_event(OmetriaEventType.WISHLIST_ADDED_TO, {"productId": product_id})

    def track_wishlist_removed_from_event(self, product_id: str) -> None:
        self._track_event(OmetriaEventType.WISHLIST_REMOVED_FROM, {"productId": product_id})

    def track_basket_viewed_event(self) -> None:
        self._track_event(OmetriaEventType.BASKET_VIEWED)

    def track_basket_updated_event(self, basket: OmetriaBasket) -> None:
        self._track_event(OmetriaEventType.BASKET_UPDATED, {"basket": basket.to_payload()})

    def track_order_completed_event(self, order_id: str, basket: OmetriaBasket) -> None:
        self._track_event(
            OmetriaEventType.ORDER_COMPLETED,
            {"orderId": order_id, "basket": basket.to_payload()},
        )

    # Notification related events

    def track_push_token_refreshed_event(self, push_token: str) -> None:
        """New push token. Flushes so the token reaches the server promptly."""
        self._track_event(OmetriaEventType.PUSH_TOKEN_REFRESHED, {"pushToken": push_token})
        self.event_handler.flush_events()

    def track_notification_received_event(self, notification_id: str) -> None:
        self._track_event(OmetriaEventType.NOTIFICATION_RECEIVED, {"notificationId": notification_id})

    def track_notification_interacted_event(self, notification_id: str) -> None:
        self._track_event(
            OmetriaEventType.NOTIFICATION_INTERACTED, {"notificationId": notification_id}
        )

    # Other events

    def track_deep_link_opened_event(self, link: str, screen_name: str) -> None:
        self._track_event(OmetriaEventType.DEEP_LINK_OPENED, {"link": link, "page": screen_name})

    def track_custom_event(
        self,
        custom_event_type: str,
        additional_info: Mapping[str, Any] | None = None,
    ) -> None:
        data = dict(additional_info or {})
        data["customEventType"] = custom_event_type
        self._track_event(OmetriaEventType.CUSTOM, data)

    # -------------------------------------------------------------------------
    # Flush / clear
    # -------------------------------------------------------------------------

    def flush(self) -> Future:
        """Send everything queued now. The future resolves to the outcome."""
        return self.event_handler.flush_events()

    def clear(self) -> None:
        """Discard every pending event."""
        self.event_handler.clear_events()

    def validate_pending(self) -> Future:
        """Dry-run the pending events against the validation endpoint."""
        return self.event_handler.validate_pending()

    def close(self, flush: bool = True) -> None:
        """Flush (optionally) and stop the background worker."""
        self.event_handler.close(flush=flush)


def initialize(api_token: str, config: OmetriaConfig | None = None, **kwargs: Any) -> Ometria:
    """Create the process-wide instance. See Ometria.initialize."""
    return Ometria.initialize(api_token, config, **kwargs)


def shared_instance() -> Ometria:
    """The process-wide instance."""
    return Ometria.shared_instance()
