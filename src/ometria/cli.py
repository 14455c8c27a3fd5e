#!/usr/bin/env python3
"""
CLI tool for sending sample events to the Ometria mobile events endpoint.

Usage:
    ometria events
    ometria send basketViewed basketUpdated --token $OMETRIA_API_TOKEN
    ometria validate --token $OMETRIA_API_TOKEN
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from colorama import Fore, Style, init as colorama_init

from .basket import OmetriaBasket, OmetriaBasketItem
from .client import Ometria
from .config import OmetriaConfig
from .delivery import Acknowledged, Delivered, Rejected
from .events import OmetriaEventType


SAMPLE_PRODUCT_ID = "sample_product_id"
DEFAULT_KINDS = [OmetriaEventType.BASKET_VIEWED, OmetriaEventType.BASKET_UPDATED]


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def create_sample_basket() -> OmetriaBasket:
    item = OmetriaBasketItem(
        product_id="product-1",
        sku="sku-product-1",
        quantity=1,
        price=12.0,
    )
    return OmetriaBasket(total_price=12.0, currency="USD", items=[item])


def trigger_event(ometria: Ometria, kind: OmetriaEventType) -> None:
    """Track one sample event of the given kind."""
    if kind == OmetriaEventType.BASKET_UPDATED:
        ometria.track_basket_updated_event(create_sample_basket())
    elif kind == OmetriaEventType.BASKET_VIEWED:
        ometria.track_basket_viewed_event()
    elif kind == OmetriaEventType.ORDER_COMPLETED:
        ometria.track_order_completed_event("sample_order_id", create_sample_basket())
    elif kind == OmetriaEventType.PRODUCT_CATEGORY_VIEWED:
        ometria.track_product_category_viewed_event("sample_category")
    elif kind == OmetriaEventType.PRODUCT_VIEWED:
        ometria.track_product_viewed_event(SAMPLE_PRODUCT_ID)
    elif kind == OmetriaEventType.WISHLIST_ADDED_TO:
        ometria.track_wishlist_added_to_event(SAMPLE_PRODUCT_ID)
    elif kind == OmetriaEventType.WISHLIST_REMOVED_FROM:
        ometria.track_wishlist_removed_from_event(SAMPLE_PRODUCT_ID)
    elif kind == OmetriaEventType.SCREEN_VIEWED:
        ometria.track_screen_viewed_event("sample_screen_name")
    elif kind == OmetriaEventType.PROFILE_IDENTIFIED:
        ometria.track_profile_identified_event(email="sample@profile.com")
    elif kind == OmetriaEventType.PROFILE_DEIDENTIFIED:
        ometria.track_profile_deidentified_event()
    elif kind == OmetriaEventType.PUSH_TOKEN_REFRESHED:
        ometria.track_push_token_refreshed_event("sample_push_token")
    elif kind == OmetriaEventType.NOTIFICATION_RECEIVED:
        ometria.track_notification_received_event("sample_notification_id")
    elif kind == OmetriaEventType.NOTIFICATION_INTERACTED:
        ometria.track_notification_interacted_event("sample_notification_id")
    elif kind == OmetriaEventType.DEEP_LINK_OPENED:
        ometria.track_deep_link_opened_event("https://example.com/sample", "sample_screen_name")
    elif kind == OmetriaEventType.CUSTOM:
        ometria.track_custom_event("custom_event", {"sampleField": "sampleValue"})
    elif kind == OmetriaEventType.APP_INSTALLED:
        ometria.track_app_installed_event()
    elif kind == OmetriaEventType.APP_LAUNCHED:
        ometria.track_app_launched_event()
    elif kind == OmetriaEventType.APP_BACKGROUNDED:
        ometria.track_app_backgrounded_event()
    elif kind == OmetriaEventType.APP_FOREGROUNDED:
        ometria.track_app_foregrounded_event()


def _build(args: argparse.Namespace) -> Ometria:
    token = args.token or os.environ.get("OMETRIA_API_TOKEN")
    if not token:
        raise SystemExit("An API token is required (--token or OMETRIA_API_TOKEN)")

    overrides = {"is_logging_enabled": args.verbose}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.timeout:
        overrides["timeout"] = args.timeout
    config = OmetriaConfig(flush_limit=args.flush_limit, **overrides)
    return Ometria(token, config)


def _parse_kinds(names: list[str]) -> list[OmetriaEventType]:
    if not names:
        return list(DEFAULT_KINDS)
    try:
        return [OmetriaEventType(name) for name in names]
    except ValueError as e:
        raise SystemExit(f"{e}. Run `ometria events` for the list of kinds.")


def cmd_events(args: argparse.Namespace) -> int:
    for kind in OmetriaEventType:
        print(colorize(kind.value, Fore.CYAN))
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    ometria = _build(args)
    try:
        for kind in _parse_kinds(args.kinds):
            trigger_event(ometria, kind)
        ometria.event_handler.wait_idle(timeout=args.wait)
        outcome = ometria.flush().result(timeout=args.wait)
    finally:
        ometria.close(flush=False)

    if outcome is None:
        print(colorize("Nothing left to send (already flushed)", Fore.YELLOW))
        return 0 if ometria.event_handler.stats["batches_sent"] else 1
    if isinstance(outcome, Delivered):
        print(colorize(f"Delivered ({outcome.status_code})", Fore.GREEN))
        return 0
    if isinstance(outcome, Rejected):
        print(colorize(f"Rejected ({outcome.status_code}): {outcome.reason}", Fore.RED))
        return 1
    print(colorize(f"Transport failure: {outcome.cause}", Fore.RED))
    return 1


def cmd_validate(args: argparse.Namespace) -> int:
    ometria = _build(args)
    try:
        for kind in _parse_kinds(args.kinds):
            trigger_event(ometria, kind)
        result = ometria.validate_pending().result(timeout=args.wait)
    finally:
        ometria.close(flush=False)

    if isinstance(result, Acknowledged):
        print(colorize(f"Valid ({result.status_code}): {result.body}", Fore.GREEN))
        return 0
    if result is None:
        print(colorize("No events to validate", Fore.YELLOW))
        return 1
    print(colorize(f"Invalid: {result.message}", Fore.RED))
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ometria",
        description="Send sample events to the Ometria mobile events API",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    events_parser = subparsers.add_parser("events", help="List event kinds")
    events_parser.set_defaults(func=cmd_events)

    for name, func, help_text in (
        ("send", cmd_send, "Track sample events and flush them"),
        ("validate", cmd_validate, "Check sample events against the validation endpoint"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "kinds",
            nargs="*",
            metavar="KIND",
            help="Event kinds to send (default: basketViewed basketUpdated)",
        )
        sub.add_argument("--token", help="API token (default: $OMETRIA_API_TOKEN)")
        sub.add_argument("--base-url", help="Override the events endpoint")
        sub.add_argument("--flush-limit", type=int, default=100)
        sub.add_argument("--timeout", type=float, help="Request timeout in seconds")
        sub.add_argument("--wait", type=float, default=60.0, help="Seconds to wait for the result")
        sub.add_argument("-v", "--verbose", action="store_true", help="Log requests")
        sub.set_defaults(func=func)

    return parser


def main(argv: list[str] | None = None) -> int:
    colorama_init()
    args = build_parser().parse_args(argv)
    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
