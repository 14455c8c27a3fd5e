"""Tests for event construction and wire form."""

from datetime import datetime, timezone

import pytest

from ometria.basket import OmetriaBasket, OmetriaBasketItem
from ometria.events import (
    ConstructionError,
    Event,
    OmetriaEventType,
    format_timestamp,
    validate_payload,
)


class TestEvent:
    def test_create(self):
        event = Event.create(OmetriaEventType.PRODUCT_VIEWED, {"productId": "p-1"})

        assert event.kind == "productViewed"
        assert event.payload["productId"] == "p-1"
        assert event.event_id is not None
        assert event.timestamp.tzinfo is not None

    def test_kind_is_opaque_string(self):
        event = Event.create("someFutureKind")
        assert event.kind == "someFutureKind"

    def test_empty_kind_rejected(self):
        with pytest.raises(ConstructionError):
            Event.create("")

    def test_identity_not_content(self):
        a = Event.create(OmetriaEventType.BASKET_VIEWED)
        b = Event.create(OmetriaEventType.BASKET_VIEWED)

        assert a != b
        assert a == a
        assert a.event_id != b.event_id

    def test_immutable(self):
        event = Event.create(OmetriaEventType.CUSTOM, {"tags": ["a"], "info": {"x": 1}})

        with pytest.raises(AttributeError):
            event.kind = "other"
        with pytest.raises(TypeError):
            event.payload["new"] = 1
        with pytest.raises(TypeError):
            event.payload["info"]["x"] = 2
        assert event.payload["tags"] == ("a",)

    def test_payload_copied(self):
        data = {"items": [1, 2]}
        event = Event.create(OmetriaEventType.CUSTOM, data)
        data["items"].append(3)

        assert event.to_dict()["items"] == [1, 2]

    def test_to_dict_flattens_payload(self):
        moment = datetime(2020, 8, 19, 10, 0, 0, 123456, tzinfo=timezone.utc)
        event = Event(
            kind=OmetriaEventType.ORDER_COMPLETED,
            payload={"orderId": "o-1", "basket": {"currency": "USD", "items": []}},
            timestamp=moment,
        )

        d = event.to_dict()
        assert d["eventType"] == "orderCompleted"
        assert d["eventId"] == event.event_id
        assert d["dtOccurred"] == "2020-08-19T10:00:00.123Z"
        assert d["orderId"] == "o-1"
        assert d["basket"] == {"currency": "USD", "items": []}

    def test_reserved_keys_win(self):
        event = Event.create(OmetriaEventType.CUSTOM, {"eventType": "spoofed"})
        assert event.to_dict()["eventType"] == "custom"

    def test_base_dict(self):
        event = Event.create(OmetriaEventType.APP_LAUNCHED, context={"installationId": "i-1"})
        assert event.base_dict() == {"installationId": "i-1"}


class TestValidatePayload:
    def test_accepts_supported_values(self):
        payload = validate_payload({
            "s": "text",
            "i": 3,
            "f": 1.5,
            "b": True,
            "nested": {"list": [1, "two", {"three": 3.0}]},
        })
        assert payload["b"] is True
        assert payload["nested"]["list"][2]["three"] == 3.0

    @pytest.mark.parametrize("value", [None, b"bytes", object(), float("nan"), float("inf"), {1, 2}])
    def test_rejects_unsupported_values(self, value):
        with pytest.raises(ConstructionError):
            validate_payload({"key": value})

    def test_rejects_non_string_keys(self):
        with pytest.raises(ConstructionError):
            validate_payload({"outer": {1: "x"}})

    def test_rejects_non_mapping(self):
        with pytest.raises(ConstructionError):
            validate_payload(["not", "a", "mapping"])

    def test_none_is_empty(self):
        assert dict(validate_payload(None)) == {}


class TestFormatTimestamp:
    def test_millisecond_precision(self):
        moment = datetime(2021, 1, 2, 3, 4, 5, 6000, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "2021-01-02T03:04:05.006Z"

    def test_naive_treated_as_utc(self):
        assert format_timestamp(datetime(2021, 1, 2, 3, 4, 5)) == "2021-01-02T03:04:05.000Z"


class TestBasket:
    def test_to_payload_uses_wire_keys(self):
        basket = OmetriaBasket(
            total_price=12.0,
            currency="USD",
            items=[OmetriaBasketItem(product_id="product-1", quantity=1, price=12.0)],
        )

        payload = basket.to_payload()
        assert payload == {
            "totalPrice": 12.0,
            "currency": "USD",
            "items": [{"productId": "product-1", "quantity": 1, "price": 12.0}],
        }

    def test_sku_included_when_set(self):
        item = OmetriaBasketItem(product_id="p", sku="sku-p", quantity=2, price=1.0)
        assert OmetriaBasket(total_price=2.0, currency="GBP", items=[item]).to_payload()["items"][0]["sku"] == "sku-p"

    def test_payload_is_valid_event_data(self):
        basket = OmetriaBasket(totalPrice=5.0, currency="EUR")
        event = Event.create(OmetriaEventType.BASKET_UPDATED, {"basket": basket.to_payload()})
        assert event.to_dict()["basket"]["totalPrice"] == 5.0
