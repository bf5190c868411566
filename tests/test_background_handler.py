"""Tests for background notification rendering and click routing."""

from typing import List, Optional

import pytest

from kitchenboard.schemas.push import PushPayload
from kitchenboard.services.background_handler import (
    DEFAULT_TAG,
    BackgroundDeliveryHandler,
    WindowClient,
    WindowClients,
    click_destination,
)

ORIGIN = "https://kitchen.example.com"


class FakeWindow(WindowClient):
    def __init__(self, url: str):
        self.url = url
        self.focused = False
        self.navigated_to: Optional[str] = None

    async def focus(self):
        self.focused = True

    async def navigate(self, url: str):
        self.navigated_to = url


class FakeClients(WindowClients):
    def __init__(self, windows: List[FakeWindow]):
        self.windows = windows
        self.opened: List[str] = []

    async def match_all(self):
        return list(self.windows)

    async def open_window(self, url: str):
        self.opened.append(url)
        return FakeWindow(f"{ORIGIN}{url}")


@pytest.fixture
def handler():
    return BackgroundDeliveryHandler(
        app_origin=ORIGIN,
        brand_name="Tandoor House",
        default_body="You have a new notification",
    )


class TestRender:

    def test_defaults_for_empty_payload(self, handler):
        rendered = handler.render(PushPayload())

        assert rendered.title == "Tandoor House"
        assert rendered.body == "You have a new notification"
        assert rendered.tag == DEFAULT_TAG
        assert rendered.require_interaction is False
        assert [a.action for a in rendered.actions] == ["open"]
        assert rendered.actions[0].title == "View Order"

    def test_payload_fields_are_used(self, handler):
        payload = PushPayload(
            notification={"title": "New order #42", "body": "2 items, pickup 6:30"},
            data={"orderId": "42", "tag": "order-42", "requireInteraction": "true"},
        )

        rendered = handler.render(payload)

        assert rendered.title == "New order #42"
        assert rendered.body == "2 items, pickup 6:30"
        assert rendered.tag == "order-42"
        assert rendered.require_interaction is True
        assert rendered.data["orderId"] == "42"

    def test_require_interaction_needs_exact_true(self, handler):
        payload = PushPayload(data={"requireInteraction": "yes"})
        assert handler.render(payload).require_interaction is False

    def test_data_values_are_coerced_to_strings(self):
        payload = PushPayload(data={"orderId": 42, "requireInteraction": True, "url": None})

        assert payload.data == {"orderId": "42", "requireInteraction": "true"}
        assert payload.order_id == "42"


class TestClickDestination:

    def test_order_id_wins_over_url(self):
        assert click_destination({"orderId": "42", "url": "/other"}) == "/order-status/42"

    def test_url_without_order(self):
        assert click_destination({"url": "/other"}) == "/other"

    def test_root_by_default(self):
        assert click_destination({}) == "/"
        assert click_destination(None) == "/"


class TestHandleClick:

    @pytest.mark.asyncio
    async def test_reuses_open_app_window(self, handler):
        foreign = FakeWindow("https://elsewhere.example.org/")
        app_window = FakeWindow(f"{ORIGIN}/kitchen")
        clients = FakeClients([foreign, app_window])

        destination = await handler.handle_click({"orderId": "42"}, clients)

        assert destination == "/order-status/42"
        assert app_window.focused is True
        assert app_window.navigated_to == "/order-status/42"
        assert foreign.focused is False
        assert clients.opened == []

    @pytest.mark.asyncio
    async def test_opens_window_when_none_open(self, handler):
        clients = FakeClients([FakeWindow("https://elsewhere.example.org/")])

        destination = await handler.handle_click({"url": "/menu"}, clients)

        assert destination == "/menu"
        assert clients.opened == ["/menu"]
