"""Shared fixtures: a fake Koban API and an in-memory shop."""

import itertools
import json

import httpx
import pytest

from kobansync.config import KobanSettings, KobanSyncConfig, WorkflowSettings
from kobansync.locks import InMemoryLock
from kobansync.persistence import InMemoryStore
from kobansync.shop import BillingAddress, Customer, InMemoryShop, Order, OrderItem, Product
from kobansync.sync import KobanSync
from kobansync.transports import InMemoryJobQueue

API_URL = "https://koban.test/api/v1"
API_PREFIX = "/api/v1"


class FakeKoban:
    """Minimal Koban API behind ``httpx.MockTransport``.

    Every request is recorded. ``fail(route)`` makes the next calls to a
    route answer with an error status; ``reject(route)`` makes a write answer
    ``Success: false``.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.thirds_by_email: dict[str, str] = {}
        self._failures: dict[str, list[int]] = {}
        self._rejections: set[str] = set()
        self._answers: dict[str, dict] = {}
        self._ids = itertools.count(1)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def fail(self, route: str, times: int = 1, status: int = 500) -> None:
        self._failures.setdefault(route, []).extend([status] * times)

    def reject(self, route: str) -> None:
        self._rejections.add(route)

    def accept(self, route: str) -> None:
        self._rejections.discard(route)

    def answer(self, route: str, **response: object) -> None:
        """Answer every call to ``route`` with a fixed response."""
        self._answers[route] = response

    def routes(self) -> list[str]:
        return [f"{r.method} {self._route(r)}" for r in self.requests]

    def calls(self, route: str) -> list[httpx.Request]:
        return [r for r in self.requests if self._route(r) == route]

    @staticmethod
    def _route(request: httpx.Request) -> str:
        return request.url.path[len(API_PREFIX):]

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._route(request)

        if self._failures.get(route):
            return httpx.Response(self._failures[route].pop(0), text="Internal error")
        if route in self._answers:
            return httpx.Response(200, **self._answers[route])
        if route in self._rejections:
            return httpx.Response(200, json={"Success": False, "Message": "Rejected"})

        if route == "/ncThird/GetOneByKey":
            guid = self.thirds_by_email.get(request.url.params["value"])
            if guid is None:
                return httpx.Response(404, json={"Message": "Not found"})
            return httpx.Response(200, json={"Guid": guid})

        if route == "/ncThird/PostOne":
            body = json.loads(request.content)
            guid = body.get("Guid") or self._new_id("third")
            self.thirds_by_email[body.get("EMail", "")] = guid
            return httpx.Response(200, json={"Success": True, "Result": guid})

        if route == "/ncInvoice/PostMany":
            return httpx.Response(200, json={"Success": True, "Result": [self._new_id("invoice")]})

        if route == "/ncPayment/PostMany":
            return httpx.Response(200, json={"Success": True, "Result": [self._new_id("payment")]})

        if route == "/ncInvoice/GetPDF":
            return httpx.Response(
                200, content=b"%PDF-1.4 fake", headers={"Content-Type": "application/pdf"}
            )

        if route == "/ncProduct/PostOne":
            body = json.loads(request.content)
            guid = body.get("Guid") or self._new_id("product")
            return httpx.Response(200, json={"Success": True, "Result": guid})

        return httpx.Response(404, json={"Message": f"Unknown route {route}"})


@pytest.fixture
def koban():
    return FakeKoban()


@pytest.fixture
def settings(tmp_path):
    return KobanSettings(
        api_url=API_URL,
        api_key="api-key",
        user_key="user-key",
        backoff_base=0,
        pdf_dir=tmp_path / "pdfs",
    )


@pytest.fixture
def config(settings):
    return KobanSyncConfig(koban=settings, workflow=WorkflowSettings())


@pytest.fixture
def shop():
    shop = InMemoryShop()
    billing = BillingAddress(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="0102030405",
        address_1="1 rue de la Paix",
        city="Paris",
        postcode="75002",
        country="FR",
    )
    shop.add_customer(Customer(id=7, billing=billing))
    shop.add_product(Product(id=5, name="Notebook", price=10.0, category_id=3))
    shop.add_order(
        Order(
            id=42,
            number="1042",
            customer_id=7,
            billing=billing,
            items=[OrderItem(name="Notebook", product_id=5, quantity=2, total=20.0, subtotal_tax=4.0)],
            total=24.0,
            payment_method="stripe",
        )
    )
    shop.add_order(
        Order(
            id=43,
            billing=BillingAddress(first_name="Guest", email="guest@example.com"),
            items=[OrderItem(name="Pen", quantity=1, total=2.0)],
            total=2.0,
        )
    )
    return shop


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def queue():
    return InMemoryJobQueue()


@pytest.fixture
def sync(config, shop, queue, store, koban):
    return KobanSync(
        config, shop, queue=queue, store=store, lock=InMemoryLock(), transport=koban.transport
    )
