"""Shop side domain models and the gateway used to load them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, Field


class BillingAddress(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = ""


class Customer(BaseModel):
    id: int
    billing: BillingAddress = BillingAddress()


class OrderItem(BaseModel):
    name: str
    product_id: Optional[int] = None
    quantity: int = 1
    subtotal: float = 0.0
    total: float = 0.0
    subtotal_tax: float = 0.0


class Order(BaseModel):
    id: int
    number: str = ""
    customer_id: int = 0  # 0 for guest checkouts
    billing: BillingAddress = BillingAddress()
    items: List[OrderItem] = Field(default_factory=list)
    total: float = 0.0
    payment_method: str = ""

    @property
    def order_number(self) -> str:
        return self.number or str(self.id)

    @property
    def is_guest(self) -> bool:
        return not self.customer_id


class Product(BaseModel):
    id: int
    name: str
    price: float = 0.0
    category_id: Optional[int] = None
    permalink: str = ""
    image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ShopGateway(Protocol):
    """Read access to the shop entities workflows synchronise."""

    async def get_order(self, order_id: int) -> Order | None:
        """Return the order or ``None`` when it does not exist."""

    async def get_customer(self, customer_id: int) -> Customer | None:
        """Return the customer or ``None`` when it does not exist."""

    async def get_product(self, product_id: int) -> Product | None:
        """Return the product or ``None`` when it does not exist."""


class InMemoryShop(ShopGateway):
    """Keep shop entities in local memory.

    Useful for tests and for driving the CLI from a fixture file.
    """

    def __init__(self) -> None:
        self.orders: Dict[int, Order] = {}
        self.customers: Dict[int, Customer] = {}
        self.products: Dict[int, Product] = {}

    def add_order(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    def add_customer(self, customer: Customer) -> Customer:
        self.customers[customer.id] = customer
        return customer

    def add_product(self, product: Product) -> Product:
        self.products[product.id] = product
        return product

    async def get_order(self, order_id: int) -> Order | None:
        return self.orders.get(order_id)

    async def get_customer(self, customer_id: int) -> Customer | None:
        return self.customers.get(customer_id)

    async def get_product(self, product_id: int) -> Product | None:
        return self.products.get(product_id)

    @classmethod
    def from_dict(cls, data: dict) -> "InMemoryShop":
        """Build a shop from a mapping with ``orders``, ``customers`` and ``products`` lists."""
        shop = cls()
        for item in data.get("customers", []):
            shop.add_customer(Customer.model_validate(item))
        for item in data.get("orders", []):
            shop.add_order(Order.model_validate(item))
        for item in data.get("products", []):
            shop.add_product(Product.model_validate(item))
        return shop
