"""Workflow drivers, one per shop event synchronised with Koban."""

from .address import CustomerSaveAddressDriver
from .base import ClientFactory, WorkflowDriver
from .payment import PaymentCompleteDriver
from .product import ProductUpdateDriver

__all__ = [
    "ClientFactory",
    "CustomerSaveAddressDriver",
    "PaymentCompleteDriver",
    "ProductUpdateDriver",
    "WorkflowDriver",
]
