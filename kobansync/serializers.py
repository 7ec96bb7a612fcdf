"""Map shop entities to Koban payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .config import KobanSettings
from .shop import BillingAddress, Order, Product


def koban_timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def third_from_billing(billing: BillingAddress, settings: KobanSettings) -> Dict[str, Any]:
    """Build a Koban Third from billing details."""
    label = f"{billing.first_name} {billing.last_name}".strip()
    if not label:
        label = billing.email or "Guest"

    type_code = settings.country_third_type_codes.get(
        billing.country, settings.default_third_type_code
    )
    address = {
        "Name": billing.last_name,
        "FirstName": billing.first_name,
        "Phone": billing.phone,
        "Street": f"{billing.address_1} {billing.address_2}".strip(),
        "ZipCode": billing.postcode,
        "City": billing.city,
        "Country": billing.country.upper() if billing.country else "FR",
    }
    return {
        "Label": label,
        "FirstName": billing.first_name,
        "Status": {"Code": settings.third_status_code},
        "Type": {"Code": type_code},
        "Address": address,
        "InvoiceAddress": address,
        "EMail": billing.email,
        "AssignedTo": {"FullName": settings.assigned_to_fullname},
        "Optin": True,
    }


def invoice_from_order(
    order: Order,
    third_guid: str,
    settings: KobanSettings,
    product_guids: Mapping[int, Optional[str]] | None = None,
) -> List[Dict[str, Any]]:
    """Build the ``PostMany`` invoice body for an order."""
    product_guids = product_guids or {}
    lines = []
    for item in order.items:
        vat_rate = settings.vat_rate if item.subtotal_tax > 0 else 0
        ht = float(item.total)
        ttc = ht * (1 + vat_rate / 100)
        lines.append(
            {
                "Product": {"Guid": product_guids.get(item.product_id)},
                "Label": item.name,
                "Quantity": item.quantity,
                "Ht": ht,
                "Ttc": round(ttc, 2),
                "Vat": vat_rate,
                "UnitPrice": round(ht / item.quantity, 2) if item.quantity > 0 else ht,
            }
        )

    return [
        {
            "Number": f"{settings.invoice_prefix}{order.order_number}",
            "InvoiceDate": koban_timestamp(),
            "DueDate": "",
            "Status": "PENDING",
            "Third": {"Guid": third_guid},
            "Lines": lines,
            "PaymentMode": {"Code": settings.payment_mode_code},
            "Extcode": None,
            "OtherThird": None,
            "Contact": None,
            "Order": None,
            "Header": None,
            "AssignedTo": {"FullName": settings.assigned_to_fullname},
        }
    ]


def payment_from_order(order: Order, invoice_guid: str, settings: KobanSettings) -> List[Dict[str, Any]]:
    return [
        {
            "Extcode": f"{settings.payment_prefix}{order.order_number}",
            "Invoice": {"Guid": invoice_guid},
            "PaymentDate": koban_timestamp(),
            "Ttc": order.total,
            "ModeRglt": {"Code": settings.payment_mode_code},
        }
    ]


def product_to_koban(
    product: Product,
    settings: KobanSettings,
    product_guid: Optional[str] = None,
    category_code: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a Koban product.

    The payload carries ``Guid`` when the product is already known to Koban
    (update), otherwise a ``Reference`` derived from the product id (create).
    """
    ht = float(product.price)
    data: Dict[str, Any] = {
        "Label": product.name,
        "Catproduct": {"Reference": category_code},
        "Ht": ht,
        "Vat": settings.vat_rate,
        "Ttc": round(ht * (1 + settings.vat_rate / 100), 2),
        "IsSelling": True,
        "eShopURL": product.permalink,
        "VatUpdatable": True,
        "IsManufactured": True,
        "Obsolete": False,
        "DCreated": int(product.created_at.timestamp()),
        "DUpdated": int(product.updated_at.timestamp()),
    }
    if product.image_url:
        data["ImageUrl"] = product.image_url
    if product_guid:
        data["Guid"] = product_guid
    else:
        data["Reference"] = f"{settings.product_prefix}{product.id}"
    return data
