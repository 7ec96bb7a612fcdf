from datetime import datetime, timezone

from kobansync.config import KobanSettings
from kobansync.serializers import (
    invoice_from_order,
    koban_timestamp,
    payment_from_order,
    product_to_koban,
    third_from_billing,
)
from kobansync.shop import BillingAddress, Order, OrderItem, Product


def test_third_from_billing_maps_address_and_type():
    settings = KobanSettings(assigned_to_fullname="Sales Team")
    billing = BillingAddress(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        address_1="1 rue de la Paix",
        address_2="Bat. B",
        city="Paris",
        postcode="75002",
        country="fr",
    )

    third = third_from_billing(billing, settings)

    assert third["Label"] == "Ada Lovelace"
    assert third["Address"]["Street"] == "1 rue de la Paix Bat. B"
    assert third["Address"]["Country"] == "FR"
    assert third["InvoiceAddress"] == third["Address"]
    assert third["AssignedTo"] == {"FullName": "Sales Team"}
    assert third["Status"] == {"Code": "C"}


def test_third_type_falls_back_to_default():
    settings = KobanSettings()

    french = third_from_billing(BillingAddress(email="a@b.fr", country="FR"), settings)
    other = third_from_billing(BillingAddress(email="a@b.de", country="DE"), settings)
    unnamed = third_from_billing(BillingAddress(), settings)

    assert french["Type"] == {"Code": "Particuliers (France)"}
    assert french["Label"] == "a@b.fr"
    assert other["Type"] == {"Code": "Particuliers (Autre)"}
    assert unnamed["Label"] == "Guest"
    assert unnamed["Address"]["Country"] == "FR"


def test_invoice_lines_apply_vat_only_to_taxed_items():
    order = Order(
        id=12,
        number="A-12",
        items=[
            OrderItem(name="Taxed", product_id=1, quantity=2, total=20.0, subtotal_tax=4.0),
            OrderItem(name="Exempt", product_id=2, quantity=1, total=5.0),
        ],
        total=29.0,
    )

    [invoice] = invoice_from_order(order, "third-1", KobanSettings(), {1: "product-1"})

    assert invoice["Number"] == "WC-A-12"
    assert invoice["Third"] == {"Guid": "third-1"}
    assert invoice["Status"] == "PENDING"
    taxed, exempt = invoice["Lines"]
    assert taxed["Product"] == {"Guid": "product-1"}
    assert (taxed["Ht"], taxed["Ttc"], taxed["Vat"], taxed["UnitPrice"]) == (20.0, 24.0, 20.0, 10.0)
    assert exempt["Product"] == {"Guid": None}
    assert (exempt["Ttc"], exempt["Vat"]) == (5.0, 0)


def test_payment_references_invoice():
    order = Order(id=12, total=29.0)

    [payment] = payment_from_order(order, "invoice-1", KobanSettings(payment_mode_code="VIR"))

    assert payment["Extcode"] == "WC-PAY-12"
    assert payment["Invoice"] == {"Guid": "invoice-1"}
    assert payment["Ttc"] == 29.0
    assert payment["ModeRglt"] == {"Code": "VIR"}


def test_product_payload_create_and_update():
    product = Product(id=5, name="Notebook", price=10.0, image_url="https://shop/img.png")

    created = product_to_koban(product, KobanSettings(), category_code="STATIONERY")
    updated = product_to_koban(product, KobanSettings(), product_guid="product-5")

    assert created["Reference"] == "WC-5"
    assert "Guid" not in created
    assert created["Catproduct"] == {"Reference": "STATIONERY"}
    assert created["ImageUrl"] == "https://shop/img.png"
    assert updated["Guid"] == "product-5"
    assert "Reference" not in updated


def test_koban_timestamp_is_utc():
    moment = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
    assert koban_timestamp(moment) == "2024-03-01T12:30:00Z"
