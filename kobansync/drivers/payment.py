"""Payment completion: push the customer, invoice, payment and PDF to Koban."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..constants import (
    JOB_PAYMENT_COMPLETE,
    META_INVOICE_GUID,
    META_INVOICE_PDF_PATH,
    META_ORDER_THIRD_GUID,
    META_PAYMENT_GUID,
    META_PRODUCT_GUID,
    META_THIRD_GUID,
    STATUS_SUCCESS,
)
from ..contracts import EntityKind
from ..exceptions import KobanAPIError
from ..machine import Step, StepResult, WorkflowState, failed, stop, success
from ..serializers import invoice_from_order, payment_from_order, third_from_billing
from ..shop import Order
from ..storage import save_invoice_pdf
from .base import WorkflowDriver

logger = logging.getLogger(__name__)


class PaymentCompleteDriver(WorkflowDriver):
    """Synchronises an order with Koban once its payment is complete.

    Finds or creates the Koban Third for the buyer, then creates the invoice
    and its payment and stores the invoice PDF locally. Every guid is written
    to the order meta as soon as it exists, so a resumed run can pick up
    where the failed one stopped.
    """

    job_name = JOB_PAYMENT_COMPLETE
    event = "payment_complete"
    entity_kind = EntityKind.ORDER
    entity_key = "order_id"

    async def load_entity(self, entity_id: int) -> Optional[Order]:
        return await self.shop.get_order(entity_id)

    def build_steps(self) -> List[Step]:
        return [
            Step("check_data_integrity", self.check_data_integrity),
            Step("find_koban_third_guid", self.find_koban_third_guid),
            Step("create_koban_invoice", self.create_koban_invoice),
            Step("create_koban_payment", self.create_koban_payment),
            Step("get_koban_invoice_pdf", self.get_koban_invoice_pdf),
        ]

    async def _order_meta(self, state: WorkflowState, key: str) -> Optional[str]:
        return state.get_data(key) or await self.store.get(
            EntityKind.ORDER, state.get_data("order_id"), key
        )

    # ------------------------------------------------------------------
    # Steps
    async def check_data_integrity(self, state: WorkflowState) -> StepResult:
        """Ensure the order and its customer exist and the order was not already synced."""
        order_id = state.get_data("order_id")
        order: Optional[Order] = state.get_data("order")

        if order is None:
            return failed(f"Invalid order ID: {order_id}", retry=False)

        # A stop overwrites the success status, the payment guid survives it.
        if await self.checkpoint.get_status(order_id) == STATUS_SUCCESS or await self.store.get(
            EntityKind.ORDER, order_id, META_PAYMENT_GUID
        ):
            return stop(f"Order {order_id} was already synchronised with Koban.")

        if order.customer_id and await self.shop.get_customer(order.customer_id) is None:
            return failed(f"Invalid customer ID: {order.customer_id}", retry=False)

        return success()

    async def find_koban_third_guid(self, state: WorkflowState) -> StepResult:
        """Resolve the buyer's Koban Third: stored guid, email lookup, or creation."""
        order: Order = state.get_data("order")
        customer_id = order.customer_id

        third_guid = None
        if customer_id:
            third_guid = await self.store.get(EntityKind.USER, customer_id, META_THIRD_GUID)
        else:
            logger.debug(
                f"Order {order.id} is a guest checkout, workflow_id={state.workflow_id}"
            )

        try:
            if not third_guid:
                third_guid = await self.api.find_user_by_email(order.billing.email)
            if not third_guid:
                payload = third_from_billing(order.billing, self.settings)
                third_guid = await self.api.upsert_user(payload)
        except KobanAPIError as exc:
            return failed(f"Could not find or create Koban Third: {exc}")

        if customer_id:
            await self.store.set(EntityKind.USER, customer_id, META_THIRD_GUID, third_guid)
        await self.store.set(EntityKind.ORDER, order.id, META_ORDER_THIRD_GUID, third_guid)
        return success("Resolved Koban Third.", {META_ORDER_THIRD_GUID: third_guid})

    async def create_koban_invoice(self, state: WorkflowState) -> StepResult:
        order: Order = state.get_data("order")
        third_guid = await self._order_meta(state, META_ORDER_THIRD_GUID)
        if not third_guid:
            return failed("No Koban Third available for the invoice.")

        product_guids = {}
        for item in order.items:
            if item.product_id is not None:
                product_guids[item.product_id] = await self.store.get(
                    EntityKind.PRODUCT, item.product_id, META_PRODUCT_GUID
                )

        payload = invoice_from_order(order, third_guid, self.settings, product_guids)
        try:
            invoice_guid = await self.api.create_invoice(payload)
        except KobanAPIError as exc:
            return failed(f"Could not create Koban Invoice: {exc}")

        await self.store.set(EntityKind.ORDER, order.id, META_INVOICE_GUID, invoice_guid)
        return success("Created Koban Invoice.", {META_INVOICE_GUID: invoice_guid})

    async def create_koban_payment(self, state: WorkflowState) -> StepResult:
        order: Order = state.get_data("order")
        invoice_guid = await self._order_meta(state, META_INVOICE_GUID)
        if not invoice_guid:
            return failed("No Koban Invoice to attach the payment to.")

        payload = payment_from_order(order, invoice_guid, self.settings)
        try:
            payment_guid = await self.api.create_payment(payload)
        except KobanAPIError as exc:
            return failed(f"Could not create Koban Payment: {exc}")

        await self.store.set(EntityKind.ORDER, order.id, META_PAYMENT_GUID, payment_guid)
        return success("Created Koban Payment.", {META_PAYMENT_GUID: payment_guid})

    async def get_koban_invoice_pdf(self, state: WorkflowState) -> StepResult:
        order: Order = state.get_data("order")
        invoice_guid = await self._order_meta(state, META_INVOICE_GUID)
        if not invoice_guid:
            return failed("No Koban Invoice to fetch the PDF for.")

        try:
            content = await self.api.get_invoice_pdf(invoice_guid)
        except KobanAPIError as exc:
            return failed(f"Could not retrieve Koban Invoice PDF: {exc}")

        pdf_path = save_invoice_pdf(self.settings.pdf_dir, invoice_guid, content)
        await self.store.set(EntityKind.ORDER, order.id, META_INVOICE_PDF_PATH, str(pdf_path))
        return success("Stored Koban Invoice PDF.", {META_INVOICE_PDF_PATH: str(pdf_path)})
