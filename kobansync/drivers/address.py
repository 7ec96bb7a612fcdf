"""Customer billing address changes pushed to the customer's Koban Third."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..constants import JOB_CUSTOMER_SAVE_ADDRESS, META_THIRD_GUID
from ..contracts import EntityKind
from ..exceptions import KobanAPIError
from ..machine import Step, StepResult, WorkflowState, failed, stop, success
from ..serializers import third_from_billing
from ..shop import Customer
from .base import WorkflowDriver

logger = logging.getLogger(__name__)

BILLING = "billing"


class CustomerSaveAddressDriver(WorkflowDriver):
    job_name = JOB_CUSTOMER_SAVE_ADDRESS
    event = "customer_save_address"
    entity_kind = EntityKind.USER
    entity_key = "customer_id"

    async def schedule(self, entity_id: int, address_type: str = BILLING, **extra) -> Optional[str]:
        """Only billing changes are relevant to Koban; others are skipped."""
        if address_type != BILLING:
            logger.debug(
                f"Skipping customer save address for customer {entity_id}, "
                f"address_type={address_type}"
            )
            return None
        return await super().schedule(entity_id, address_type=address_type, **extra)

    async def load_entity(self, entity_id: int) -> Optional[Customer]:
        return await self.shop.get_customer(entity_id)

    def build_steps(self) -> List[Step]:
        return [
            Step("check_data_integrity", self.check_data_integrity),
            Step("update_koban_third", self.update_koban_third),
        ]

    async def check_data_integrity(self, state: WorkflowState) -> StepResult:
        if state.get_data("user") is None:
            return failed(f"Invalid customer ID: {state.get_data('customer_id')}", retry=False)
        return success()

    async def update_koban_third(self, state: WorkflowState) -> StepResult:
        """Update the Third if the customer is already synced and the address is billing."""
        customer: Customer = state.get_data("user")
        third_guid = await self.store.get(EntityKind.USER, customer.id, META_THIRD_GUID)

        if not third_guid or state.get_data("address_type") != BILLING:
            return stop(
                "Update not necessary, user either not synced yet or address was not billing."
            )

        payload = third_from_billing(customer.billing, self.settings)
        try:
            await self.api.upsert_user(payload, third_guid)
        except KobanAPIError as exc:
            return failed(f"Could not update Koban Third: {exc}")
        return success("Updated Koban Third with new billing details.")
