"""Product creation and updates pushed to Koban."""

from __future__ import annotations

from typing import List, Optional

from ..constants import JOB_PRODUCT_UPDATE, META_CATEGORY_CODE, META_PRODUCT_GUID
from ..contracts import EntityKind
from ..exceptions import KobanAPIError
from ..machine import Step, StepResult, WorkflowState, failed, success
from ..serializers import product_to_koban
from ..shop import Product
from .base import WorkflowDriver


class ProductUpdateDriver(WorkflowDriver):
    """Creates or updates a product in Koban.

    Shops fire several save events for one product edit, so scheduling is
    suppressed for ``lock_ttl`` seconds after a run was scheduled.
    """

    job_name = JOB_PRODUCT_UPDATE
    event = "product_update"
    entity_kind = EntityKind.PRODUCT
    entity_key = "product_id"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.lock_ttl = self.workflow_settings.product_lock_ttl

    async def load_entity(self, entity_id: int) -> Optional[Product]:
        return await self.shop.get_product(entity_id)

    def build_steps(self) -> List[Step]:
        return [
            Step("check_data_integrity", self.check_data_integrity),
            Step("upsert_koban_product", self.upsert_koban_product),
        ]

    async def check_data_integrity(self, state: WorkflowState) -> StepResult:
        if state.get_data("product") is None:
            return failed(f"Invalid Product ID: {state.get_data('product_id')}.", retry=False)
        return success()

    async def upsert_koban_product(self, state: WorkflowState) -> StepResult:
        product: Product = state.get_data("product")
        product_guid = await self.store.get(EntityKind.PRODUCT, product.id, META_PRODUCT_GUID)
        category_code = None
        if product.category_id is not None:
            category_code = await self.store.get(
                EntityKind.CATEGORY, product.category_id, META_CATEGORY_CODE
            )

        payload = product_to_koban(product, self.settings, product_guid, category_code)
        if product_guid:
            try:
                await self.api.update_product(payload)
            except KobanAPIError as exc:
                return failed(f"Could not update Koban Product: {exc}")
            return success("Updated Koban Product.")

        try:
            product_guid = await self.api.create_product(payload)
        except KobanAPIError as exc:
            return failed(f"Could not create Koban Product: {exc}")
        await self.store.set(EntityKind.PRODUCT, product.id, META_PRODUCT_GUID, product_guid)
        return success("Created Koban Product.", {META_PRODUCT_GUID: product_guid})
