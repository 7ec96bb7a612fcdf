"""Wiring of queue, store, shop and Koban client into the workflow drivers."""

from __future__ import annotations

from typing import Optional

import httpx

from .client import KobanClient
from .config import KobanSyncConfig
from .drivers import (
    CustomerSaveAddressDriver,
    PaymentCompleteDriver,
    ProductUpdateDriver,
    WorkflowDriver,
)
from .locks import TransientLock
from .persistence import get_store
from .shop import ShopGateway
from .transports import BaseJobQueue, get_lock, get_queue
from .worker import Worker


class KobanSync:
    """Entry point for shop integrations.

    The shop calls the ``on_*`` triggers from its event hooks; a separate
    process runs :meth:`worker` to execute the queued jobs.

    ``transport`` replaces the HTTP transport of every Koban client, which
    is how tests point the drivers at a fake Koban API.
    """

    def __init__(
        self,
        config: KobanSyncConfig,
        shop: ShopGateway,
        queue: Optional[BaseJobQueue] = None,
        store=None,
        lock: Optional[TransientLock] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.shop = shop
        self.queue = queue or get_queue(config=config)
        self.store = store or get_store(config=config)
        self.lock = lock or get_lock(config=config)
        self._transport = transport

        kwargs = dict(
            queue=self.queue,
            store=self.store,
            repository=self.store,
            shop=shop,
            client_factory=self.client_factory,
            settings=config.koban,
            workflow_settings=config.workflow,
            lock=self.lock,
        )
        self.payment_complete = PaymentCompleteDriver(**kwargs)
        self.customer_save_address = CustomerSaveAddressDriver(**kwargs)
        self.product_update = ProductUpdateDriver(**kwargs)

    @property
    def drivers(self) -> list[WorkflowDriver]:
        return [self.payment_complete, self.customer_save_address, self.product_update]

    def client_factory(self, workflow_id: str) -> KobanClient:
        return KobanClient(self.config.koban, workflow_id, transport=self._transport)

    async def on_payment_complete(self, order_id: int) -> Optional[str]:
        return await self.payment_complete.schedule(order_id)

    async def on_customer_save_address(
        self, customer_id: int, address_type: str = "billing"
    ) -> Optional[str]:
        return await self.customer_save_address.schedule(customer_id, address_type=address_type)

    async def on_product_update(self, product_id: int) -> Optional[str]:
        return await self.product_update.schedule(product_id)

    def worker(self) -> Worker:
        return Worker(self.queue, self.drivers)
