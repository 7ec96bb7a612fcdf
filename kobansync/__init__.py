"""kobansync: retryable synchronisation of shop events to the Koban CRM."""

from .client import KobanClient
from .config import KobanSyncConfig, load_config
from .contracts import EntityKind, Job
from .drivers import (
    CustomerSaveAddressDriver,
    PaymentCompleteDriver,
    ProductUpdateDriver,
    WorkflowDriver,
)
from .exceptions import KobanAPIError, KobanError
from .machine import StateMachine, Step, WorkflowState, failed, stop, success
from .persistence import get_store
from .sync import KobanSync
from .transports import get_queue
from .worker import Worker

__version__ = "0.1.0"
__all__ = [
    "CustomerSaveAddressDriver",
    "EntityKind",
    "Job",
    "KobanAPIError",
    "KobanClient",
    "KobanError",
    "KobanSync",
    "KobanSyncConfig",
    "PaymentCompleteDriver",
    "ProductUpdateDriver",
    "StateMachine",
    "Step",
    "Worker",
    "WorkflowDriver",
    "WorkflowState",
    "failed",
    "get_queue",
    "get_store",
    "load_config",
    "stop",
    "success",
]
