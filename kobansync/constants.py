"""Shared constants for kobansync workflows.

Meta keys are persisted next to shop entities, do not change them once in
production.
"""

from __future__ import annotations

STATUS_PROCESSING = "processing"
STATUS_SUCCESS = "success"
STATUS_STOP = "stop"
STATUS_FAILED = "failed"

JOB_GROUP = "koban-sync"
JOB_PAYMENT_COMPLETE = "kobansync.handle_payment_complete"
JOB_CUSTOMER_SAVE_ADDRESS = "kobansync.handle_customer_save_address"
JOB_PRODUCT_UPDATE = "kobansync.handle_product_update"

META_WORKFLOW_STATUS = "koban_workflow_status"
META_WORKFLOW_FAILED_STEP = "koban_workflow_failed_step"
META_THIRD_GUID = "koban_guid"
META_PRODUCT_GUID = "koban_guid"
META_CATEGORY_CODE = "koban_code"
META_ORDER_THIRD_GUID = "koban_third_guid"
META_INVOICE_GUID = "koban_invoice_guid"
META_PAYMENT_GUID = "koban_payment_guid"
META_INVOICE_PDF_PATH = "koban_invoice_pdf_path"

DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY = 60
DEFAULT_PRODUCT_LOCK_TTL = 3
DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_REQUEST_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 2.0
