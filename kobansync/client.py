"""Async client for the Koban CRM API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .config import KobanSettings
from .exceptions import KobanAPIError, KobanResponseError
from .utils.retry import sleep_before_retry

logger = logging.getLogger(__name__)

JSON_CONTENT = "application/json"
PDF_CONTENT = "application/pdf"


class KobanClient:
    """Talks to Koban with bounded retries and exponential backoff.

    One client is built per workflow run so every request can be logged with
    the workflow id. A 404 is returned as ``None`` and never retried; every
    other transport or response problem is retried up to ``max_attempts``
    times and then raised as :class:`KobanAPIError`.
    """

    def __init__(
        self,
        settings: KobanSettings,
        workflow_id: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.workflow_id = workflow_id
        self.max_attempts = max(1, settings.max_attempts)
        self._client = httpx.AsyncClient(
            base_url=settings.api_url.rstrip("/"),
            headers={
                "X-ncApi": settings.api_key,
                "X-ncUser": settings.user_key,
                "Content-Type": JSON_CONTENT,
            },
            timeout=settings.timeout,
            verify=True,
            transport=transport,
        )

    async def __aenter__(self) -> "KobanClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport helpers
    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        body: Any = None,
        expect: str = JSON_CONTENT,
    ) -> Any:
        """Send a request, retrying transient failures.

        Returns the decoded JSON body (or raw bytes for PDFs), ``None`` on 404.
        """
        last_error: Exception | None = None
        status_code: Optional[int] = None

        for attempt in range(1, self.max_attempts + 1):
            logger.debug(
                f"Sending request to Koban for workflow_id={self.workflow_id}: "
                f"{method} {path} params={params} body={body} attempt={attempt}"
            )
            try:
                response = await self._client.request(
                    method, path, params=params, json=body
                )
                if response.status_code == 404:
                    logger.debug(
                        f"Koban returned NotFound for workflow_id={self.workflow_id}: {method} {path}"
                    )
                    return None
                return self._parse(response, expect)
            except KobanResponseError as exc:
                last_error = exc
                status_code = exc.status_code
            except httpx.HTTPError as exc:
                last_error = exc
                status_code = None

            logger.warning(
                f"Koban request failed for workflow_id={self.workflow_id}: "
                f"{method} {path} attempt {attempt}/{self.max_attempts}: {last_error}"
            )
            if attempt < self.max_attempts:
                await sleep_before_retry(attempt, self.settings.backoff_base)

        raise KobanAPIError(
            f"{method} {path} failed after {self.max_attempts} attempts: {last_error}",
            status_code=status_code,
            url=path,
        )

    def _parse(self, response: httpx.Response, expect: str) -> Any:
        status_code = response.status_code
        content_type = response.headers.get("content-type", "")

        if status_code < 200 or status_code >= 300:
            raise KobanResponseError(
                f"Unexpected HTTP status {status_code}: {response.text[:200]}",
                status_code=status_code,
            )

        if expect == PDF_CONTENT:
            if PDF_CONTENT not in content_type:
                raise KobanResponseError(
                    f"Expected a PDF, received {content_type or 'no content type'}",
                    status_code=status_code,
                )
            logger.debug(f"Received PDF from Koban for workflow_id={self.workflow_id}")
            return response.content

        if "html" in content_type:
            raise KobanResponseError("Received HTML response", status_code=status_code)

        try:
            decoded = response.json()
        except ValueError as exc:
            raise KobanResponseError(
                f"JSON decoding error: {exc}", status_code=status_code
            ) from exc
        if decoded is None:
            raise KobanResponseError("Empty JSON body", status_code=status_code)

        logger.debug(
            f"Received response from Koban for workflow_id={self.workflow_id}: "
            f"status={status_code} body={decoded}"
        )
        return decoded

    @staticmethod
    def _result(data: Any, path: str, required: bool = True) -> Any:
        """Return ``Result`` of a Koban write, raising when it did not succeed.

        A write that succeeds without a guid is an error unless ``required`` is
        false.
        """
        if not isinstance(data, dict) or data.get("Success") is not True:
            raise KobanAPIError(f"Koban rejected {path}: {data}", url=path)
        result = data.get("Result")
        if isinstance(result, list):
            result = result[0] if result else None
        if required and not result:
            raise KobanAPIError(f"Koban returned no result for {path}: {data}", url=path)
        return result

    # ------------------------------------------------------------------
    # Thirds
    async def find_user_by_email(self, email: str) -> Optional[str]:
        """Return the Third guid registered with ``email``, ``None`` if unknown."""
        path = "/ncThird/GetOneByKey"
        data = await self._request(
            "GET", path, params={"uniqueproperty": "Email", "value": email}
        )
        if data is None:
            return None
        if not isinstance(data, dict) or not data.get("Guid"):
            raise KobanAPIError(f"Koban returned no Guid for {path}: {data}", url=path)
        return data["Guid"]

    async def upsert_user(self, payload: Dict[str, Any], guid: Optional[str] = None) -> str:
        """Create a Third, or update it when ``guid`` is given."""
        path = "/ncThird/PostOne"
        if guid:
            payload = {**payload, "Guid": guid}
        data = await self._request(
            "POST", path, params={"uniqueproperty": "Guid" if guid else "Extcode"}, body=payload
        )
        return self._result(data, path)

    # ------------------------------------------------------------------
    # Invoices and payments
    async def create_invoice(self, payload: list) -> str:
        path = "/ncInvoice/PostMany"
        data = await self._request(
            "POST",
            path,
            params={
                "uniqueproperty": "Number",
                "orderuniqueproperty": "Number",
                "thirduniqueproperty": "Guid",
            },
            body=payload,
        )
        return self._result(data, path)

    async def create_payment(self, payload: list) -> str:
        path = "/ncPayment/PostMany"
        data = await self._request(
            "POST",
            path,
            params={"uniqueproperty": "Number", "invoiceuniqueproperty": "Guid"},
            body=payload,
        )
        return self._result(data, path)

    async def get_invoice_pdf(self, invoice_guid: str) -> bytes:
        path = "/ncInvoice/GetPDF"
        content = await self._request(
            "GET", path, params={"id": invoice_guid}, expect=PDF_CONTENT
        )
        if content is None:
            raise KobanAPIError(f"Invoice {invoice_guid} has no PDF", status_code=404, url=path)
        return content

    # ------------------------------------------------------------------
    # Products
    async def create_product(self, payload: Dict[str, Any]) -> str:
        path = "/ncProduct/PostOne"
        data = await self._request(
            "POST",
            path,
            params={"uniqueproperty": "Reference", "catproductuniqueproperty": "Reference"},
            body=payload,
        )
        return self._result(data, path)

    async def update_product(self, payload: Dict[str, Any]) -> None:
        path = "/ncProduct/PostOne"
        data = await self._request(
            "POST",
            path,
            params={"uniqueproperty": "Guid", "catproductuniqueproperty": "Reference"},
            body=payload,
        )
        self._result(data, path, required=False)
