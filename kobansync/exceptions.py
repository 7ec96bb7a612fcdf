"""Errors raised while talking to Koban."""

from __future__ import annotations

from typing import Optional


class KobanError(Exception):
    """Base class for kobansync errors."""


class KobanResponseError(KobanError):
    """A single request returned an unusable response.

    Raised inside the client for non-2xx statuses, unexpected content types
    and malformed bodies; the client retries these.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class KobanAPIError(KobanError):
    """A remote operation did not succeed, after the client's own retries."""

    def __init__(
        self, message: str, status_code: Optional[int] = None, url: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
