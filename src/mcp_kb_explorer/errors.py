"""Domain errors."""

from __future__ import annotations

from dataclasses import dataclass


class StackError(Exception):
    """Base class for errors raised by this package."""


@dataclass(eq=False, slots=True)
class StackApiError(StackError):
    """Raised when the Stack API returns a non-success response."""

    status_code: int
    method: str
    url: str
    response_text: str

    def __str__(self) -> str:
        return (
            f"Stack API error {self.status_code} for {self.method} {self.url}: "
            f"{self.response_text}"
        )


class PageValidationError(StackError):
    """Raised when a page payload does not match the resource shape.

    The whole page is rejected; no element of it is kept.
    """

    def __init__(self, url: str, detail: str) -> None:
        super().__init__(f"Invalid page payload from {url}: {detail}")
        self.url = url
        self.detail = detail


class AuthenticationError(StackError):
    """Raised when the password-grant login does not yield an access token."""


class ListingError(StackError):
    """Raised when a directory listing could not be loaded to completion."""
