"""Normalized response envelope returned by the Remote API client."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ApiResponse:
    """Success/error envelope for every backend call."""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Any, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "ApiResponse":
        return cls(success=False, data=data, error=error)


class RemoteApiError(Exception):
    """Raised by controllers when an envelope reports failure.

    Controllers convert a non-success envelope into this exception so that
    it follows the same path as a transport failure.
    """
    def __init__(self, message: str, response: Optional[ApiResponse] = None):
        self.response = response
        super().__init__(message)


def unwrap(response: ApiResponse, default_error: str) -> Any:
    """Returns the payload of a successful envelope or raises RemoteApiError."""
    if not response.success or response.data is None:
        raise RemoteApiError(response.error or default_error, response)
    return response.data
