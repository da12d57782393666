"""
Explorer Adapter Exceptions - Upstream error taxonomy.

Every failure of an upstream HTTP call surfaces as exactly one of:

    NotFoundError   HTTP 404; a valid "absent" signal for secondary data
    RateLimitError  HTTP 429
    ApiError        any other HTTP status >= 400
    NetworkError    transport failure or timeout
    ParseError      body is not the JSON shape expected
"""

from datetime import datetime, timezone
from typing import Any, Optional


class ExplorerAdapterError(Exception):
    """Base exception for all explorer adapter errors."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.adapter_name = adapter_name
        self.request_url = request_url
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "adapter_name": self.adapter_name,
            "request_url": self.request_url,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.adapter_name:
            parts.append(f"[adapter={self.adapter_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class NotFoundError(ExplorerAdapterError):
    """Upstream answered 404 for the requested resource."""


class RateLimitError(ExplorerAdapterError):
    """Rate limit exceeded error."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        request_url: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, adapter_name, request_url, original_error, context)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class ApiError(ExplorerAdapterError):
    """Upstream answered with a non-success status other than 404/429."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        request_url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, adapter_name, request_url, original_error, context)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
        })
        return data


class NetworkError(ExplorerAdapterError):
    """Connection failure, reset, or timeout."""


class ParseError(ExplorerAdapterError):
    """Response body could not be decoded into the expected shape."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        request_url: Optional[str] = None,
        raw_data: Optional[Any] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, adapter_name, request_url, original_error, context)
        self.raw_data = raw_data

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["raw_data"] = str(self.raw_data)[:500] if self.raw_data is not None else None
        return data
