"""
Errors raised while fetching the cloud config.

Every fetch-path error carries the operation that failed and a bit of
context (usually the url) so a single log line says where things broke.
"""
from typing import Any, Dict, Optional

import httpx


class FetchError(Exception):
    """Base class for errors in the fetch path."""

    def __init__(self, message: str, op: Optional[str] = None, **context: Any):
        super().__init__(message)
        self.message = message
        self.op = op
        self.context: Dict[str, Any] = dict(context)

    def with_op(self, op: str) -> "FetchError":
        self.op = op
        return self

    def with_context(self, **context: Any) -> "FetchError":
        self.context.update(context)
        return self

    def __str__(self) -> str:
        parts = []
        if self.op:
            parts.append(f"{self.op}:")
        parts.append(self.message)
        if self.context:
            parts.append(" ".join(f"{k}={v}" for k, v in self.context.items()))
        return " ".join(parts)


class RequestConstructionError(FetchError):
    pass


class TransportError(FetchError):
    pass


class UnexpectedStatusError(FetchError):
    """Server answered with something other than 200 or 304."""

    def __init__(self, response: httpx.Response, op: Optional[str] = None, **context: Any):
        super().__init__("Unexpected response status", op=op, status=response.status_code, **context)
        self.response = response

    @property
    def status_code(self) -> int:
        return self.response.status_code


class DecompressionError(FetchError):
    pass


class MergeError(Exception):
    """Raised by config objects that fail to merge fetched bytes."""
