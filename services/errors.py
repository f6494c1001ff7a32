from __future__ import annotations

from typing import Iterable, Optional


class RegistryError(Exception):
    """Base class for failures talking to the company registry."""


class NotFoundError(RegistryError):
    """Upstream 404, or a name search that found nothing after all fallbacks."""


class UpstreamError(RegistryError):
    """Non-2xx response other than 404/429, transport failure, or exhausted 429 retries."""

    def __init__(self, status: Optional[int], message: str) -> None:
        self.status = status
        self.message = message
        prefix = f"Registry API error: {status}" if status is not None else "Registry API error:"
        super().__init__(f"{prefix} {message}".strip())


class MalformedDataError(RegistryError):
    """Registry payload lacks mandatory fields or does not fit the record shape."""

    def __init__(self, message: str, missing_fields: Iterable[str] = ()) -> None:
        self.missing_fields = list(missing_fields)
        super().__init__(message)

    @classmethod
    def missing(cls, fields: Iterable[str]) -> "MalformedDataError":
        fields = list(fields)
        return cls(f"Missing required field: {', '.join(fields)}", fields)


class RateLimitedRetry(RegistryError):
    """HTTP 429 seen; handled inside the client and never surfaced to callers."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limited, retry after {retry_after}s")
