"""
evesync Error Taxonomy

Every failure raised by the sync engine derives from SyncError so callers
can catch the whole family in one place.

- TransportError: the remote API could not be reached, timed out, or
  answered with an unexpected status. Never retried automatically.
- RateLimitError: the remote API throttled the call (420/429).
- AuthError: credentials were rejected or could not be refreshed.
- PartialReconciliationError: a relation was detached but not re-attached;
  persisted state is intermediate and the caller should retry.
- NormalizationError: non-mapping input handed to the payload normalizer.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Optional


class SyncError(Exception):
    """Base class for sync engine errors."""

    error_code = "sync_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to JSON-serializable dict."""
        return {"error": self.error_code, "message": self.message}


class TransportError(SyncError):
    """Network failure, timeout or unexpected HTTP status from the remote API."""

    error_code = "transport_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status_code:
            result["status_code"] = self.status_code
        if self.endpoint:
            result["endpoint"] = self.endpoint
        return result


class RateLimitError(TransportError):
    """Remote API throttled the request."""

    error_code = "rate_limited"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, endpoint=endpoint)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        return result


class AuthError(SyncError):
    """Expired or invalid credential."""

    error_code = "auth_error"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PartialReconciliationError(SyncError):
    """
    Relation members were detached but the re-attach did not complete.

    The relation is left empty (or partially attached) in the store. The
    original failure is available as ``cause`` and as ``__cause__``.
    """

    error_code = "partial_reconciliation"

    def __init__(
        self,
        owner_id: Any,
        detached_ids: Iterable[Any],
        cause: BaseException,
    ) -> None:
        self.owner_id = owner_id
        self.detached_ids = frozenset(detached_ids)
        self.cause = cause
        super().__init__(
            f"Relation for {owner_id!r} left detached after "
            f"{len(self.detached_ids)} member(s) removed: {cause}"
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["owner_id"] = self.owner_id
        result["detached_ids"] = sorted(self.detached_ids)
        return result


class NormalizationError(SyncError, TypeError):
    """Payload normalizer was given something other than a mapping."""

    error_code = "normalization_error"
