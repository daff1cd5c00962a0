"""
Snapshot Source Exceptions - Errors raised while reading game accounts.

Sources never leave a subscription dead on a single failure: the
polling loop logs these and tries again on the next interval.
"""

from typing import Any, Dict, Optional

from core.exceptions import EquilibrateException, ErrorClassification, Severity


class SnapshotSourceError(EquilibrateException):
    """Base exception for all snapshot source errors."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        game_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = dict(context or {})
        if source_name:
            context["source_name"] = source_name
        if game_id:
            context["game_id"] = game_id

        super().__init__(message, context=context, cause=original_error)
        self.source_name = source_name
        self.game_id = game_id
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.game_id:
            parts.append(f"[game={self.game_id}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class FetchError(SnapshotSourceError):
    """Error while requesting an account from the RPC node."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        game_id: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, game_id, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data


class RateLimitError(FetchError):
    """RPC node refused the request with HTTP 429."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__(message, source_name, status_code=429, **kwargs)
        self.retry_after_seconds = retry_after_seconds


class DecodeError(SnapshotSourceError):
    """Account data does not match the expected layout."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        game_id: Optional[str] = None,
        field_name: Optional[str] = None,
        offset: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        context = {}
        if field_name:
            context["field_name"] = field_name
        if offset is not None:
            context["offset"] = offset
        super().__init__(message, source_name, game_id, original_error, context)
        self.field_name = field_name
        self.offset = offset


__all__ = [
    "SnapshotSourceError",
    "FetchError",
    "RateLimitError",
    "DecodeError",
]
