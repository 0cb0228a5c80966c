"""
Typed results for the generation adapter.

Rules:
- Service failures are values, never exceptions.
- Exactly one of (text, error) is set on a GuidanceResult.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from policy import (
    FALLBACK_CANCELLED,
    FALLBACK_EMPTY_RESPONSE,
    FALLBACK_MISSING_CREDENTIAL,
    FALLBACK_REQUEST_FAILED,
)


class GuidanceErrorKind(str, Enum):
    """
    Failure classification for one generation call.

    MISSING_CREDENTIAL:
        No API key configured. Fails fast, no network call.

    REQUEST_FAILED:
        Transport error, timeout or non-2xx status.

    EMPTY_RESPONSE:
        2xx status but no usable candidate text.

    CANCELLED:
        Session ended mid-flight. Never shown to the user.
    """

    MISSING_CREDENTIAL = "missing_credential"
    REQUEST_FAILED = "request_failed"
    EMPTY_RESPONSE = "empty_response"
    CANCELLED = "cancelled"


_FALLBACK_TEXT: dict[GuidanceErrorKind, str] = {
    GuidanceErrorKind.MISSING_CREDENTIAL: FALLBACK_MISSING_CREDENTIAL,
    GuidanceErrorKind.REQUEST_FAILED: FALLBACK_REQUEST_FAILED,
    GuidanceErrorKind.EMPTY_RESPONSE: FALLBACK_EMPTY_RESPONSE,
    GuidanceErrorKind.CANCELLED: FALLBACK_CANCELLED,
}


@dataclass(frozen=True)
class GuidanceError:
    """Structured failure from a generation call."""
    kind: GuidanceErrorKind
    detail: str = ""
    status_code: int | None = None

    @property
    def user_message(self) -> str:
        """Human-readable fallback string forwarded to UI sinks."""
        return _FALLBACK_TEXT[self.kind]

    def as_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "message": self.user_message,
            "detail": self.detail,
            "status_code": self.status_code,
        }


@dataclass(frozen=True)
class GuidanceResult:
    """Outcome of one generation call: response text or a typed error."""
    text: str | None = None
    error: GuidanceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @staticmethod
    def success(text: str) -> GuidanceResult:
        return GuidanceResult(text=text)

    @staticmethod
    def failure(
        kind: GuidanceErrorKind,
        detail: str = "",
        status_code: int | None = None,
    ) -> GuidanceResult:
        return GuidanceResult(
            error=GuidanceError(kind=kind, detail=detail, status_code=status_code)
        )
