"""Error taxonomy shared by every phase of an assessment submission."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from services.assessment_client.messages import DEFAULT_LOCALE, translate


class ErrorCode(str, Enum):
    WEBHOOK_ERROR = "WEBHOOK_ERROR"
    WEBHOOK_FAILED = "WEBHOOK_FAILED"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    POLLING_TIMEOUT = "POLLING_TIMEOUT"
    NOT_FOUND = "NOT_FOUND"
    ASSESSMENT_FAILED = "ASSESSMENT_FAILED"
    FETCH_ERROR = "FETCH_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class AssessmentApiError(Exception):
    """A tagged, user-presentable failure.

    ``message`` is safe to show to end users; ``details`` carries the
    diagnostic context (status codes, response bodies, the original
    exception) and is meant for logs only.
    """

    def __init__(self, message: str, code: ErrorCode | str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.details: Dict[str, Any] = details or {}

    @classmethod
    def from_code(
        cls,
        code: ErrorCode | str,
        details: Optional[Dict[str, Any]] = None,
        *,
        message: Optional[str] = None,
        locale: str = DEFAULT_LOCALE,
    ) -> "AssessmentApiError":
        code = ErrorCode(code)
        return cls(message or translate(f"error.{code.value}", locale), code, details)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message}

    def __repr__(self) -> str:
        return f"AssessmentApiError(code={self.code.value!r}, message={self.message!r})"
