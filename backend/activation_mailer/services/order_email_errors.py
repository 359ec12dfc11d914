"""
Error taxonomy for the order email pipeline.

Every failure the pipeline can surface is an OrderEmailError tagged with
one ErrorKind. Routes translate kinds to HTTP status codes and stable
error codes through the two tables below, which cover every kind.

Best-effort stages (metafield save, audit log) never raise; they return
a StageOutcome that the pipeline logs and exposes on its result.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    DOWNSTREAM_UNAVAILABLE = "downstream_unavailable"
    MAILER = "mailer"
    CONFIGURATION = "configuration"
    DUPLICATE = "duplicate"
    INTERNAL = "internal"


ERROR_HTTP_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHENTICATION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DOWNSTREAM_UNAVAILABLE: 502,
    ErrorKind.MAILER: 502,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.INTERNAL: 500,
}

ERROR_CODES: Dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "validation_error",
    ErrorKind.AUTHENTICATION: "authentication_error",
    ErrorKind.NOT_FOUND: "shopify_error",
    ErrorKind.DOWNSTREAM_UNAVAILABLE: "downstream_unavailable",
    ErrorKind.MAILER: "mailer_error",
    ErrorKind.CONFIGURATION: "configuration_error",
    ErrorKind.DUPLICATE: "duplication_error",
    ErrorKind.INTERNAL: "server_error",
}


class OrderEmailError(Exception):
    """A typed pipeline failure."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        field: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.field = field
        # Provider status code (mailer errors), not the HTTP response status
        self.status_code = status_code
        self.details = details

    @property
    def http_status(self) -> int:
        return ERROR_HTTP_STATUS[self.kind]

    @property
    def code(self) -> str:
        return ERROR_CODES[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        """Structured error entry: {code, field?, message}."""
        data: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.field:
            data["field"] = self.field
        return data

    def __repr__(self) -> str:
        return f"OrderEmailError(kind={self.kind.value}, message={self.message!r})"

    @classmethod
    def validation(cls, message: str, field: Optional[str] = None) -> "OrderEmailError":
        return cls(ErrorKind.VALIDATION, message, field=field)

    @classmethod
    def authentication(cls, message: str) -> "OrderEmailError":
        return cls(ErrorKind.AUTHENTICATION, message)

    @classmethod
    def not_found(cls, message: str) -> "OrderEmailError":
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def mailer(
        cls,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ) -> "OrderEmailError":
        return cls(ErrorKind.MAILER, message, status_code=status_code, details=details)

    @classmethod
    def configuration(cls, message: str) -> "OrderEmailError":
        return cls(ErrorKind.CONFIGURATION, message)

    @classmethod
    def duplicate(cls, message: str) -> "OrderEmailError":
        return cls(ErrorKind.DUPLICATE, message)

    @classmethod
    def internal(cls, message: str) -> "OrderEmailError":
        return cls(ErrorKind.INTERNAL, message)


@dataclass
class StageOutcome:
    """Result of a best-effort stage. Inspected and logged, never raised."""
    stage: str
    ok: bool
    error: Optional[str] = None
    skipped: bool = False

    @classmethod
    def success(cls, stage: str) -> "StageOutcome":
        return cls(stage=stage, ok=True)

    @classmethod
    def failure(cls, stage: str, error: str) -> "StageOutcome":
        return cls(stage=stage, ok=False, error=error)

    @classmethod
    def skip(cls, stage: str, reason: str) -> "StageOutcome":
        return cls(stage=stage, ok=False, error=reason, skipped=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "ok": self.ok,
            "skipped": self.skipped,
            "error": self.error,
        }
