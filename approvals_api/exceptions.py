"""
Typed workflow errors.

Services raise these instead of HTTPException so callers (routes, scripts,
tests) can branch on the failure kind. main.py renders them into the
standard {"error": {"code": ..., "message": ...}} envelope.
"""

import enum
from typing import Optional


class ApprovalErrorCode(str, enum.Enum):
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    CASCADE_FAILED = "CASCADE_FAILED"
    UNAUTHORIZED = "UNAUTHORIZED"


HTTP_STATUS_BY_CODE = {
    ApprovalErrorCode.ALREADY_PROCESSED: 409,
    ApprovalErrorCode.NOT_FOUND: 404,
    ApprovalErrorCode.VALIDATION_FAILED: 422,
    ApprovalErrorCode.CASCADE_FAILED: 502,
    ApprovalErrorCode.UNAUTHORIZED: 403,
}


class ApprovalError(Exception):
    code: ApprovalErrorCode = ApprovalErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_CODE[self.code]

    def to_dict(self) -> dict:
        error = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}


class AlreadyProcessed(ApprovalError):
    code = ApprovalErrorCode.ALREADY_PROCESSED


class NotFound(ApprovalError):
    code = ApprovalErrorCode.NOT_FOUND


class ValidationFailed(ApprovalError):
    code = ApprovalErrorCode.VALIDATION_FAILED


class CascadeFailed(ApprovalError):
    code = ApprovalErrorCode.CASCADE_FAILED


class Unauthorized(ApprovalError):
    code = ApprovalErrorCode.UNAUTHORIZED
