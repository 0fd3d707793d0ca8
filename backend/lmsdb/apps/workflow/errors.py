from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from fastapi import HTTPException, status


@dataclass(eq=False)
class WorkflowError(Exception):
    """
    Recoverable guard failure reported to the caller.

    `code` is stable and machine readable; `message` is shown to users;
    `detail` optionally lists offending fields as {"field", "reason"}.
    """

    message: str
    detail: List[Dict[str, str]] = field(default_factory=list)

    code = "workflow_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __str__(self) -> str:
        return self.message


class NotFound(WorkflowError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class PermissionDenied(WorkflowError):
    code = "permission_denied"
    http_status = status.HTTP_403_FORBIDDEN


class InvalidRequest(WorkflowError):
    code = "invalid_request"


class DuplicateInterest(WorkflowError):
    code = "duplicate_interest"
    http_status = status.HTTP_409_CONFLICT


class DuplicateRegistration(WorkflowError):
    code = "duplicate_registration"
    http_status = status.HTTP_409_CONFLICT


class QuotaExceeded(WorkflowError):
    code = "quota_exceeded"


class InvalidTransition(WorkflowError):
    code = "invalid_transition"
    http_status = status.HTTP_409_CONFLICT


class SessionFull(WorkflowError):
    code = "session_full"
    http_status = status.HTTP_409_CONFLICT


class SeniorityNotMet(WorkflowError):
    code = "seniority_not_met"


class ConfigurationError(WorkflowError):
    code = "configuration_error"


def to_http_exception(exc: WorkflowError, *, headers: Optional[Dict[str, str]] = None) -> HTTPException:
    body: Dict[str, object] = {"code": exc.code, "message": exc.message}
    if exc.detail:
        body["errors"] = exc.detail
    return HTTPException(status_code=exc.http_status, detail=body, headers=headers)
