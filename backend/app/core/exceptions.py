"""
Domain Exceptions

Services raise these; the global handler in ``app.main`` converts them to
structured HTTP responses through ``to_http_exception``.
"""
from typing import Any, Optional

from fastapi import HTTPException, status


class NimbusException(Exception):
    """Base class for every engine-level error."""

    code = "ENGINE_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class EntityNotFoundException(NimbusException):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} with id {entity_id} not found", {"entity": entity, "id": str(entity_id)})
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateTransitionException(NimbusException):
    code = "INVALID_STATE_TRANSITION"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, entity_id: Any, current_state: str, action: str):
        super().__init__(
            f"Cannot {action} {entity} {entity_id} in state '{current_state}'",
            {"entity": entity, "id": str(entity_id), "current_state": current_state, "action": action},
        )
        self.current_state = current_state
        self.action = action


class BusinessRuleViolationException(NimbusException):
    code = "BUSINESS_RULE_VIOLATION"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class PolicyResolutionFailure(NimbusException):
    """No active global reorder policy: every product must resolve to one."""

    code = "POLICY_RESOLUTION_FAILURE"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class JobTimeoutException(NimbusException):
    code = "JOB_TIMEOUT"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self, job_id: str, budget_seconds: float):
        super().__init__(
            f"Analysis job {job_id} exceeded its {budget_seconds:.0f}s wall-clock budget",
            {"job_id": job_id, "budget_seconds": budget_seconds},
        )


def to_http_exception(exc: NimbusException) -> HTTPException:
    detail = {"code": exc.code, "message": exc.message}
    if exc.details:
        detail["details"] = exc.details
    return HTTPException(status_code=exc.status_code, detail=detail)
