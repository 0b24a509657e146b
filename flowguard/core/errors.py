# flowguard/core/errors.py

from __future__ import annotations
from typing import Any, Dict, List, Optional


class FlowguardError(Exception):
    """
    Base for every failure surfaced to callers.
    `kind` is the stable machine-readable tag, `status_code` the HTTP mapping.
    """

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class InputError(FlowguardError):
    kind = "input_error"
    status_code = 400


class NotFoundError(FlowguardError):
    kind = "not_found"
    status_code = 404


class UpstreamGenerationError(FlowguardError):
    kind = "upstream_generation_error"
    status_code = 502


class ParseError(FlowguardError):
    kind = "parse_error"
    status_code = 422


class SchemaValidationError(FlowguardError):
    kind = "schema_validation_error"
    status_code = 422

    def __init__(self, message: str, violations: Optional[List[str]] = None):
        super().__init__(message)
        self.violations = list(violations or [])

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "violations": self.violations}


class SecurityPolicyViolation(FlowguardError):
    kind = "security_policy_violation"
    status_code = 422


class PersistenceError(FlowguardError):
    kind = "persistence_error"
    status_code = 400


class InvalidTransitionError(PersistenceError):
    kind = "invalid_transition"


class ExecutionConflictError(PersistenceError):
    kind = "execution_conflict"
    status_code = 409


class ExecutionTransportError(FlowguardError):
    kind = "execution_transport_error"
    status_code = 502

    def __init__(self, message: str, engine_status: Optional[int] = None):
        super().__init__(message)
        self.engine_status = engine_status
        self.workflow_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.engine_status is not None:
            data["engineStatus"] = self.engine_status
        if self.workflow_id:
            data["workflowId"] = self.workflow_id
        return data


class Refusal:
    """
    Structured decline from the model. Not an error: it is a legitimate
    outcome that carries the decline text forward unchanged.
    """

    kind = "refusal"

    def __init__(self, reason: str, raw: str):
        self.reason = reason
        self.raw = raw

    def __repr__(self) -> str:
        return f"Refusal({self.reason!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Refusal) and (self.reason, self.raw) == (other.reason, other.raw)
