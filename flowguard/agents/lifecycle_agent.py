# flowguard/agents/lifecycle_agent.py

from __future__ import annotations
import logging
from typing import Dict, Optional, Set, Union

from flowguard.core.errors import (
    ExecutionConflictError,
    InputError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
)
from flowguard.core.models import AutomationGraph, WorkflowRecord, WorkflowStatus
from flowguard.core.store import SQLiteStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[WorkflowStatus, Set[WorkflowStatus]] = {
    WorkflowStatus.PENDING: {WorkflowStatus.RUNNING},
    WorkflowStatus.RUNNING: {WorkflowStatus.COMPLETED, WorkflowStatus.FAILED},
    WorkflowStatus.COMPLETED: set(),
    WorkflowStatus.FAILED: set(),
}


def parse_status(value: Union[str, WorkflowStatus, None]) -> WorkflowStatus:
    if isinstance(value, WorkflowStatus):
        return value
    try:
        return WorkflowStatus(value)
    except ValueError:
        raise InputError(f"Invalid status: {value!r}") from None


class LifecycleAgent:
    """
    Owns the WorkflowRecord state machine.

    Entry points:
      - complete_directly(): synthesis path, record born `completed`
      - create_pending():    manual path, record born `pending`
      - record_rejection():  audit trail for rejected generations, born `failed`
    Every later change goes through transition(), which compare-and-sets the
    status so two concurrent claimants cannot both move pending -> running.
    """

    def __init__(self, store: SQLiteStore):
        self.store = store

    # --------------------- constructors ---------------------

    def complete_directly(self, conversation_id: str, graph: AutomationGraph) -> WorkflowRecord:
        if graph is None:
            raise PersistenceError("A completed workflow requires a result.")
        record = self.store.create_workflow(
            conversation_id, status=WorkflowStatus.COMPLETED, result=graph,
        )
        logger.info("Workflow %s stored as completed (conversation %s)", record.id, conversation_id)
        return record

    def create_pending(
        self, conversation_id: str, graph: Optional[AutomationGraph] = None
    ) -> WorkflowRecord:
        record = self.store.create_workflow(
            conversation_id, status=WorkflowStatus.PENDING, result=graph,
        )
        logger.info("Workflow %s stored as pending (conversation %s)", record.id, conversation_id)
        return record

    def create_rerun(self, source: WorkflowRecord) -> WorkflowRecord:
        """
        New `pending` copy of a finished record. Copies of copies share the
        original's id, so one lineage has at most one run in flight.
        """
        root_id = source.source_workflow_id or source.id
        record = self.store.create_workflow(
            source.conversation_id,
            status=WorkflowStatus.PENDING,
            result=source.result,
            source_workflow_id=root_id,
        )
        if record is None:
            raise ExecutionConflictError(f"Workflow {source.id} already has a run in progress.")
        logger.info("Workflow %s stored as pending re-run of %s", record.id, root_id)
        return record

    def record_rejection(self, conversation_id: str, reason: str) -> WorkflowRecord:
        record = self.store.create_workflow(
            conversation_id, status=WorkflowStatus.FAILED, error=reason or "rejected",
        )
        logger.info("Rejected generation recorded as %s: %s", record.id, reason)
        return record

    # --------------------- transitions ---------------------

    def get(self, workflow_id: str) -> WorkflowRecord:
        record = self.store.get_workflow(workflow_id)
        if record is None:
            raise NotFoundError("Workflow not found")
        return record

    def transition(
        self,
        workflow_id: str,
        status: Union[str, WorkflowStatus, None],
        result: Optional[AutomationGraph] = None,
        error: Optional[str] = None,
    ) -> WorkflowRecord:
        if status is None:
            raise PersistenceError("A status is required to update a workflow.")
        target = parse_status(status)
        if target is WorkflowStatus.COMPLETED and result is None:
            raise PersistenceError("Moving to 'completed' requires a result.")
        if target is WorkflowStatus.FAILED and not error:
            raise PersistenceError("Moving to 'failed' requires an error message.")

        current = self.get(workflow_id)
        if target not in ALLOWED_TRANSITIONS[current.status]:
            raise InvalidTransitionError(
                f"Cannot move workflow from '{current.status.value}' to '{target.value}'."
            )

        updated = self.store.update_workflow_status(
            workflow_id, target, expected_status=current.status, result=result, error=error,
        )
        if updated is None:
            raise ExecutionConflictError(
                f"Workflow {workflow_id} changed while moving to '{target.value}'."
            )
        logger.info("Workflow %s: %s -> %s", workflow_id, current.status.value, target.value)
        return updated

    def claim(self, workflow_id: str) -> WorkflowRecord:
        """pending -> running; raises ExecutionConflictError for a second claimant."""
        current = self.get(workflow_id)
        if current.status is WorkflowStatus.RUNNING:
            raise ExecutionConflictError(f"Workflow {workflow_id} is already running.")
        return self.transition(workflow_id, WorkflowStatus.RUNNING)
