# flowguard/api/routes/workflows.py

from fastapi import APIRouter, Depends

from flowguard.agents.coordinator_agent import CoordinatorAgent
from flowguard.api.deps import get_coordinator, get_user_id, http_error
from flowguard.core.errors import FlowguardError
from flowguard.core.models import UpdateWorkflowRequest

router = APIRouter(prefix="/api/v1", tags=["v1"])


@router.get("/workflows/{workflow_id}")
def get_workflow(
    workflow_id: str,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    try:
        record = coordinator.require_workflow(user_id, workflow_id)
    except FlowguardError as e:
        raise http_error(e) from e
    return {"workflow": record.to_api()}


@router.patch("/workflows/{workflow_id}")
def update_workflow(
    workflow_id: str,
    req: UpdateWorkflowRequest,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    """
    Move a workflow through its state machine.
    'completed' needs a valid graph in `result`; 'failed' needs `error`.
    """
    try:
        record = coordinator.update_status(user_id, workflow_id, req.status, req.result, req.error)
    except FlowguardError as e:
        raise http_error(e) from e
    return {"workflow": record.to_api()}
