# flowguard/api/routes/execute.py

from fastapi import APIRouter, Depends

from flowguard.agents.coordinator_agent import CoordinatorAgent
from flowguard.api.deps import get_coordinator, get_user_id, http_error
from flowguard.core.errors import FlowguardError
from flowguard.core.models import ExecuteWorkflowRequest
from flowguard.workflows.execution_graph import run_execution_flow

router = APIRouter(prefix="/api/v1", tags=["v1"])


@router.post("/workflows/{workflow_id}/execute")
def execute_workflow(
    workflow_id: str,
    req: ExecuteWorkflowRequest,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    """
    Manual execution path:
      - a pending record is claimed as-is; a finished one is copied into a new pending record
      - pending -> running right before the single POST to n8n
      - running -> completed on 2xx, running -> failed otherwise
    The API key is used for this request only and never stored.
    """
    try:
        return run_execution_flow(coordinator, user_id, workflow_id, req.instance_url, req.api_key)
    except FlowguardError as e:
        raise http_error(e) from e
