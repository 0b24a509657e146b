# flowguard/api/routes/chat.py

from fastapi import APIRouter, Depends

from flowguard.agents.coordinator_agent import CoordinatorAgent
from flowguard.api.deps import get_coordinator, get_user_id, http_error
from flowguard.core.errors import FlowguardError
from flowguard.core.models import ChatRequest
from flowguard.workflows.synthesis_graph import run_synthesis_flow

router = APIRouter(prefix="/api/v1", tags=["v1"])


@router.post("/chat")
def chat(
    req: ChatRequest,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    """
    Synthesis path:
      - reject oversized/missing input before calling the model
      - generate, extract, validate and scan the graph
      - store it as a completed workflow linked from the assistant message
    A refusal comes back with kind="refusal" and no workflow.
    """
    try:
        return run_synthesis_flow(coordinator, user_id, req.messages, req.conversation_id)
    except FlowguardError as e:
        raise http_error(e) from e
