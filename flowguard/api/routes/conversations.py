# flowguard/api/routes/conversations.py

from typing import Optional

from fastapi import APIRouter, Depends

from flowguard.agents.coordinator_agent import CoordinatorAgent
from flowguard.api.deps import get_coordinator, get_user_id, http_error
from flowguard.core.errors import FlowguardError, InputError
from flowguard.core.models import (
    AppendMessageRequest,
    CreateConversationRequest,
    CreateWorkflowRequest,
    RenameConversationRequest,
)

router = APIRouter(prefix="/api/v1", tags=["v1"])

_ROLES = {"user", "assistant", "system"}


@router.get("/conversations")
def list_conversations(
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    conversations = coordinator.list_conversations(user_id)
    return {"conversations": [c.to_api() for c in conversations]}


@router.post("/conversations")
def create_conversation(
    req: CreateConversationRequest,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    conversation = coordinator.create_conversation(user_id, req.title)
    return {"conversation": conversation.to_api()}


@router.get("/conversations/{conversation_id}")
def get_conversation(
    conversation_id: str,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    """Conversation with its messages (oldest first) and workflows (newest first)."""
    try:
        conversation = coordinator.require_conversation(user_id, conversation_id)
    except FlowguardError as e:
        raise http_error(e) from e

    store = coordinator.store
    return {
        "conversation": conversation.to_api(),
        "messages": [m.to_api() for m in store.list_messages(conversation_id)],
        "workflows": [w.to_api() for w in store.list_workflows(conversation_id)],
    }


@router.patch("/conversations/{conversation_id}")
def rename_conversation(
    conversation_id: str,
    req: RenameConversationRequest,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    title = req.title.strip() if isinstance(req.title, str) else None
    try:
        conversation = coordinator.rename_conversation(user_id, conversation_id, title)
    except FlowguardError as e:
        raise http_error(e) from e
    return {"conversation": conversation.to_api()}


@router.delete("/conversations/{conversation_id}")
def delete_conversation(
    conversation_id: str,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    """Removes the conversation; its messages and workflows go with it."""
    try:
        coordinator.delete_conversation(user_id, conversation_id)
    except FlowguardError as e:
        raise http_error(e) from e
    return {"success": True}


# --------------------------- messages ---------------------------

@router.get("/conversations/{conversation_id}/messages")
def list_messages(
    conversation_id: str,
    limit: Optional[int] = None,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    try:
        coordinator.require_conversation(user_id, conversation_id)
    except FlowguardError as e:
        raise http_error(e) from e
    messages = coordinator.store.list_messages(conversation_id, limit=limit)
    return {"messages": [m.to_api() for m in messages]}


@router.post("/conversations/{conversation_id}/messages")
def append_message(
    conversation_id: str,
    req: AppendMessageRequest,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    try:
        coordinator.require_conversation(user_id, conversation_id)
        if req.role not in _ROLES:
            raise InputError("Invalid role")
        if not isinstance(req.content, str) or not req.content.strip():
            raise InputError("Content is required")
    except FlowguardError as e:
        raise http_error(e) from e

    message = coordinator.store.append_message(
        conversation_id,
        req.role,
        req.content,
        metadata=req.metadata,
        tokens=req.tokens,
        error=req.error,
    )
    return {"message": message.to_api()}


# --------------------------- workflows ---------------------------

@router.get("/conversations/{conversation_id}/workflows")
def list_workflows(
    conversation_id: str,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    try:
        coordinator.require_conversation(user_id, conversation_id)
    except FlowguardError as e:
        raise http_error(e) from e
    workflows = coordinator.store.list_workflows(conversation_id)
    return {"workflows": [w.to_api() for w in workflows]}


@router.post("/conversations/{conversation_id}/workflows")
def create_workflow(
    conversation_id: str,
    req: CreateWorkflowRequest,
    coordinator: CoordinatorAgent = Depends(get_coordinator),
    user_id: str = Depends(get_user_id),
):
    """
    Store a hand-provided graph as a pending workflow.
    The graph passes the same validation and security scan as generated ones.
    """
    try:
        record = coordinator.create_manual(user_id, conversation_id, req.workflow)
    except FlowguardError as e:
        raise http_error(e) from e
    return {"workflow": record.to_api()}
