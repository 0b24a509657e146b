# flowguard/api/deps.py

from typing import Optional

from fastapi import Header, HTTPException, Request

from flowguard.agents.coordinator_agent import CoordinatorAgent
from flowguard.core.errors import FlowguardError


def get_coordinator(request: Request) -> CoordinatorAgent:
    return request.app.state.coordinator


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Owner of the conversations touched by this request (identity is not verified here)."""
    return (x_user_id or "").strip() or "anonymous"


def http_error(e: FlowguardError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())
