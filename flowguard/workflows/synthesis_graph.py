# flowguard/workflows/synthesis_graph.py

from typing import Optional, Sequence

from flowguard.agents.coordinator_agent import CoordinatorAgent
from flowguard.core.models import ChatTurn


def run_synthesis_flow(
    coordinator: CoordinatorAgent,
    user_id: str,
    turns: Sequence[ChatTurn],
    conversation_id: Optional[str] = None,
) -> dict:
    """
    Delegates to CoordinatorAgent.run, which:
      1) rejects bad input before any model call
      2) generates, extracts, validates and scans the graph
      3) stores it as a completed workflow, or records the rejection
    """
    return coordinator.run(user_id, turns, conversation_id)
