# flowguard/workflows/execution_graph.py

from typing import Optional

from flowguard.agents.coordinator_agent import CoordinatorAgent


def run_execution_flow(
    coordinator: CoordinatorAgent,
    user_id: str,
    workflow_id: str,
    instance_url: Optional[str],
    api_key: Optional[str],
) -> dict:
    """
    Delegates to CoordinatorAgent.execute, which claims the record
    (pending -> running), submits the graph to n8n once, and settles the
    record as completed or failed.
    """
    return coordinator.execute(user_id, workflow_id, instance_url, api_key)
