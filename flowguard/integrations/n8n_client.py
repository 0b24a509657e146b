# flowguard/integrations/n8n_client.py

import logging

import requests

from flowguard.core.config import Settings
from flowguard.core.errors import ExecutionTransportError, InputError
from flowguard.core.models import AutomationGraph, DispatchResult

logger = logging.getLogger(__name__)


class N8nClient:
    """
    Thin wrapper around the n8n public API "create workflow" endpoint.
    Instance URL and API key come from the caller on every call; nothing is stored.
    One request per call, never retried.
    """

    HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}

    @staticmethod
    def workflows_url(instance_url: str) -> str:
        return f"{instance_url.rstrip('/')}/api/v1/workflows"

    @classmethod
    def create_workflow(cls, instance_url: str, api_key: str, graph: AutomationGraph) -> DispatchResult:
        if not instance_url or not api_key:
            raise InputError("Missing required parameters: instanceUrl, apiKey.")

        url = cls.workflows_url(instance_url)
        headers = {**cls.HEADERS, "X-N8N-API-KEY": api_key}
        try:
            r = requests.post(
                url, json=graph.to_wire(), headers=headers, timeout=Settings.N8N_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.warning("n8n unreachable at %s: %s", url, e)
            raise ExecutionTransportError(f"Could not reach the n8n instance: {e}") from e

        if not r.ok:
            message = None
            try:
                body = r.json()
                if isinstance(body, dict):
                    message = body.get("message")
            except ValueError:
                pass
            logger.warning("n8n rejected workflow: %s %s", r.status_code, message)
            if message:
                raise ExecutionTransportError(
                    f"n8n failed to create the workflow. Status: {r.status_code}. Message: {message}",
                    engine_status=r.status_code,
                )
            raise ExecutionTransportError(
                f"n8n request failed with status {r.status_code}.", engine_status=r.status_code,
            )

        try:
            body = r.json()
        except ValueError:
            body = {}
        engine_id = body.get("id") if isinstance(body, dict) else None
        logger.info("n8n accepted workflow '%s' as %s", graph.name, engine_id)
        return DispatchResult(engine_workflow_id=str(engine_id) if engine_id is not None else None)
