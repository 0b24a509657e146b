# flowguard/agents/coordinator_agent.py

from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from flowguard.agents.extractor_agent import ExtractorAgent
from flowguard.agents.generator_agent import GeneratorAgent
from flowguard.agents.lifecycle_agent import LifecycleAgent, parse_status
from flowguard.agents.security_agent import SecurityAgent
from flowguard.agents.validator_agent import ValidatorAgent
from flowguard.core.cache import ConversationCache
from flowguard.core.errors import (
    ExecutionConflictError,
    ExecutionTransportError,
    InputError,
    NotFoundError,
    ParseError,
    Refusal,
    SchemaValidationError,
    SecurityPolicyViolation,
    UpstreamGenerationError,
)
from flowguard.core.models import (
    AutomationGraph,
    ChatTurn,
    ConversationRecord,
    WorkflowRecord,
    WorkflowStatus,
)
from flowguard.core.store import SQLiteStore
from flowguard.integrations.n8n_client import N8nClient
from flowguard.utils.helpers import conversation_title

logger = logging.getLogger(__name__)

# Failures of a generation attempt that leave an audit record behind.
_REJECTIONS = (UpstreamGenerationError, ParseError, SchemaValidationError, SecurityPolicyViolation)


def _checked_graph(payload: Any) -> AutomationGraph:
    """Validate + scan a caller-supplied graph; refusals are not graphs."""
    outcome = ValidatorAgent.validate_object(payload)
    if isinstance(outcome, Refusal):
        raise InputError("Expected a workflow graph, got a refusal.")
    SecurityAgent.enforce(outcome)
    return outcome


class CoordinatorAgent:
    """
    Orchestrates the decide-before-trust pipeline:
      1) input gate, conversation + user message
      2) generate -> extract -> validate -> scan
      3) persist as completed (synthesis path), or
         pending -> running -> completed/failed (manual execution path)
    """

    def __init__(self, store: SQLiteStore, cache: Optional[ConversationCache] = None):
        self.store = store
        self.cache = cache or ConversationCache()
        self.lifecycle = LifecycleAgent(store)

    # --------------------- conversations ---------------------

    def require_conversation(self, user_id: str, conversation_id: str) -> ConversationRecord:
        conversation = self.store.get_conversation(conversation_id, user_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    def create_conversation(self, user_id: str, title: Optional[str] = None) -> ConversationRecord:
        conversation = self.store.create_conversation(user_id, title)
        self.cache.invalidate(user_id)
        return conversation

    def list_conversations(self, user_id: str) -> List[ConversationRecord]:
        return self.cache.get(user_id, self.store.list_conversations)

    def rename_conversation(self, user_id: str, conversation_id: str, title: Optional[str]) -> ConversationRecord:
        updated = self.store.rename_conversation(conversation_id, user_id, title)
        if updated is None:
            raise NotFoundError("Conversation not found")
        self.cache.invalidate(user_id)
        return updated

    def delete_conversation(self, user_id: str, conversation_id: str) -> None:
        if not self.store.delete_conversation(conversation_id, user_id):
            raise NotFoundError("Conversation not found")
        self.cache.invalidate(user_id)

    def require_workflow(self, user_id: str, workflow_id: str) -> WorkflowRecord:
        record = self.lifecycle.get(workflow_id)
        # ownership goes through the conversation
        self.require_conversation(user_id, record.conversation_id)
        return record

    # --------------------- synthesis path ---------------------

    def run(
        self, user_id: str, turns: Sequence[ChatTurn], conversation_id: Optional[str] = None
    ) -> Dict[str, Any]:
        user_text = GeneratorAgent.latest_user_text(turns)

        if conversation_id:
            conversation = self.require_conversation(user_id, conversation_id)
        else:
            conversation = self.create_conversation(user_id, conversation_title(user_text))

        # separate call from conversation creation; no rollback if this fails
        self.store.append_message(
            conversation.id, "user", user_text,
            metadata={"turns": [t.model_dump() for t in turns]},
        )

        try:
            text = GeneratorAgent.generate(turns)
            candidate = ExtractorAgent.extract(text)
            outcome = ValidatorAgent.validate(candidate)
            if not isinstance(outcome, Refusal):
                SecurityAgent.enforce(outcome)
        except _REJECTIONS as e:
            self.lifecycle.record_rejection(conversation.id, f"{e.kind}: {e.message}")
            raise

        if isinstance(outcome, Refusal):
            assistant = self.store.append_message(conversation.id, "assistant", outcome.raw)
            return {
                "kind": "refusal",
                "content": outcome.raw,
                "reason": outcome.reason,
                "conversation": conversation.to_api(),
                "assistantMessage": assistant.to_api(),
            }

        record = self.lifecycle.complete_directly(conversation.id, outcome)
        assistant = self.store.append_message(
            conversation.id, "assistant", text, metadata={"workflowId": record.id},
        )
        return {
            "kind": "workflow",
            "content": text,
            "conversation": conversation.to_api(),
            "assistantMessage": assistant.to_api(),
            "workflow": record.to_api(),
        }

    # --------------------- manual path ---------------------

    def create_manual(self, user_id: str, conversation_id: str, payload: Any) -> WorkflowRecord:
        conversation = self.require_conversation(user_id, conversation_id)
        graph = _checked_graph(payload)
        return self.lifecycle.create_pending(conversation.id, graph)

    def update_status(
        self,
        user_id: str,
        workflow_id: str,
        status: Optional[str],
        result: Any = None,
        error: Any = None,
    ) -> WorkflowRecord:
        self.require_workflow(user_id, workflow_id)
        graph = _checked_graph(result) if result is not None else None
        if error is not None and not isinstance(error, str):
            error = json.dumps(error)
        return self.lifecycle.transition(
            workflow_id, parse_status(status) if status else None, result=graph, error=error,
        )

    def execute(
        self, user_id: str, workflow_id: str, instance_url: Optional[str], api_key: Optional[str]
    ) -> Dict[str, Any]:
        if not instance_url or not api_key:
            raise InputError("Missing required parameters: instanceUrl, apiKey.")

        record = self.require_workflow(user_id, workflow_id)
        if record.result is None:
            raise InputError("Workflow has no graph to execute.")
        if record.status is WorkflowStatus.RUNNING:
            raise ExecutionConflictError(f"Workflow {record.id} is already running.")

        graph = record.result
        # stored graphs are scanned again before dispatch
        SecurityAgent.enforce(graph)

        if record.status is not WorkflowStatus.PENDING:
            # completed/failed are terminal; a new run gets a new record
            record = self.lifecycle.create_rerun(record)

        self.lifecycle.claim(record.id)
        try:
            dispatch = N8nClient.create_workflow(instance_url, api_key, graph)
        except ExecutionTransportError as e:
            self.lifecycle.transition(record.id, WorkflowStatus.FAILED, error=e.message)
            e.workflow_id = record.id
            raise

        done = self.lifecycle.transition(record.id, WorkflowStatus.COMPLETED, result=graph)
        return {
            "message": "Workflow created in n8n.",
            "engineWorkflowId": dispatch.engine_workflow_id,
            "workflow": done.to_api(),
        }
