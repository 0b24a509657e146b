# flowguard/core/models.py

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

# JSON numbers only; booleans and numeric strings are rejected.
Number = Union[StrictInt, StrictFloat]


# ===== AUTOMATION GRAPH (n8n wire format) =====

class ConnectionTarget(BaseModel):
    node: StrictStr
    type: StrictStr
    index: StrictInt = Field(..., ge=0)


class Node(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: StrictStr
    name: StrictStr = Field(..., min_length=1)
    type: StrictStr = Field(..., min_length=1)
    type_version: Number = Field(..., alias="typeVersion")
    position: Tuple[Number, Number]
    parameters: Dict[str, Any]
    credentials: Optional[Dict[str, Any]] = None
    continue_on_fail: Optional[StrictBool] = Field(None, alias="continueOnFail")


# source node name -> port type ("main") -> output slots -> targets
Connections = Dict[str, Dict[str, List[List[ConnectionTarget]]]]


class AutomationGraph(BaseModel):
    """
    An n8n-style workflow: nodes addressed by name, connections keyed by
    source node name. Unknown top-level and node keys are dropped.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: StrictStr = Field(..., min_length=1)
    nodes: List[Node]
    connections: Connections
    settings: Optional[Dict[str, Any]] = None
    active: StrictBool = False
    id: Optional[StrictStr] = None
    tags: Optional[List[Dict[str, Any]]] = None

    def iter_targets(self):
        """Yield (path, target) for every connection target, in document order."""
        for source, ports in self.connections.items():
            for port, slots in ports.items():
                for slot_idx, slot in enumerate(slots):
                    for target_idx, target in enumerate(slot):
                        path = f"connections.{source}.{port}[{slot_idx}][{target_idx}]"
                        yield path, target

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ===== PERSISTED RECORDS =====

class WorkflowStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    FAILED = "failed"
    COMPLETED = "completed"


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ConversationRecord(_Record):
    id: str
    user_id: str
    title: Optional[str] = None
    created_at: str


class MessageRecord(_Record):
    id: str
    conversation_id: str
    role: str
    content: str
    metadata: Optional[Any] = None
    tokens: Optional[int] = None
    error: Optional[str] = None
    created_at: str


class WorkflowRecord(_Record):
    id: str
    conversation_id: str
    status: WorkflowStatus
    result: Optional[AutomationGraph] = None
    error: Optional[str] = None
    source_workflow_id: Optional[str] = None
    created_at: str

    def to_api(self) -> Dict[str, Any]:
        data = super().to_api()
        data["result"] = self.result.to_wire() if self.result else None
        return data


# ===== PIPELINE RESULTS =====

class ScanResult(BaseModel):
    safe: bool
    reason: Optional[str] = None


class DispatchResult(BaseModel):
    engine_workflow_id: Optional[str] = None


# ===== API SCHEMA =====

class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatTurn(_Body):
    role: str = Field(..., description="user | assistant | system")
    content: Optional[str] = None


class ChatRequest(_Body):
    messages: List[ChatTurn] = Field(default_factory=list)
    conversation_id: Optional[str] = None


class CreateConversationRequest(_Body):
    title: Optional[str] = None


class RenameConversationRequest(_Body):
    title: Optional[str] = None


class AppendMessageRequest(_Body):
    role: Optional[str] = None
    content: Optional[Any] = None
    metadata: Optional[Any] = None
    tokens: Optional[int] = None
    error: Optional[str] = None


class CreateWorkflowRequest(_Body):
    workflow: Any = Field(..., description="Hand-provided automation graph")


class UpdateWorkflowRequest(_Body):
    status: Optional[str] = None
    result: Optional[Any] = None
    error: Optional[Any] = None


class ExecuteWorkflowRequest(_Body):
    instance_url: Optional[str] = Field(None, description="Base URL of the n8n instance")
    api_key: Optional[str] = Field(None, description="n8n API key, used for this call only")
