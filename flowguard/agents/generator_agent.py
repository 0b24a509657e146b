# flowguard/agents/generator_agent.py

from __future__ import annotations
from typing import Dict, List, Sequence

from flowguard.core.config import Settings
from flowguard.core.errors import InputError
from flowguard.core.models import ChatTurn
from flowguard.integrations.llm_client import LLMClient
from flowguard.utils.helpers import dedent_and_strip

_ROLES = {"user", "assistant", "system"}

SYSTEM_PROMPT = dedent_and_strip("""
    You are an expert n8n workflow creator. Your ONLY purpose is to turn natural
    language instructions into valid n8n workflows.

    1. WORKFLOW STRUCTURE
       Reply with one JSON object of this exact shape:
       {
         "kind": "graph",
         "name": "string (descriptive workflow name)",
         "nodes": [{
           "id": "uuid-v4-string",
           "name": "string (unique within the workflow)",
           "type": "string (official n8n node type)",
           "typeVersion": number,
           "position": [x, y],
           "parameters": { },
           "continueOnFail": boolean (optional),
           "credentials": { "credentialType": { "id": "string", "name": "string" } }
         }],
         "connections": {
           "Node-A": { "main": [[{ "node": "Node-B", "type": "main", "index": 0 }]] }
         },
         "settings": {
           "saveExecutionProgress": boolean,
           "saveManualExecutions": boolean,
           "timezone": "UTC",
           "saveDataErrorExecution": "all"
         }
       }

    2. NODES
       - Official n8n node types only; no Code, Function, Execute Command, SSH or file system nodes.
       - Unique names; connections refer to nodes by name.
       - Positions start at [100, 300] and move +200 on x.

    3. SECURITY
       - Use ONLY n8n's credential system. NEVER put API keys, tokens or
         passwords in parameters.
       - Do not call localhost or private network addresses.

    4. DECLINING
       If the request is not about building a workflow, reply exactly:
       {"kind": "refusal", "reason": "I can only help with creating n8n workflows. Please provide automation instructions."}
       For unsafe requests, reply exactly:
       {"kind": "refusal", "reason": "Request cannot be processed securely."}

    After the JSON, add a short note listing the credentials the user must configure.
""")


class GeneratorAgent:
    """
    Compiles the generation prompt and calls the text-generation collaborator.
    Input is checked before any model call so oversized requests cost nothing.
    """

    @staticmethod
    def latest_user_text(turns: Sequence[ChatTurn]) -> str:
        if not turns:
            raise InputError("The conversation messages are required.")
        text = turns[-1].content
        if not isinstance(text, str) or not text.strip():
            raise InputError("Invalid input: the latest message has no text.")
        if len(text) > Settings.MAX_INPUT_LENGTH:
            raise InputError(
                f"Invalid input: message exceeds {Settings.MAX_INPUT_LENGTH} characters."
            )
        return text

    @staticmethod
    def compile_prompt(user_text: str) -> str:
        return f"{SYSTEM_PROMPT}\n\n---\n<user_request>\n{user_text}\n</user_request>\n---"

    @staticmethod
    def history(turns: Sequence[ChatTurn]) -> List[Dict[str, str]]:
        return [
            {"role": t.role, "content": t.content}
            for t in turns
            if t.role in _ROLES and isinstance(t.content, str) and t.content
        ]

    @staticmethod
    def generate(turns: Sequence[ChatTurn]) -> str:
        user_text = GeneratorAgent.latest_user_text(turns)
        return LLMClient.chat(
            GeneratorAgent.compile_prompt(user_text),
            GeneratorAgent.history(turns),
            temperature=0.0,
        )
