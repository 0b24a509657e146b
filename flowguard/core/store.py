# flowguard/core/store.py

from __future__ import annotations
import json
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from flowguard.core.models import (
    AutomationGraph,
    ConversationRecord,
    MessageRecord,
    WorkflowRecord,
    WorkflowStatus,
)
from flowguard.utils.helpers import utc_timestamp

_SCHEMA = """
create table if not exists conversations (
    id text primary key,
    user_id text not null,
    title text,
    created_at text not null
);
create table if not exists messages (
    id text primary key,
    conversation_id text not null references conversations(id) on delete cascade,
    role text not null,
    content text not null,
    metadata text,
    tokens integer,
    error text,
    created_at text not null
);
create table if not exists workflows (
    id text primary key,
    conversation_id text not null references conversations(id) on delete cascade,
    status text not null,
    result text,
    error text,
    source_workflow_id text,
    created_at text not null
);
create index if not exists idx_messages_conversation on messages(conversation_id, created_at);
create index if not exists idx_workflows_conversation on workflows(conversation_id, created_at);
"""

# at most one pending/running re-run per source record
_RERUN_INDEX = """
create unique index if not exists idx_workflows_inflight_rerun
on workflows(source_workflow_id)
where source_workflow_id is not null and status in ('pending', 'running');
"""


def _parse_json(value: Optional[str]) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


def _serialize_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value)


class SQLiteStore:
    """
    Persistence for conversations, messages and workflow records.
    One short-lived connection per call; rows keyed by uuid4 strings.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("pragma foreign_keys = on")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
            columns = {row["name"] for row in conn.execute("pragma table_info(workflows)")}
            if "source_workflow_id" not in columns:
                conn.execute("alter table workflows add column source_workflow_id text")
            conn.executescript(_RERUN_INDEX)

    # ---------------------- conversations ----------------------

    @staticmethod
    def _conversation(row: sqlite3.Row) -> ConversationRecord:
        return ConversationRecord(
            id=row["id"], user_id=row["user_id"], title=row["title"], created_at=row["created_at"],
        )

    def create_conversation(self, user_id: str, title: Optional[str] = None) -> ConversationRecord:
        record = ConversationRecord(
            id=str(uuid.uuid4()), user_id=user_id, title=title, created_at=utc_timestamp(),
        )
        with self._connect() as conn:
            conn.execute(
                "insert into conversations (id, user_id, title, created_at) values (?, ?, ?, ?)",
                (record.id, record.user_id, record.title, record.created_at),
            )
        return record

    def get_conversation(self, conversation_id: str, user_id: str) -> Optional[ConversationRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "select * from conversations where id = ? and user_id = ? limit 1",
                (conversation_id, user_id),
            ).fetchone()
        return self._conversation(row) if row else None

    def list_conversations(self, user_id: str) -> List[ConversationRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "select * from conversations where user_id = ? order by created_at desc, rowid desc",
                (user_id,),
            ).fetchall()
        return [self._conversation(r) for r in rows]

    def rename_conversation(
        self, conversation_id: str, user_id: str, title: Optional[str]
    ) -> Optional[ConversationRecord]:
        with self._connect() as conn:
            cur = conn.execute(
                "update conversations set title = ? where id = ? and user_id = ?",
                (title, conversation_id, user_id),
            )
            if cur.rowcount == 0:
                return None
        return self.get_conversation(conversation_id, user_id)

    def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "delete from conversations where id = ? and user_id = ?",
                (conversation_id, user_id),
            )
            return cur.rowcount > 0

    # ------------------------- messages -------------------------

    @staticmethod
    def _message(row: sqlite3.Row) -> MessageRecord:
        return MessageRecord(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            metadata=_parse_json(row["metadata"]),
            tokens=row["tokens"],
            error=row["error"],
            created_at=row["created_at"],
        )

    def append_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        metadata: Any = None,
        tokens: Optional[int] = None,
        error: Optional[str] = None,
    ) -> MessageRecord:
        record = MessageRecord(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            role=role,
            content=content,
            metadata=metadata,
            tokens=tokens,
            error=error,
            created_at=utc_timestamp(),
        )
        with self._connect() as conn:
            conn.execute(
                """
                insert into messages (id, conversation_id, role, content, metadata, tokens, error, created_at)
                values (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    conversation_id,
                    role,
                    content,
                    _serialize_json(metadata),
                    tokens,
                    error,
                    record.created_at,
                ),
            )
        return record

    def list_messages(self, conversation_id: str, limit: Optional[int] = None) -> List[MessageRecord]:
        sql = "select * from messages where conversation_id = ? order by created_at asc, rowid asc"
        args: tuple = (conversation_id,)
        if limit:
            sql += " limit ?"
            args = (conversation_id, limit)
        with self._connect() as conn:
            rows = conn.execute(sql, args).fetchall()
        return [self._message(r) for r in rows]

    # ------------------------- workflows -------------------------

    @staticmethod
    def _workflow(row: sqlite3.Row) -> WorkflowRecord:
        result = _parse_json(row["result"])
        return WorkflowRecord(
            id=row["id"],
            conversation_id=row["conversation_id"],
            status=WorkflowStatus(row["status"]),
            result=AutomationGraph.model_validate(result) if isinstance(result, dict) else None,
            error=row["error"],
            source_workflow_id=row["source_workflow_id"],
            created_at=row["created_at"],
        )

    def create_workflow(
        self,
        conversation_id: str,
        status: WorkflowStatus = WorkflowStatus.PENDING,
        result: Optional[AutomationGraph] = None,
        error: Optional[str] = None,
        source_workflow_id: Optional[str] = None,
    ) -> Optional[WorkflowRecord]:
        """
        Insert a workflow record. With `source_workflow_id` set, returns None
        when that source already has a pending or running re-run.
        """
        record_id = str(uuid.uuid4())
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    insert into workflows
                        (id, conversation_id, status, result, error, source_workflow_id, created_at)
                    values (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record_id,
                        conversation_id,
                        status.value,
                        _serialize_json(result.to_wire() if result else None),
                        error,
                        source_workflow_id,
                        utc_timestamp(),
                    ),
                )
        except sqlite3.IntegrityError as e:
            if source_workflow_id is None or "UNIQUE" not in str(e):
                raise
            return None
        return self.get_workflow(record_id)

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowRecord]:
        with self._connect() as conn:
            row = conn.execute("select * from workflows where id = ? limit 1", (workflow_id,)).fetchone()
        return self._workflow(row) if row else None

    def list_workflows(self, conversation_id: str) -> List[WorkflowRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "select * from workflows where conversation_id = ? order by created_at desc, rowid desc",
                (conversation_id,),
            ).fetchall()
        return [self._workflow(r) for r in rows]

    def update_workflow_status(
        self,
        workflow_id: str,
        status: WorkflowStatus,
        expected_status: WorkflowStatus,
        result: Optional[AutomationGraph] = None,
        error: Optional[str] = None,
    ) -> Optional[WorkflowRecord]:
        """
        Compare-and-set on status. Returns None when the stored status no longer
        matches `expected_status` (or the record is gone).
        A None result/error keeps the stored column.
        """
        with self._connect() as conn:
            cur = conn.execute(
                """
                update workflows
                set status = ?, result = coalesce(?, result), error = coalesce(?, error)
                where id = ? and status = ?
                """,
                (
                    status.value,
                    _serialize_json(result.to_wire() if result else None),
                    error,
                    workflow_id,
                    expected_status.value,
                ),
            )
            if cur.rowcount == 0:
                return None
        return self.get_workflow(workflow_id)
