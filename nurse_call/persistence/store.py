"""SQLite-backed domain store for assistance requests and staff messages.

Used for:
- Patient assistance requests (created by patients, the chat assistant, or staff)
- Nurse/patient messages and their read receipts

Every public operation is a single statement plus commit, so a failure never
leaves a half-written record behind.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from nurse_call.errors import NotFound, PersistenceError
from nurse_call.schemas.domain import RequestStatus

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "/app/data/nurse_call.db"

_REQUEST_COLUMNS = (
    "id, patient_id, nurse_id, priority, status, description, department, "
    "room, created_at, updated_at"
)
_MESSAGE_COLUMNS = (
    "id, sender_id, receiver_id, content, message_type, image_url, is_read, created_at"
)

# Filters accepted by find_requests, mapped to their column
_REQUEST_FILTERS = {
    "patient_id": "patient_id",
    "nurse_id": "nurse_id",
    "status": "status",
    "priority": "priority",
    "department": "department",
}


@dataclass
class RequestRecord:
    """A persisted assistance request row."""

    id: str
    patient_id: str | None
    priority: str
    status: str
    description: str
    department: str
    nurse_id: str | None = None
    room: str | None = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MessageRecord:
    """A persisted staff/patient message row."""

    id: str
    sender_id: str
    receiver_id: str
    content: str
    message_type: str = "text"
    image_url: str | None = None
    is_read: bool = False
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _request_from_row(row: Any) -> RequestRecord:
    return RequestRecord(
        id=row[0],
        patient_id=row[1],
        nurse_id=row[2],
        priority=row[3],
        status=row[4],
        description=row[5],
        department=row[6],
        room=row[7],
        created_at=row[8],
        updated_at=row[9],
    )


def _message_from_row(row: Any) -> MessageRecord:
    return MessageRecord(
        id=row[0],
        sender_id=row[1],
        receiver_id=row[2],
        content=row[3],
        message_type=row[4],
        image_url=row[5],
        is_read=bool(row[6]),
        created_at=row[7],
    )


def _value(v: Any) -> Any:
    """Unwrap str enums so they bind as plain TEXT."""
    return getattr(v, "value", v)


class DomainStore:
    """Async SQLite-backed store for requests and messages."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def init_db(self) -> None:
        """Create tables if they don't exist."""
        self._conn = await aiosqlite.connect(self.db_path)
        await self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS requests (
                id TEXT PRIMARY KEY,
                patient_id TEXT,
                nurse_id TEXT,
                priority TEXT NOT NULL,
                status TEXT NOT NULL,
                description TEXT NOT NULL,
                department TEXT NOT NULL,
                room TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        await self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_requests_status "
            "ON requests (status, priority, created_at)"
        )
        await self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                sender_id TEXT NOT NULL,
                receiver_id TEXT NOT NULL,
                content TEXT NOT NULL,
                message_type TEXT NOT NULL DEFAULT 'text',
                image_url TEXT,
                is_read INTEGER DEFAULT 0,
                created_at TEXT NOT NULL
            )
            """
        )
        await self._conn.commit()

    async def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.init_db()
        assert self._conn is not None
        return self._conn

    # --- Requests ---

    async def create_request(
        self,
        patient_id: str | None,
        priority: str,
        description: str,
        department: str,
        room: str | None = None,
        nurse_id: str | None = None,
    ) -> RequestRecord:
        """Persist a new request with status PENDING."""
        now = _now_iso()
        record = RequestRecord(
            id=uuid.uuid4().hex,
            patient_id=patient_id,
            nurse_id=nurse_id,
            priority=_value(priority),
            status=RequestStatus.PENDING.value,
            description=description,
            department=_value(department),
            room=room,
            created_at=now,
            updated_at=now,
        )
        try:
            conn = await self._ensure_conn()
            await conn.execute(
                f"INSERT INTO requests ({_REQUEST_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.patient_id,
                    record.nurse_id,
                    record.priority,
                    record.status,
                    record.description,
                    record.department,
                    record.room,
                    record.created_at,
                    record.updated_at,
                ),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not create request: {e}") from e
        logger.info(
            "Request %s created for %s (%s)", record.id, record.department, record.priority
        )
        return record

    async def get_request(self, request_id: str) -> RequestRecord:
        """Look up a request by id; raises NotFound."""
        try:
            conn = await self._ensure_conn()
            cursor = await conn.execute(
                f"SELECT {_REQUEST_COLUMNS} FROM requests WHERE id = ?",
                (request_id,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not read request: {e}") from e
        if row is None:
            raise NotFound(f"Request {request_id} not found")
        return _request_from_row(row)

    async def find_requests(self, **filters: Any) -> list[RequestRecord]:
        """List requests matching all given filters, newest first.

        Accepts ``patient_id``, ``nurse_id``, ``status``, ``priority`` and
        ``department``; ``None`` values are ignored.
        """
        clauses: list[str] = []
        params: list[Any] = []
        for key, value in filters.items():
            if key not in _REQUEST_FILTERS:
                raise ValueError(f"Unsupported request filter: {key}")
            if value is None:
                continue
            clauses.append(f"{_REQUEST_FILTERS[key]} = ?")
            params.append(_value(value))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        try:
            conn = await self._ensure_conn()
            cursor = await conn.execute(
                f"SELECT {_REQUEST_COLUMNS} FROM requests{where} "
                "ORDER BY created_at DESC",
                tuple(params),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not query requests: {e}") from e
        return [_request_from_row(r) for r in rows]

    async def update_request(
        self,
        request_id: str,
        status: str | None = None,
        nurse_id: str | None = None,
    ) -> RequestRecord:
        """Update status and/or assigned nurse; raises NotFound."""
        sets = ["updated_at = ?"]
        params: list[Any] = [_now_iso()]
        if status is not None:
            sets.append("status = ?")
            params.append(_value(status))
        if nurse_id is not None:
            sets.append("nurse_id = ?")
            params.append(nurse_id)
        params.append(request_id)
        try:
            conn = await self._ensure_conn()
            cursor = await conn.execute(
                f"UPDATE requests SET {', '.join(sets)} WHERE id = ?",
                tuple(params),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not update request: {e}") from e
        if cursor.rowcount == 0:
            raise NotFound(f"Request {request_id} not found")
        return await self.get_request(request_id)

    async def update_request_status(self, request_id: str, status: str) -> RequestRecord:
        return await self.update_request(request_id, status=status)

    # --- Messages ---

    async def create_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        message_type: str = "text",
        image_url: str | None = None,
    ) -> MessageRecord:
        record = MessageRecord(
            id=uuid.uuid4().hex,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            message_type=message_type,
            image_url=image_url,
            created_at=_now_iso(),
        )
        try:
            conn = await self._ensure_conn()
            await conn.execute(
                f"INSERT INTO messages ({_MESSAGE_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.sender_id,
                    record.receiver_id,
                    record.content,
                    record.message_type,
                    record.image_url,
                    0,
                    record.created_at,
                ),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not create message: {e}") from e
        return record

    async def get_message(self, message_id: str) -> MessageRecord:
        try:
            conn = await self._ensure_conn()
            cursor = await conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?",
                (message_id,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not read message: {e}") from e
        if row is None:
            raise NotFound(f"Message {message_id} not found")
        return _message_from_row(row)

    async def list_conversation(self, user_a: str, user_b: str) -> list[MessageRecord]:
        """Messages exchanged between two users, oldest first."""
        try:
            conn = await self._ensure_conn()
            cursor = await conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages "
                "WHERE (sender_id = ? AND receiver_id = ?) "
                "OR (sender_id = ? AND receiver_id = ?) "
                "ORDER BY created_at ASC",
                (user_a, user_b, user_b, user_a),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not query messages: {e}") from e
        return [_message_from_row(r) for r in rows]

    async def mark_message_read(self, message_id: str) -> MessageRecord:
        """Flag a message as read; raises NotFound."""
        try:
            conn = await self._ensure_conn()
            cursor = await conn.execute(
                "UPDATE messages SET is_read = 1 WHERE id = ?", (message_id,)
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not update message: {e}") from e
        if cursor.rowcount == 0:
            raise NotFound(f"Message {message_id} not found")
        return await self.get_message(message_id)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()
