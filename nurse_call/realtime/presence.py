"""Department rooms for live connections and request/message fan-out.

A connection is ``Connected`` after ``connect``, ``Joined(department)`` after
a privileged ``join``, and gone after ``disconnect``. Delivery is best-effort:
members that fail or stall are skipped, never retried.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Protocol

from nurse_call.schemas.domain import PRIVILEGED_ROLES

logger = logging.getLogger(__name__)

REQUEST_UPDATE_EVENT = "requestUpdate"
MESSAGE_READ_EVENT = "messageRead"


class Connection(Protocol):
    connection_id: str

    async def emit(self, event: str, data: Any) -> None: ...


@dataclass
class Membership:
    role: str
    department: str | None = None
    user_id: str | None = None


def room_name(department: str) -> str:
    return f"department:{department}"


def _request_payload(request: Any) -> dict[str, Any]:
    if hasattr(request, "to_dict"):
        return request.to_dict()
    return dict(request)


class PresenceRouter:
    """Tracks live connections and which department room each one joined."""

    def __init__(self, send_timeout: float = 2.0) -> None:
        self.send_timeout = send_timeout
        self._connections: dict[str, Connection] = {}
        self._members: dict[str, Membership] = {}
        # Serialises broadcasts per department so members see source order
        self._room_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def connect(self, connection: Connection) -> None:
        self._connections[connection.connection_id] = connection
        logger.info("Client connected: %s", connection.connection_id)

    def join(
        self,
        connection_id: str,
        role: str,
        department: str | None,
        user_id: str | None = None,
    ) -> bool:
        """Join a department room. Non-privileged roles are ignored.

        Re-joining replaces the previous membership. Returns True when the
        connection is now in a department room.
        """
        if connection_id not in self._connections:
            return False
        if user_id:
            member = self._members.setdefault(connection_id, Membership(role=role))
            member.user_id = user_id
        if role not in PRIVILEGED_ROLES or not department:
            return False
        previous = self._members.get(connection_id)
        self._members[connection_id] = Membership(
            role=role,
            department=department,
            user_id=user_id or (previous.user_id if previous else None),
        )
        if previous and previous.department and previous.department != department:
            logger.info(
                "Connection %s moved from %s to %s",
                connection_id,
                room_name(previous.department),
                room_name(department),
            )
        return True

    def disconnect(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)
        self._members.pop(connection_id, None)
        logger.info("Client disconnected: %s", connection_id)

    def department_of(self, connection_id: str) -> str | None:
        member = self._members.get(connection_id)
        return member.department if member else None

    def members(self, department: str) -> list[str]:
        return [
            cid
            for cid, m in self._members.items()
            if m.department == department and cid in self._connections
        ]

    def connections_for_user(self, user_id: str) -> list[str]:
        return [
            cid
            for cid, m in self._members.items()
            if m.user_id == user_id and cid in self._connections
        ]

    async def broadcast_new_request(self, request: Any) -> int:
        return await self._broadcast_request("new", request)

    async def broadcast_request_update(self, request: Any) -> int:
        return await self._broadcast_request("update", request)

    async def _broadcast_request(self, kind: str, request: Any) -> int:
        payload = _request_payload(request)
        department = payload.get("department")
        if not department:
            logger.warning("Request without department not broadcast: %s", payload.get("id"))
            return 0
        event = {"type": kind, "request": payload}
        async with self._room_locks[department]:
            # Snapshot: joins/leaves during delivery apply to the next event
            targets = self.members(department)
            return await self._deliver(targets, REQUEST_UPDATE_EVENT, event)

    async def broadcast_message_read(self, message_id: str, user_id: str | None = None) -> int:
        """Tell the interested user (all connections when unknown) a message was read."""
        targets = self.connections_for_user(user_id) if user_id else []
        if not targets:
            targets = list(self._connections)
        return await self._deliver(targets, MESSAGE_READ_EVENT, {"messageId": message_id})

    async def _deliver(self, targets: list[str], event: str, data: Any) -> int:
        delivered = 0
        for cid in targets:
            connection = self._connections.get(cid)
            if connection is None:
                continue
            try:
                await asyncio.wait_for(connection.emit(event, data), self.send_timeout)
                delivered += 1
            except Exception as e:
                logger.warning("Skipping %s for %s: %s", event, cid, e)
        return delivered
