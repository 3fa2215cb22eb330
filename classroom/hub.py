"""Live connections, room subscriptions and delivery.

A room is nothing more than a name in a connection's ``rooms`` set, so room
membership is always recomputed from the connections themselves.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel

from .broadcast import Delivery, Target
from .constants import admin_room, class_room, group_room

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    ANONYMOUS = "anonymous"
    IN_CLASS = "in_class"
    IN_GROUP = "in_group"


class Connection:
    """One live socket and the (class, user, group) it is bound to."""

    def __init__(self, socket: Any, sid: Optional[str] = None):
        self.sid = sid or uuid.uuid4().hex
        self.socket = socket
        self.username: Optional[str] = None
        self.class_id: Optional[str] = None
        self.group_id: Optional[int] = None
        self.admin_id: Optional[int] = None
        self.rooms: Set[str] = set()
        # Serialises this connection's own handlers and its teardown
        self.lock = asyncio.Lock()
        self.closed = False

    @property
    def state(self) -> ConnectionState:
        if self.class_id is None:
            return ConnectionState.ANONYMOUS
        if self.group_id is None:
            return ConnectionState.IN_CLASS
        return ConnectionState.IN_GROUP

    def is_bound_to(self, class_id: str, username: str) -> bool:
        return self.class_id == class_id and self.username == username

    def bind_class(self, class_id: str, username: str) -> None:
        self.class_id = class_id
        self.username = username

    def clear_class(self) -> None:
        self.class_id = None
        self.username = None
        self.group_id = None

    def join(self, room: str) -> None:
        self.rooms.add(room)

    def leave(self, room: str) -> None:
        self.rooms.discard(room)

    def __repr__(self) -> str:
        return f"<Connection {self.sid[:8]} {self.state.value} {self.username}@{self.class_id}/{self.group_id}>"


class ConnectionHub:
    """Registry of live connections plus the send/broadcast helpers."""

    def __init__(self) -> None:
        self.connections: Dict[str, Connection] = {}

    def register(self, conn: Connection) -> None:
        self.connections[conn.sid] = conn

    def unregister(self, conn: Connection) -> None:
        self.connections.pop(conn.sid, None)

    def members(self, room: str) -> List[Connection]:
        return [c for c in list(self.connections.values()) if room in c.rooms]

    def evict_group(self, class_id: str, group_id: int) -> List[Connection]:
        """Unbind connections from a deleted group; they stay logged in to the class."""
        room = group_room(class_id, group_id)
        evicted: List[Connection] = []
        for conn in list(self.connections.values()):
            conn.leave(room)
            if conn.class_id == class_id and conn.group_id == group_id:
                conn.group_id = None
                evicted.append(conn)
        return evicted

    def evict_class(self, class_id: str) -> List[Connection]:
        """Force-unbind every connection from a class that no longer exists."""
        prefix = class_room(class_id)
        evicted: List[Connection] = []
        for conn in list(self.connections.values()):
            stale = {r for r in conn.rooms if r.startswith(prefix) or r == admin_room(class_id)}
            if conn.class_id == class_id:
                conn.clear_class()
                evicted.append(conn)
            conn.rooms -= stale
        return evicted

    # -------------------- Sending -------------------- #

    async def send(self, conn: Connection, event: str, payload: BaseModel) -> bool:
        """Send one event to *conn*; return ``False`` if the socket is gone."""
        message = {"type": event, "data": payload.model_dump(mode="json")}
        try:
            await conn.socket.send_json(message)
            return True
        except Exception as exc:
            # Client disconnected unexpectedly
            logger.debug("Dropping %s for %r: %s", event, conn, exc)
            return False

    def _recipients(self, sender: Connection, delivery: Delivery) -> Iterable[Connection]:
        if delivery.target is Target.SOCKET:
            return [sender]
        if delivery.target is Target.EVERYONE:
            return list(self.connections.values())
        recipients = self.members(delivery.room or "")
        if delivery.exclude_sender:
            recipients = [c for c in recipients if c is not sender]
        return recipients

    async def dispatch(self, sender: Connection, deliveries: Iterable[Delivery]) -> None:
        """Send every delivery in order, as produced by the broadcast router."""
        for delivery in deliveries:
            for conn in self._recipients(sender, delivery):
                await self.send(conn, delivery.event, delivery.payload)


__all__ = ["Connection", "ConnectionHub", "ConnectionState"]
