"""Connection lifecycle: open, serialized handling, and one-shot teardown."""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from . import broadcast
from .errors import ClassroomError
from .handlers import EventDispatcher
from .hub import Connection, ConnectionHub
from .membership import MembershipCoordinator

logger = logging.getLogger(__name__)


class ConnectionLifecycleManager:
    """Binds sockets to connections and cleans up after them exactly once."""

    def __init__(self, hub: ConnectionHub, coordinator: MembershipCoordinator, dispatcher: EventDispatcher):
        self.hub = hub
        self.coordinator = coordinator
        self.dispatcher = dispatcher

    def open(self, socket: Any, sid: Optional[str] = None) -> Connection:
        conn = Connection(socket, sid)
        self.hub.register(conn)
        logger.info("Connection %s opened", conn.sid)
        return conn

    async def handle(self, conn: Connection, event: Any, args: Sequence[Any] = ()) -> None:
        """Run one inbound event; a connection's events never overlap."""
        async with conn.lock:
            if conn.closed:
                logger.debug("Dropping %s for closed connection %s", event, conn.sid)
                return
            await self.dispatcher.dispatch(conn, event, args)

    async def teardown(self, conn: Connection) -> None:
        """Implicit leave-group then leave-class for a vanished socket.

        Each step is attempted even when an earlier one fails; failures are
        logged and reported to the (possibly already closed) socket.
        """
        async with conn.lock:
            if conn.closed:
                return
            conn.closed = True
            try:
                await self._teardown_steps(conn)
            finally:
                self.hub.unregister(conn)
                logger.info("Connection %s closed", conn.sid)

    async def _teardown_steps(self, conn: Connection) -> None:
        if conn.admin_id is not None:
            try:
                await self.coordinator.touch_session(conn)
            except ClassroomError as exc:
                await self._report(conn, "session update", exc)

        if conn.group_id is not None:
            try:
                event = self.coordinator.leave_group(conn, conn.username, conn.class_id, conn.group_id, disconnect=True)
            except ClassroomError as exc:
                await self._report(conn, "group leave", exc)
            else:
                await self.hub.dispatch(conn, broadcast.group_leave(event))

        if conn.class_id is not None:
            try:
                outcome = self.coordinator.leave_class(conn, conn.username, conn.class_id, disconnect=True)
            except ClassroomError as exc:
                await self._report(conn, "class leave", exc)
                conn.clear_class()
            else:
                await self.hub.dispatch(conn, broadcast.logout(outcome))

    async def _report(self, conn: Connection, step: str, exc: ClassroomError) -> None:
        logger.warning("Teardown %s failed for %r: %s", step, conn, exc.message)
        await self.hub.dispatch(conn, broadcast.server_error(exc.message))


__all__ = ["ConnectionLifecycleManager"]
