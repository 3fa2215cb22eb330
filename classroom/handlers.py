"""Inbound event dispatch and the handler error boundary.

Each inbound event carries positional arguments. The dispatcher sanitizes
them, runs the matching coordinator operation, hands the outcome to the
broadcast router and sends the resulting deliveries through the hub. Any
``ClassroomError`` becomes a single ``server_error`` for the initiating
socket; an admin secret mismatch is dropped silently.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Tuple

from . import broadcast
from .errors import ClassroomError, Unauthorized
from .hub import Connection, ConnectionHub
from .membership import MembershipCoordinator, parse_group_id

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[None]]


def sanitize(value: Any) -> Any:
    """Escape angle brackets in strings; other values pass through."""
    if isinstance(value, str):
        return value.replace("<", "&lt;").replace(">", "&gt;")
    return value


def _pad(args: Sequence[Any], arity: int) -> List[Any]:
    padded = [sanitize(a) for a in list(args)[:arity]]
    padded.extend([None] * (arity - len(padded)))
    return padded


class EventDispatcher:
    """Maps inbound event names onto coordinator operations."""

    def __init__(self, coordinator: MembershipCoordinator, hub: ConnectionHub):
        self.coordinator = coordinator
        self.hub = hub
        self._handlers: Dict[str, Tuple[Handler, int]] = {
            # student flows
            "login": (self.on_login, 2),
            "logout": (self.on_logout, 3),
            "groups_get": (self.on_groups_get, 2),
            "group_join": (self.on_group_join, 3),
            "group_leave": (self.on_group_leave, 4),
            "group_info": (self.on_group_info, 4),
            "coordinate_change": (self.on_coordinate_change, 6),
            "xml_change": (self.on_xml_change, 5),
            "get_xml": (self.on_get_xml, 3),
            "get-settings": (self.on_get_settings, 2),
            # admin flows
            "add-class": (self.on_add_class, 4),
            "join-class": (self.on_join_class, 2),
            "add-group": (self.on_add_group, 2),
            "delete-group": (self.on_delete_group, 3),
            "leave-class": (self.on_leave_class, 3),
            "delete-class": (self.on_delete_class, 3),
            "save-settings": (self.on_save_settings, 3),
            "get-classes": (self.on_get_classes, 3),
            "save-toolbar": (self.on_save_toolbar, 4),
            "get-toolbars": (self.on_get_toolbars, 2),
            "delete-toolbar": (self.on_delete_toolbar, 3),
            "create-admin": (self.on_create_admin, 3),
            "check-username": (self.on_check_username, 3),
            "create-session": (self.on_create_session, 2),
            "delete-session": (self.on_delete_session, 1),
            "check-session": (self.on_check_session, 2),
        }

    async def dispatch(self, conn: Connection, event: Any, args: Sequence[Any] = ()) -> None:
        entry = self._handlers.get(event) if isinstance(event, str) else None
        if entry is None:
            await self.hub.dispatch(conn, broadcast.server_error(f"Unknown event {event!r}."))
            return
        handler, arity = entry
        try:
            await handler(conn, *_pad(args, arity))
        except Unauthorized:
            logger.debug("Ignoring %s from %r: admin secret mismatch", event, conn)
        except ClassroomError as exc:
            logger.warning("%s failed for %r: %s", event, conn, exc.message)
            await self.hub.dispatch(conn, broadcast.server_error(exc.message))
        except Exception:
            logger.exception("Unexpected error while handling %s for %r", event, conn)
            await self.hub.dispatch(conn, broadcast.server_error("Internal server error."))

    # -------------------- Student flows -------------------- #

    async def on_login(self, conn: Connection, username, class_id) -> None:
        response = self.coordinator.join_class(conn, username, class_id)
        await self.hub.dispatch(conn, broadcast.login(response))

    async def on_logout(self, conn: Connection, username, class_id, disconnect) -> None:
        outcome = self.coordinator.leave_class(conn, username, class_id, disconnect)
        await self.hub.dispatch(conn, broadcast.logout(outcome))

    async def on_groups_get(self, conn: Connection, username, class_id) -> None:
        response = self.coordinator.list_groups(conn, username, class_id)
        await self.hub.dispatch(conn, broadcast.groups_get(response))

    async def on_group_join(self, conn: Connection, username, class_id, group_id) -> None:
        event = self.coordinator.join_group(conn, username, class_id, group_id)
        await self.hub.dispatch(conn, broadcast.group_join(event))

    async def on_group_leave(self, conn: Connection, username, class_id, group_id, disconnect) -> None:
        event = self.coordinator.leave_group(conn, username, class_id, group_id, disconnect)
        await self.hub.dispatch(conn, broadcast.group_leave(event))

    async def on_group_info(self, conn: Connection, username, class_id, group_id, status) -> None:
        outcome = self.coordinator.group_info(conn, username, class_id, group_id, status)
        await self.hub.dispatch(conn, broadcast.group_info(outcome))

    async def on_coordinate_change(self, conn: Connection, username, class_id, group_id, dx, dy, info) -> None:
        change = self.coordinator.update_position(conn, username, class_id, group_id, dx, dy, info)
        await self.hub.dispatch(conn, broadcast.coordinate_change(change))

    async def on_xml_change(self, conn: Connection, username, class_id, group_id, xml, toolbar) -> None:
        response = self.coordinator.update_xml(conn, username, class_id, group_id, xml, toolbar)
        await self.hub.dispatch(conn, broadcast.xml_change(response))

    async def on_get_xml(self, conn: Connection, username, class_id, group_id) -> None:
        response = self.coordinator.get_xml(conn, username, class_id, group_id)
        await self.hub.dispatch(conn, broadcast.get_xml(response))

    async def on_get_settings(self, conn: Connection, class_id, group_id) -> None:
        response = self.coordinator.get_settings(conn, class_id, group_id)
        await self.hub.dispatch(conn, broadcast.get_settings(response, parse_group_id(group_id)))

    # -------------------- Admin flows -------------------- #

    async def on_add_class(self, conn: Connection, class_name, group_count, secret, admin_id) -> None:
        response = await self.coordinator.create_class(conn, class_name, group_count, secret, admin_id)
        await self.hub.dispatch(conn, broadcast.add_class(response))

    async def on_join_class(self, conn: Connection, class_id, secret) -> None:
        outcome = self.coordinator.admin_join_class(conn, class_id, secret)
        await self.hub.dispatch(conn, broadcast.admin_join_class(outcome))

    async def on_add_group(self, conn: Connection, class_id, secret) -> None:
        changed = await self.coordinator.create_group(conn, class_id, secret)
        await self.hub.dispatch(conn, broadcast.add_group(changed))

    async def on_delete_group(self, conn: Connection, class_id, group_id, secret) -> None:
        outcome = await self.coordinator.delete_group(conn, class_id, group_id, secret)
        await self.hub.dispatch(conn, broadcast.delete_group(outcome))
        self.hub.evict_group(outcome.changed.class_id, outcome.leave.group_id)

    async def on_leave_class(self, conn: Connection, class_id, secret, disconnect) -> None:
        closed = self.coordinator.admin_leave_class(conn, class_id, secret, disconnect)
        await self.hub.dispatch(conn, broadcast.admin_leave_class(closed))

    async def on_delete_class(self, conn: Connection, class_id, secret, disconnect) -> None:
        outcome = await self.coordinator.delete_class(conn, class_id, secret, disconnect)
        await self.hub.dispatch(conn, broadcast.delete_class(outcome))
        evicted = self.hub.evict_class(outcome.closed.class_id)
        logger.info("Unbound %d connection(s) from deleted class %s", len(evicted), outcome.closed.class_id)

    async def on_save_settings(self, conn: Connection, class_id, settings, secret) -> None:
        outcome = self.coordinator.save_settings(conn, class_id, settings, secret)
        await self.hub.dispatch(conn, broadcast.save_settings(outcome))

    async def on_get_classes(self, conn: Connection, secret, admin_id, disconnect) -> None:
        response = await self.coordinator.get_classes(conn, secret, admin_id, disconnect)
        await self.hub.dispatch(conn, broadcast.get_classes(response))

    async def on_save_toolbar(self, conn: Connection, class_id, toolbar_name, tools, secret) -> None:
        response = await self.coordinator.save_toolbar(conn, class_id, toolbar_name, tools, secret)
        await self.hub.dispatch(conn, broadcast.toolbars(response))

    async def on_get_toolbars(self, conn: Connection, class_id, secret) -> None:
        response = await self.coordinator.get_toolbars(conn, class_id, secret)
        await self.hub.dispatch(conn, broadcast.toolbars(response))

    async def on_delete_toolbar(self, conn: Connection, class_id, toolbar_name, secret) -> None:
        response = await self.coordinator.delete_toolbar(conn, class_id, toolbar_name, secret)
        await self.hub.dispatch(conn, broadcast.delete_toolbar(response))

    async def on_create_admin(self, conn: Connection, username, password, secret) -> None:
        response = await self.coordinator.create_admin(conn, username, password, secret)
        await self.hub.dispatch(conn, broadcast.create_admin(response))

    async def on_check_username(self, conn: Connection, username, password, secret) -> None:
        response = await self.coordinator.check_username(conn, username, password, secret)
        await self.hub.dispatch(conn, broadcast.check_username(response))

    async def on_create_session(self, conn: Connection, admin_id, password) -> None:
        await self.coordinator.create_session(conn, admin_id, password)

    async def on_delete_session(self, conn: Connection, admin_id) -> None:
        await self.coordinator.delete_session(conn, admin_id)

    async def on_check_session(self, conn: Connection, admin_id, password) -> None:
        response = await self.coordinator.check_session(conn, admin_id, password)
        await self.hub.dispatch(conn, broadcast.check_session(response))


__all__ = ["EventDispatcher", "sanitize"]
