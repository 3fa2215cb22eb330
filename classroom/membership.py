"""Membership coordination: the join/leave state machine and admin operations.

Each connection moves ``ANONYMOUS -> IN_CLASS -> IN_GROUP`` and back one
step at a time. Every operation validates against the registry first and
only then mutates, so a failure never leaves a half-applied change behind.

Operations that call the persistent store suspend at the ``await``; any
registry state they need afterwards is looked up again rather than carried
across the suspension point.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic import BaseModel, Field

from .auth_utils import hash_password, verify_password
from .config import Settings
from .constants import ADMIN_USERNAME, admin_room, class_room, group_room
from .errors import ClassroomError, InvalidInput, NameTaken, NotMember, Unauthorized
from .identity import IdentityResolver
from .registry import ClassState, RoomRegistry
from .schemas import (
    CheckResponse,
    ClassClosed,
    ClassesResponse,
    ClassResponse,
    CoordinateChange,
    CreateAdminResponse,
    Group,
    GroupEvent,
    GroupsChanged,
    GroupsGetResponse,
    LoginResponse,
    LogoutResponse,
    SettingsResponse,
    ToolbarsResponse,
    XmlResponse,
)
from .store import ClassStore

if TYPE_CHECKING:
    from .hub import Connection

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Operation outcomes with more than one payload
# ---------------------------------------------------------------------------


class LogoutOutcome(BaseModel):
    logout: LogoutResponse
    # Present when the class was left from inside a group
    group_left: Optional[GroupEvent] = None


class GroupInfoOutcome(BaseModel):
    full: GroupEvent
    requester_only: GroupEvent


class AdminJoinOutcome(BaseModel):
    response: ClassResponse
    # One entry per non-empty group, each tagged with its group id
    replays: List[GroupEvent] = Field(default_factory=list)


class DeleteGroupOutcome(BaseModel):
    changed: GroupsChanged
    leave: GroupEvent


class DeleteClassOutcome(BaseModel):
    closed: ClassClosed
    group_ids: List[int]


class SettingsOutcome(BaseModel):
    response: SettingsResponse
    group_ids: List[int]


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _text(value: Any, field: str) -> str:
    if not isinstance(value, str) or value == "":
        raise InvalidInput(f"Invalid {field}.")
    return value


def _integer(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"Invalid {field}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise InvalidInput(f"Invalid {field}.")


def _optional_integer(value: Any, field: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return _integer(value, field)


def parse_group_id(value: Any) -> int:
    return _integer(value, "group ID")


def parse_delta(value: Any, field: str) -> float:
    """Coordinate deltas must be finite numbers; strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidInput(f"Invalid {field} movement {value!r}.")
    return value


def parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _session_age(last_updated: datetime) -> float:
    if last_updated.tzinfo is None:
        last_updated = last_updated.replace(tzinfo=timezone.utc)
    return abs((datetime.now(timezone.utc) - last_updated).total_seconds())


class MembershipCoordinator:
    """Applies every state-changing operation to the injected registry."""

    def __init__(self, registry: RoomRegistry, identity: IdentityResolver, store: ClassStore, settings: Settings):
        self.registry = registry
        self.identity = identity
        self.store = store
        self.settings = settings

    # -------------------- Helpers -------------------- #

    def authorize(self, secret: Any) -> None:
        if secret != self.settings.admin_secret:
            raise Unauthorized("Admin secret mismatch.")

    def _require_binding(self, conn: "Connection", class_id: str, username: str) -> None:
        if not conn.is_bound_to(class_id, username):
            raise NotMember(f"Username {username} is not logged in to class {class_id}.")

    def _require_group_member(self, conn: "Connection", state: ClassState, username: Any, gid: int) -> Group:
        """The connection must be bound to *gid* and listed among its members."""
        group = state.get_group(gid)
        if not conn.is_bound_to(state.class_id, username) or conn.group_id != gid or username not in group.members:
            raise NotMember(f"Username {username} is not in group {gid}.")
        return group

    def _drop_group(self, conn: "Connection", state: ClassState, disconnect: Any = None) -> Optional[GroupEvent]:
        """Implicit leave-group; tolerates a group that was deleted meanwhile."""
        group_id = conn.group_id
        if group_id is None:
            return None
        conn.group_id = None
        conn.leave(group_room(state.class_id, group_id))
        group = state.groups.get(group_id)
        if group is None or conn.username not in group.members:
            return None
        state.remove_member(conn.username, group_id)
        return GroupEvent(
            username=conn.username,
            class_id=state.class_id,
            group_id=group_id,
            other_members=state.members_info(group_id),
            status=False,
            group_size=len(group.members),
            disconnect=disconnect,
        )

    # -------------------- Class membership -------------------- #

    def join_class(self, conn: "Connection", username: Any, class_id: Any) -> LoginResponse:
        if not isinstance(username, str) or username == "":
            raise InvalidInput("Invalid username.")
        state = self.registry.get_class(class_id)
        if username in state.users:
            raise NameTaken(username)
        if conn.class_id is not None:
            raise InvalidInput(f"Already logged in to class {conn.class_id} as {conn.username}.")
        state.add_user(username)
        conn.bind_class(class_id, username)
        logger.info("%s joined class %s", username, class_id)
        return LoginResponse(username=username, class_id=class_id)

    def leave_class(self, conn: "Connection", username: Any, class_id: Any, disconnect: Any = None) -> LogoutOutcome:
        state = self.registry.get_class(class_id)
        state.get_user(username)
        self._require_binding(conn, class_id, username)
        group_left = self._drop_group(conn, state, disconnect)
        state.remove_user(username)
        conn.clear_class()
        conn.leave(class_room(class_id))
        logger.info("%s left class %s", username, class_id)
        return LogoutOutcome(
            logout=LogoutResponse(username=username, class_id=class_id, disconnect=disconnect),
            group_left=group_left,
        )

    def list_groups(self, conn: "Connection", username: Any, class_id: Any) -> GroupsGetResponse:
        state = self.registry.get_class(class_id)
        conn.join(class_room(class_id))
        return GroupsGetResponse(username=username, class_id=class_id, groups=state.group_summaries())

    # -------------------- Group membership -------------------- #

    def join_group(self, conn: "Connection", username: Any, class_id: Any, group_id: Any) -> GroupEvent:
        gid = parse_group_id(group_id)
        state = self.registry.get_class(class_id)
        state.get_group(gid)
        state.get_user(username)
        self._require_binding(conn, class_id, username)
        if conn.group_id is not None:
            current = state.groups.get(conn.group_id)
            if current is not None and username in current.members:
                raise InvalidInput(f"Username {username} is already in group {conn.group_id}.")
            # Left over from a deleted group
            conn.leave(group_room(class_id, conn.group_id))
            conn.group_id = None
        group = state.add_member(username, gid)
        conn.group_id = gid
        conn.join(group_room(class_id, gid))
        return GroupEvent(
            username=username,
            class_id=class_id,
            group_id=gid,
            other_members=[state.member_info(username, gid)],
            status=True,
            group_size=len(group.members),
        )

    def leave_group(
        self, conn: "Connection", username: Any, class_id: Any, group_id: Any, disconnect: Any = None
    ) -> GroupEvent:
        gid = parse_group_id(group_id)
        state = self.registry.get_class(class_id)
        state.get_group(gid)
        state.get_user(username)
        group = self._require_group_member(conn, state, username, gid)
        state.remove_member(username, gid)
        conn.group_id = None
        conn.leave(group_room(class_id, gid))
        return GroupEvent(
            username=username,
            class_id=class_id,
            group_id=gid,
            other_members=state.members_info(gid),
            status=False,
            group_size=len(group.members),
            disconnect=disconnect,
        )

    def group_info(self, conn: "Connection", username: Any, class_id: Any, group_id: Any, status: Any) -> GroupInfoOutcome:
        gid = parse_group_id(group_id)
        state = self.registry.get_class(class_id)
        state.get_group(gid)
        requester = state.member_info(username, gid)
        joining = parse_flag(status)
        common = dict(username=username, class_id=class_id, group_id=gid, status=joining)
        return GroupInfoOutcome(
            full=GroupEvent(other_members=state.members_info(gid), **common),
            requester_only=GroupEvent(other_members=[requester], **common),
        )

    def update_position(
        self, conn: "Connection", username: Any, class_id: Any, group_id: Any, dx: Any, dy: Any, info: Any = None
    ) -> CoordinateChange:
        gid = parse_group_id(group_id)
        move_x = parse_delta(dx, "x")
        move_y = parse_delta(dy, "y")
        state = self.registry.get_class(class_id)
        user = state.get_user(username)
        self._require_group_member(conn, state, username, gid)
        user.x += move_x
        user.y += move_y
        user.info = {} if info is None or info == "" else info
        return CoordinateChange(
            username=username,
            class_id=class_id,
            group_id=gid,
            x=user.x,
            y=user.y,
            info=user.info,
            other_members=state.members_info(gid),
        )

    # -------------------- Shared XML & settings -------------------- #

    def _xml_target(self, username: Any, class_id: Any, group_id: Any):
        gid = parse_group_id(group_id)
        state = self.registry.get_class(class_id)
        group = state.get_group(gid)
        if username != ADMIN_USERNAME:
            state.get_user(username)
        return gid, group

    def update_xml(self, conn: "Connection", username: Any, class_id: Any, group_id: Any, xml: Any, toolbar: Any) -> XmlResponse:
        gid, group = self._xml_target(username, class_id, group_id)
        group.xml = xml
        group.toolbar = toolbar
        return XmlResponse(username=username, class_id=class_id, group_id=gid, xml=group.xml, toolbar=group.toolbar)

    def get_xml(self, conn: "Connection", username: Any, class_id: Any, group_id: Any) -> XmlResponse:
        gid, group = self._xml_target(username, class_id, group_id)
        return XmlResponse(username=username, class_id=class_id, group_id=gid, xml=group.xml, toolbar=group.toolbar)

    def get_settings(self, conn: "Connection", class_id: Any, group_id: Any) -> SettingsResponse:
        gid = parse_group_id(group_id)
        state = self.registry.get_class(class_id)
        state.get_group(gid)
        return SettingsResponse(class_id=class_id, settings=state.settings)

    # -------------------- Admin: classes & groups -------------------- #

    async def create_class(
        self, conn: "Connection", class_name: Any, group_count: Any, secret: Any, admin_id: Any = None
    ) -> ClassResponse:
        self.authorize(secret)
        name = _text(class_name, "class name")
        count = _integer(group_count, "group count")
        if count < 0:
            raise InvalidInput("Invalid group count.")
        owner = _optional_integer(admin_id, "admin ID")

        internal_id = await self.store.create_class(name, count, owner)
        handle = self.identity.add(internal_id)
        try:
            await self.store.set_class_handle(internal_id, handle)
        except ClassroomError:
            self.identity.remove(handle)
            raise
        self.registry.add_class(handle, internal_id, name, range(1, count + 1))
        conn.join(admin_room(handle))
        logger.info("Class %r created as %s (%d groups)", name, handle, count)
        return ClassResponse(class_id=handle, class_name=name, group_count=count)

    def admin_join_class(self, conn: "Connection", class_id: Any, secret: Any) -> AdminJoinOutcome:
        self.authorize(secret)
        state = self.registry.get_class(class_id)
        conn.join(admin_room(class_id))
        replays = [
            GroupEvent(class_id=class_id, group_id=gid, other_members=state.members_info(gid), status=True)
            for gid, group in sorted(state.groups.items())
            if group.members
        ]
        response = ClassResponse(class_id=class_id, class_name=state.class_name, group_count=len(state.groups))
        return AdminJoinOutcome(response=response, replays=replays)

    def admin_leave_class(self, conn: "Connection", class_id: Any, secret: Any, disconnect: Any = None) -> ClassClosed:
        self.authorize(secret)
        self.registry.get_class(class_id)
        conn.leave(admin_room(class_id))
        return ClassClosed(class_id=class_id, disconnect=disconnect)

    async def create_group(self, conn: "Connection", class_id: Any, secret: Any) -> GroupsChanged:
        self.authorize(secret)
        internal_id = self.identity.resolve(class_id)
        group_id = await self.store.create_group(internal_id)
        state = self.registry.get_class(class_id)
        state.add_group(group_id)
        return GroupsChanged(class_id=class_id, group_id=group_id, groups=state.group_summaries())

    async def delete_group(self, conn: "Connection", class_id: Any, group_id: Any, secret: Any) -> DeleteGroupOutcome:
        """Remove a group; its members are only notified, not moved."""
        self.authorize(secret)
        gid = parse_group_id(group_id)
        internal_id = self.identity.resolve(class_id)
        self.registry.get_class(class_id).get_group(gid)
        await self.store.delete_group(internal_id, gid)
        state = self.registry.get_class(class_id)
        state.remove_group(gid)
        logger.info("Group %s deleted from class %s", gid, class_id)
        return DeleteGroupOutcome(
            changed=GroupsChanged(class_id=class_id, group_id=gid, groups=state.group_summaries()),
            # The group is already gone, so there is no size to report
            leave=GroupEvent(username="Admin", class_id=class_id, group_id=gid, status=False, group_size=None),
        )

    async def delete_class(self, conn: "Connection", class_id: Any, secret: Any, disconnect: Any = None) -> DeleteClassOutcome:
        self.authorize(secret)
        internal_id = self.identity.resolve(class_id)
        self.registry.get_class(class_id)
        await self.store.delete_class(internal_id)
        # Groups added while the store call was pending are included
        group_ids = sorted(self.registry.remove_class(class_id).groups) if class_id in self.registry else []
        self.identity.remove(class_id)
        logger.info("Class %s deleted", class_id)
        return DeleteClassOutcome(closed=ClassClosed(class_id=class_id, disconnect=disconnect), group_ids=group_ids)

    def save_settings(self, conn: "Connection", class_id: Any, settings: Any, secret: Any) -> SettingsOutcome:
        self.authorize(secret)
        state = self.registry.get_class(class_id)
        if settings is None:
            settings = {}
        if not isinstance(settings, dict):
            raise InvalidInput("Invalid settings.")
        state.settings = settings
        return SettingsOutcome(
            response=SettingsResponse(class_id=class_id, settings=settings),
            group_ids=sorted(state.groups),
        )

    async def get_classes(self, conn: "Connection", secret: Any, admin_id: Any = None, disconnect: Any = None) -> ClassesResponse:
        self.authorize(secret)
        owner = _optional_integer(admin_id, "admin ID")
        classes = await self.store.get_classes(owner)
        return ClassesResponse(classes=classes, disconnect=disconnect)

    # -------------------- Admin: toolbars -------------------- #

    async def get_toolbars(self, conn: "Connection", class_id: Any, secret: Any) -> ToolbarsResponse:
        self.authorize(secret)
        internal_id = self.identity.resolve(class_id)
        toolbars = await self.store.get_toolbars(internal_id)
        return ToolbarsResponse(class_id=class_id, toolbars=toolbars)

    async def save_toolbar(self, conn: "Connection", class_id: Any, toolbar_name: Any, tools: Any, secret: Any) -> ToolbarsResponse:
        self.authorize(secret)
        internal_id = self.identity.resolve(class_id)
        name = _text(toolbar_name, "toolbar name")
        await self.store.create_toolbar(internal_id, name, _text(tools, "tools"))
        toolbars = await self.store.get_toolbars(internal_id)
        return ToolbarsResponse(class_id=class_id, toolbars=toolbars)

    async def delete_toolbar(self, conn: "Connection", class_id: Any, toolbar_name: Any, secret: Any) -> ToolbarsResponse:
        self.authorize(secret)
        internal_id = self.identity.resolve(class_id)
        await self.store.delete_toolbar(internal_id, _text(toolbar_name, "toolbar name"))
        toolbars = await self.store.get_toolbars(internal_id)
        return ToolbarsResponse(class_id=class_id, toolbars=toolbars)

    # -------------------- Admin: accounts & sessions -------------------- #

    async def create_admin(self, conn: "Connection", username: Any, password: Any, secret: Any) -> CreateAdminResponse:
        self.authorize(secret)
        name = _text(username, "username")
        secret_text = _text(password, "password")
        if await self.store.check_user(name) is not None:
            return CreateAdminResponse(check=0)
        await self.store.create_user(name, hash_password(secret_text))
        logger.info("Admin account %r created", name)
        return CreateAdminResponse(username=name, check=1)

    async def check_username(self, conn: "Connection", username: Any, password: Any, secret: Any) -> CheckResponse:
        """check is 0 for an unknown user, -1 for a wrong password, 1 when valid."""
        self.authorize(secret)
        record = await self.store.check_user(_text(username, "username"))
        if record is None:
            return CheckResponse(check=0)
        if not verify_password(password, record.password_hash):
            return CheckResponse(admin_id=record.admin_id, check=-1)
        return CheckResponse(admin_id=record.admin_id, check=1)

    async def create_session(self, conn: "Connection", admin_id: Any, password: Any) -> None:
        owner = _integer(admin_id, "admin ID")
        await self.store.create_session(owner, hash_password(_text(password, "session password")))
        conn.admin_id = owner

    async def delete_session(self, conn: "Connection", admin_id: Any) -> None:
        owner = _integer(admin_id, "admin ID")
        await self.store.delete_session(owner)
        if conn.admin_id == owner:
            conn.admin_id = None

    async def check_session(self, conn: "Connection", admin_id: Any, password: Any) -> CheckResponse:
        """check is 1 for a live session, -1 once it has timed out, else 0."""
        owner = _integer(admin_id, "admin ID")
        record = await self.store.check_session(owner)
        if record is None or not verify_password(password, record.password_hash):
            return CheckResponse(admin_id=None, check=0)
        conn.admin_id = owner
        if _session_age(record.last_updated) >= self.settings.session_timeout:
            return CheckResponse(admin_id=owner, check=-1)
        return CheckResponse(admin_id=owner, check=1)

    async def touch_session(self, conn: "Connection") -> None:
        if conn.admin_id is not None:
            await self.store.update_time(conn.admin_id)


__all__ = [
    "MembershipCoordinator",
    "LogoutOutcome",
    "GroupInfoOutcome",
    "AdminJoinOutcome",
    "DeleteGroupOutcome",
    "DeleteClassOutcome",
    "SettingsOutcome",
    "parse_group_id",
    "parse_delta",
    "parse_flag",
]
