from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from classroom.config import Settings
from classroom.errors import PersistenceError
from classroom.handlers import EventDispatcher
from classroom.hub import Connection, ConnectionHub
from classroom.identity import IdentityResolver
from classroom.lifecycle import ConnectionLifecycleManager
from classroom.membership import MembershipCoordinator
from classroom.registry import RoomRegistry
from classroom.schemas import AdminRecord, ClassSummary, SessionRecord, ToolbarRecord
from classroom.store import ClassStore

SECRET = "test-secret"


class RecordingSocket:
    """Stands in for a WebSocket; keeps every JSON message it is sent."""

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []
        self.closed = False

    async def send_json(self, message: Dict[str, Any]) -> None:
        if self.closed:
            raise RuntimeError("socket is closed")
        self.messages.append(message)

    def events(self) -> List[str]:
        return [m["type"] for m in self.messages]

    def of(self, event: str) -> List[Dict[str, Any]]:
        return [m["data"] for m in self.messages if m["type"] == event]

    def clear(self) -> None:
        self.messages.clear()


class InMemoryClassStore(ClassStore):
    """Dict-backed store; ``fail`` names methods that should raise."""

    def __init__(self) -> None:
        self.classes: Dict[int, Dict[str, Any]] = {}
        self.toolbars: Dict[int, List[ToolbarRecord]] = {}
        self.admins: Dict[str, AdminRecord] = {}
        self.sessions: Dict[int, SessionRecord] = {}
        self.touched: List[int] = []
        self.fail: set = set()
        self._next_id = 1

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise PersistenceError(f"{name} failed")

    async def create_class(self, class_name: str, group_count: int, admin_id: Optional[int] = None) -> int:
        self._check("create_class")
        if any(c["name"] == class_name for c in self.classes.values()):
            raise PersistenceError(f"Class name {class_name} already exists.")
        class_id = self._next_id
        self._next_id += 1
        self.classes[class_id] = {
            "name": class_name,
            "admin_id": admin_id,
            "handle": None,
            "groups": list(range(1, group_count + 1)),
        }
        return class_id

    async def set_class_handle(self, class_id: int, handle: str) -> None:
        self._check("set_class_handle")
        self.classes[class_id]["handle"] = handle

    async def create_group(self, class_id: int) -> int:
        self._check("create_group")
        groups = self.classes[class_id]["groups"]
        group_id = max(groups, default=0) + 1
        groups.append(group_id)
        return group_id

    async def delete_group(self, class_id: int, group_id: int) -> None:
        self._check("delete_group")
        self.classes[class_id]["groups"].remove(group_id)

    async def delete_class(self, class_id: int) -> None:
        self._check("delete_class")
        del self.classes[class_id]

    async def get_classes(self, admin_id: Optional[int] = None) -> List[ClassSummary]:
        return [
            ClassSummary(class_id=c["handle"], class_name=c["name"])
            for c in self.classes.values()
            if admin_id is None or c["admin_id"] == admin_id
        ]

    async def get_toolbars(self, class_id: int) -> List[ToolbarRecord]:
        return list(self.toolbars.get(class_id, []))

    async def create_toolbar(self, class_id: int, toolbar_name: str, tools: str) -> None:
        self.toolbars.setdefault(class_id, []).append(ToolbarRecord(name=toolbar_name, tools=tools))

    async def delete_toolbar(self, class_id: int, toolbar_name: str) -> None:
        self.toolbars[class_id] = [t for t in self.toolbars.get(class_id, []) if t.name != toolbar_name]

    async def check_user(self, username: str) -> Optional[AdminRecord]:
        return self.admins.get(username)

    async def create_user(self, username: str, password_hash: str) -> int:
        admin_id = len(self.admins) + 1
        self.admins[username] = AdminRecord(admin_id=admin_id, username=username, password_hash=password_hash)
        return admin_id

    async def create_session(self, admin_id: int, password_hash: str) -> None:
        self.sessions[admin_id] = SessionRecord(
            admin_id=admin_id,
            password_hash=password_hash,
            last_updated=datetime.now(timezone.utc),
        )

    async def check_session(self, admin_id: int) -> Optional[SessionRecord]:
        return self.sessions.get(admin_id)

    async def delete_session(self, admin_id: int) -> None:
        self.sessions.pop(admin_id, None)

    async def update_time(self, admin_id: int) -> None:
        self._check("update_time")
        self.touched.append(admin_id)


@pytest.fixture
def settings() -> Settings:
    return Settings(admin_secret=SECRET, database_url="sqlite://:memory:", session_timeout=720)


@pytest.fixture
def store() -> InMemoryClassStore:
    return InMemoryClassStore()


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def coordinator(registry, store, settings) -> MembershipCoordinator:
    return MembershipCoordinator(registry, IdentityResolver(settings.handle_bytes), store, settings)


@pytest.fixture
def hub() -> ConnectionHub:
    return ConnectionHub()


@pytest.fixture
def lifecycle(hub, coordinator) -> ConnectionLifecycleManager:
    return ConnectionLifecycleManager(hub, coordinator, EventDispatcher(coordinator, hub))


@pytest.fixture
def connect(lifecycle):
    """Open a connection backed by a recording socket."""

    def _connect() -> Tuple[Connection, RecordingSocket]:
        socket = RecordingSocket()
        return lifecycle.open(socket), socket

    return _connect


@pytest.fixture
async def class_id(coordinator) -> str:
    """Handle of a live class with groups 1..3, created by a detached admin."""
    admin = Connection(RecordingSocket())
    response = await coordinator.create_class(admin, "Physics", 3, SECRET)
    return response.class_id
