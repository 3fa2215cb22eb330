"""Pydantic data schemas used across the server.

Runtime state records (``UserState``, ``Group``), the outbound payload of
every event, and the records returned by the persistent store all live here
so other modules import from a single location.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# -----------------------------
# Runtime state
# -----------------------------


class UserState(BaseModel):
    """Ephemeral per-user state inside a class."""

    x: float = 0
    y: float = 0
    # Latest client-reported status, opaque to the server
    info: Any = Field(default_factory=dict)

    def reset(self) -> None:
        self.x = 0
        self.y = 0
        self.info = {}


class Group(BaseModel):
    group_id: int
    members: List[str] = Field(default_factory=list)  # join order
    xml: Any = None
    toolbar: Any = None


# -----------------------------
# Payload building blocks
# -----------------------------


class MemberInfo(BaseModel):
    member_name: str
    member_info: Any = Field(default_factory=dict)
    member_x: float = 0
    member_y: float = 0
    group_id: int


class GroupSummary(BaseModel):
    grp_name: int
    num: int


class ClassSummary(BaseModel):
    class_id: Optional[str] = None  # external handle; None until registered
    class_name: str


class ToolbarRecord(BaseModel):
    name: str
    tools: str


class AdminRecord(BaseModel):
    admin_id: int
    username: str
    password_hash: str


class SessionRecord(BaseModel):
    admin_id: int
    password_hash: str
    last_updated: datetime


# -----------------------------
# Outbound event payloads
# -----------------------------


class LoginResponse(BaseModel):
    username: str
    class_id: str


class LogoutResponse(BaseModel):
    username: Optional[str] = None
    class_id: str
    disconnect: Any = None


class GroupsGetResponse(BaseModel):
    username: Optional[str] = None
    class_id: str
    groups: List[GroupSummary]


class GroupEvent(BaseModel):
    """Shared shape of group_join / group_leave / group_info responses."""

    username: Optional[str] = None
    class_id: Optional[str] = None
    group_id: int
    other_members: List[MemberInfo] = Field(default_factory=list)
    status: bool
    # Size after the change; None when the group no longer exists
    group_size: Optional[int] = None
    disconnect: Any = None


class GroupNumbers(BaseModel):
    """Numbers-only summary sent to the class lobby."""

    class_id: str
    group_id: int
    group_size: Optional[int] = None
    status: bool


class CoordinateChange(BaseModel):
    username: str
    class_id: str
    group_id: int
    x: float
    y: float
    info: Any
    other_members: List[MemberInfo]


class XmlResponse(BaseModel):
    username: str
    class_id: str
    group_id: int
    xml: Any = None
    toolbar: Any = None


class SettingsResponse(BaseModel):
    class_id: str
    settings: Dict[str, Any]


class ClassResponse(BaseModel):
    class_id: str
    class_name: str
    group_count: int


class GroupsChanged(BaseModel):
    username: str = "Admin"
    class_id: str
    group_id: Optional[int] = None
    groups: List[GroupSummary]


class ClassClosed(BaseModel):
    class_id: str
    disconnect: Any = None


class ClassesResponse(BaseModel):
    classes: List[ClassSummary]
    disconnect: Any = None


class ToolbarsResponse(BaseModel):
    username: str = "Admin"
    class_id: str
    toolbars: List[ToolbarRecord]


class CheckResponse(BaseModel):
    admin_id: Optional[int] = None
    check: int


class CreateAdminResponse(BaseModel):
    username: Optional[str] = None
    check: int


class ServerError(BaseModel):
    message: str


__all__ = [
    # runtime
    "UserState",
    "Group",
    "MemberInfo",
    "GroupSummary",
    # store records
    "ClassSummary",
    "ToolbarRecord",
    "AdminRecord",
    "SessionRecord",
    # payloads
    "LoginResponse",
    "LogoutResponse",
    "GroupsGetResponse",
    "GroupEvent",
    "GroupNumbers",
    "CoordinateChange",
    "XmlResponse",
    "SettingsResponse",
    "ClassResponse",
    "GroupsChanged",
    "ClassClosed",
    "ClassesResponse",
    "ToolbarsResponse",
    "CheckResponse",
    "CreateAdminResponse",
    "ServerError",
]
