"""Fan-out rules: which sockets and rooms receive what after each operation.

Every function here is pure. It takes the outcome of a coordinator
operation and returns the ordered deliveries for it: the reply to the
initiating socket first, then group-scoped, then class-scoped, then
admin-scoped notifications. Nothing is sent from this module.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from . import constants as ev
from .constants import admin_room, class_room, group_room
from .membership import (
    AdminJoinOutcome,
    DeleteClassOutcome,
    DeleteGroupOutcome,
    GroupInfoOutcome,
    LogoutOutcome,
    SettingsOutcome,
)
from .schemas import (
    CheckResponse,
    ClassClosed,
    ClassesResponse,
    ClassResponse,
    CoordinateChange,
    CreateAdminResponse,
    GroupEvent,
    GroupNumbers,
    GroupsChanged,
    GroupsGetResponse,
    LoginResponse,
    LogoutResponse,
    ServerError,
    SettingsResponse,
    ToolbarsResponse,
    XmlResponse,
)


class Target(str, Enum):
    SOCKET = "socket"
    ROOM = "room"
    EVERYONE = "everyone"


@dataclass(frozen=True)
class Delivery:
    target: Target
    event: str
    payload: BaseModel
    room: Optional[str] = None
    exclude_sender: bool = False


def to_socket(event: str, payload: BaseModel) -> Delivery:
    return Delivery(Target.SOCKET, event, payload)


def to_room(room: str, event: str, payload: BaseModel, exclude_sender: bool = False) -> Delivery:
    return Delivery(Target.ROOM, event, payload, room=room, exclude_sender=exclude_sender)


def to_everyone(event: str, payload: BaseModel) -> Delivery:
    return Delivery(Target.EVERYONE, event, payload)


# ---------------------------------------------------------------------------
# Student flows
# ---------------------------------------------------------------------------


def login(response: LoginResponse) -> List[Delivery]:
    return [to_socket(ev.LOGIN_RESPONSE, response)]


def logout(outcome: LogoutOutcome) -> List[Delivery]:
    deliveries: List[Delivery] = []
    if outcome.group_left is not None:
        deliveries.extend(group_leave(outcome.group_left))
    deliveries.append(to_socket(ev.LOGOUT_RESPONSE, outcome.logout))
    return deliveries


def groups_get(response: GroupsGetResponse) -> List[Delivery]:
    return [to_socket(ev.GROUPS_GET_RESPONSE, response)]


def _numbers(event: GroupEvent) -> GroupNumbers:
    return GroupNumbers(
        class_id=event.class_id,
        group_id=event.group_id,
        group_size=event.group_size,
        status=event.status,
    )


def group_join(event: GroupEvent) -> List[Delivery]:
    return [
        to_socket(ev.GROUP_JOIN_RESPONSE, event),
        to_room(class_room(event.class_id), ev.GROUP_NUMBERS_RESPONSE, _numbers(event)),
        to_room(admin_room(event.class_id), ev.GROUP_INFO_RESPONSE, event),
    ]


def group_leave(event: GroupEvent) -> List[Delivery]:
    """Also used for the implicit leave performed on disconnect."""
    return [
        to_socket(ev.GROUP_LEAVE_RESPONSE, event),
        to_room(group_room(event.class_id, event.group_id), ev.GROUP_INFO_RESPONSE, event),
        to_room(class_room(event.class_id), ev.GROUP_NUMBERS_RESPONSE, _numbers(event)),
        to_room(admin_room(event.class_id), ev.GROUP_INFO_RESPONSE, event),
    ]


def group_info(outcome: GroupInfoOutcome) -> List[Delivery]:
    # Peers only need the requester so they can add (or drop) one member
    room = group_room(outcome.full.class_id, outcome.full.group_id)
    deliveries: List[Delivery] = []
    if outcome.full.status:
        deliveries.append(to_socket(ev.GROUP_INFO_RESPONSE, outcome.full))
    deliveries.append(to_room(room, ev.GROUP_INFO_RESPONSE, outcome.requester_only, exclude_sender=True))
    return deliveries


def coordinate_change(change: CoordinateChange) -> List[Delivery]:
    return [
        to_room(group_room(change.class_id, change.group_id), ev.COORDINATE_CHANGE_RESPONSE, change),
        to_room(admin_room(change.class_id), ev.COORDINATE_CHANGE_RESPONSE, change),
    ]


def xml_change(response: XmlResponse) -> List[Delivery]:
    return [
        to_room(group_room(response.class_id, response.group_id), ev.XML_CHANGE_RESPONSE, response, exclude_sender=True),
        to_room(admin_room(response.class_id), ev.XML_CHANGE_RESPONSE, response),
    ]


def get_xml(response: XmlResponse) -> List[Delivery]:
    return [to_socket(ev.GET_XML_RESPONSE, response)]


def get_settings(response: SettingsResponse, group_id: int) -> List[Delivery]:
    return [to_room(group_room(response.class_id, group_id), ev.GET_SETTINGS_RESPONSE, response)]


# ---------------------------------------------------------------------------
# Admin flows
# ---------------------------------------------------------------------------


def add_class(response: ClassResponse) -> List[Delivery]:
    return [to_socket(ev.ADD_CLASS_RESPONSE, response)]


def admin_join_class(outcome: AdminJoinOutcome) -> List[Delivery]:
    deliveries = [to_socket(ev.ADD_CLASS_RESPONSE, outcome.response)]
    room = admin_room(outcome.response.class_id)
    deliveries.extend(to_room(room, ev.GROUP_INFO_RESPONSE, replay) for replay in outcome.replays)
    return deliveries


def add_group(changed: GroupsChanged) -> List[Delivery]:
    return [
        to_socket(ev.ADD_GROUP_RESPONSE, changed),
        to_room(class_room(changed.class_id), ev.ADD_GROUP_RESPONSE, changed, exclude_sender=True),
    ]


def delete_group(outcome: DeleteGroupOutcome) -> List[Delivery]:
    class_id = outcome.changed.class_id
    return [
        to_socket(ev.DELETE_GROUP_RESPONSE, outcome.changed),
        to_room(group_room(class_id, outcome.leave.group_id), ev.GROUP_LEAVE_RESPONSE, outcome.leave),
        to_room(class_room(class_id), ev.DELETE_GROUP_RESPONSE, outcome.changed, exclude_sender=True),
    ]


def admin_leave_class(closed: ClassClosed) -> List[Delivery]:
    return [to_socket(ev.LEAVE_CLASS_RESPONSE, closed)]


def delete_class(outcome: DeleteClassOutcome) -> List[Delivery]:
    closed = outcome.closed
    deliveries: List[Delivery] = []
    for group_id in outcome.group_ids:
        room = group_room(closed.class_id, group_id)
        deliveries.append(to_room(room, ev.GROUP_LEAVE_RESPONSE, closed))
        deliveries.append(to_room(room, ev.LOGOUT_RESPONSE, closed))
    deliveries.append(to_room(class_room(closed.class_id), ev.LOGOUT_RESPONSE, closed))
    deliveries.append(to_everyone(ev.DELETE_STUDENT_CLASS_RESPONSE, closed))
    deliveries.append(to_room(admin_room(closed.class_id), ev.LEAVE_CLASS_RESPONSE, closed))
    deliveries.append(to_room(admin_room(closed.class_id), ev.DELETE_CLASS_RESPONSE, closed))
    return deliveries


def save_settings(outcome: SettingsOutcome) -> List[Delivery]:
    return [
        to_room(group_room(outcome.response.class_id, gid), ev.GET_SETTINGS_RESPONSE, outcome.response)
        for gid in outcome.group_ids
    ]


def get_classes(response: ClassesResponse) -> List[Delivery]:
    return [to_socket(ev.GET_CLASSES_RESPONSE, response)]


def toolbars(response: ToolbarsResponse) -> List[Delivery]:
    return [
        to_socket(ev.GET_TOOLBAR_RESPONSE, response),
        to_room(admin_room(response.class_id), ev.GET_TOOLBAR_RESPONSE, response, exclude_sender=True),
    ]


def delete_toolbar(response: ToolbarsResponse) -> List[Delivery]:
    return [to_room(admin_room(response.class_id), ev.DELETE_TOOLBAR_RESPONSE, response)]


def create_admin(response: CreateAdminResponse) -> List[Delivery]:
    return [to_socket(ev.CREATE_ADMIN_RESPONSE, response)]


def check_username(response: CheckResponse) -> List[Delivery]:
    return [to_socket(ev.CHECK_USERNAME_RESPONSE, response)]


def check_session(response: CheckResponse) -> List[Delivery]:
    return [to_socket(ev.CHECK_SESSION_RESPONSE, response)]


def server_error(message: str) -> List[Delivery]:
    return [to_socket(ev.SERVER_ERROR, ServerError(message=message))]


__all__ = [
    "Target",
    "Delivery",
    "to_socket",
    "to_room",
    "to_everyone",
    "login",
    "logout",
    "groups_get",
    "group_join",
    "group_leave",
    "group_info",
    "coordinate_change",
    "xml_change",
    "get_xml",
    "get_settings",
    "add_class",
    "admin_join_class",
    "add_group",
    "delete_group",
    "admin_leave_class",
    "delete_class",
    "save_settings",
    "get_classes",
    "toolbars",
    "delete_toolbar",
    "create_admin",
    "check_username",
    "check_session",
    "server_error",
]
