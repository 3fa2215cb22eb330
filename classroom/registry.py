"""Authoritative in-memory topology: classes -> groups -> users.

Nothing here performs I/O or awaits, so every mutation is a single step as
seen by the event loop. The registry is an ordinary object owned by the
application and injected where it is needed.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List

from .errors import NameTaken, NotMember, UnknownClass, UnknownGroup, UnknownUser
from .schemas import Group, GroupSummary, MemberInfo, UserState


class ClassState:
    """Runtime state of one live class."""

    def __init__(self, class_id: str, internal_id: int, class_name: str, group_ids: Iterable[int] = ()):
        self.class_id = class_id  # external handle
        self.internal_id = internal_id
        self.class_name = class_name
        self.groups: Dict[int, Group] = {gid: Group(group_id=gid) for gid in group_ids}
        self.users: Dict[str, UserState] = {}
        self.settings: Dict[str, Any] = {}

    # -------------------- Users -------------------- #

    def add_user(self, username: str) -> UserState:
        if username in self.users:
            raise NameTaken(username)
        state = UserState()
        self.users[username] = state
        return state

    def get_user(self, username: str) -> UserState:
        try:
            return self.users[username]
        except (KeyError, TypeError):
            raise UnknownUser(username) from None

    def remove_user(self, username: str) -> None:
        if username not in self.users:
            raise UnknownUser(username)
        del self.users[username]

    # -------------------- Groups -------------------- #

    def get_group(self, group_id: int) -> Group:
        try:
            return self.groups[group_id]
        except (KeyError, TypeError):
            raise UnknownGroup(group_id) from None

    def add_group(self, group_id: int) -> Group:
        group = Group(group_id=group_id)
        self.groups[group_id] = group
        return group

    def remove_group(self, group_id: int) -> Group:
        group = self.get_group(group_id)
        del self.groups[group_id]
        return group

    def add_member(self, username: str, group_id: int) -> Group:
        group = self.get_group(group_id)
        state = self.get_user(username)
        group.members.append(username)
        state.reset()
        return group

    def remove_member(self, username: str, group_id: int) -> Group:
        group = self.get_group(group_id)
        state = self.get_user(username)
        if username not in group.members:
            raise NotMember(f"Username {username} is not in group {group_id}.")
        group.members.remove(username)
        state.reset()
        return group

    # -------------------- Views -------------------- #

    def group_summaries(self) -> List[GroupSummary]:
        return [GroupSummary(grp_name=gid, num=len(g.members)) for gid, g in sorted(self.groups.items())]

    def member_info(self, username: str, group_id: int) -> MemberInfo:
        state = self.get_user(username)
        return MemberInfo(
            member_name=username,
            member_info=state.info,
            member_x=state.x,
            member_y=state.y,
            group_id=group_id,
        )

    def members_info(self, group_id: int) -> List[MemberInfo]:
        group = self.get_group(group_id)
        return [self.member_info(name, group_id) for name in group.members if name in self.users]


class RoomRegistry:
    """Owns every live :class:`ClassState`, keyed by external handle."""

    def __init__(self) -> None:
        self.classes: Dict[str, ClassState] = {}

    def add_class(self, class_id: str, internal_id: int, class_name: str, group_ids: Iterable[int] = ()) -> ClassState:
        state = ClassState(class_id, internal_id, class_name, group_ids)
        self.classes[class_id] = state
        return state

    def get_class(self, class_id: str) -> ClassState:
        try:
            return self.classes[class_id]
        except (KeyError, TypeError):
            raise UnknownClass(class_id) from None

    def remove_class(self, class_id: str) -> ClassState:
        state = self.get_class(class_id)
        del self.classes[class_id]
        return state

    def __contains__(self, class_id: object) -> bool:
        return class_id in self.classes

    def __len__(self) -> int:
        return len(self.classes)


__all__ = ["ClassState", "RoomRegistry"]
