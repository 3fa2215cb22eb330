"""Error taxonomy shared by the coordinator, the store and the dispatcher.

Every failure a client can cause is a ``ClassroomError``. The dispatcher
catches them at the handler boundary and turns them into a single
``server_error`` message for the initiating socket.
"""
from __future__ import annotations


class ClassroomError(Exception):
    """Base class for all expected, client-visible failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ClassroomError):
    """An empty or malformed field."""


class UnknownClass(ClassroomError):
    def __init__(self, class_id: object):
        super().__init__(f"Class ID {class_id} is invalid.")
        self.class_id = class_id


class UnknownGroup(ClassroomError):
    def __init__(self, group_id: object):
        super().__init__(f"Group ID {group_id} is invalid.")
        self.group_id = group_id


class UnknownUser(ClassroomError):
    def __init__(self, username: object):
        super().__init__(f"Username {username} is invalid.")
        self.username = username


class NameTaken(ClassroomError):
    def __init__(self, username: str):
        super().__init__(f"Username {username} is already taken.")
        self.username = username


class NotMember(ClassroomError):
    """The user is not a member of the group (or class) it acted on."""


class PersistenceError(ClassroomError):
    """The persistent store rejected an operation; message passed through."""


class Unauthorized(ClassroomError):
    """Admin secret mismatch. Never surfaced to clients."""


__all__ = [
    "ClassroomError",
    "InvalidInput",
    "UnknownClass",
    "UnknownGroup",
    "UnknownUser",
    "NameTaken",
    "NotMember",
    "PersistenceError",
    "Unauthorized",
]
