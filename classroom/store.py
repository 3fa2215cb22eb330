"""Persistent-store collaborator.

The coordinator only talks to :class:`ClassStore`. Every method either
returns a value or raises :class:`PersistenceError` carrying a
human-readable message. :class:`TortoiseClassStore` is the production
implementation on top of the Tortoise ORM models.
"""
from __future__ import annotations

import functools
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from tortoise import timezone
from tortoise.exceptions import BaseORMException, IntegrityError
from tortoise.transactions import in_transaction

from .errors import PersistenceError
from .models import Admin, AdminSession, ClassRecord, GroupRecord, Toolbar
from .schemas import AdminRecord, ClassSummary, SessionRecord, ToolbarRecord

logger = logging.getLogger(__name__)


class ClassStore(ABC):
    """Narrow CRUD interface over classes, groups, toolbars and admins."""

    # -------------------- Classes & groups -------------------- #

    @abstractmethod
    async def create_class(self, class_name: str, group_count: int, admin_id: Optional[int] = None) -> int:
        """Create a class with groups ``1..group_count``; return its internal id."""

    @abstractmethod
    async def set_class_handle(self, class_id: int, handle: str) -> None: ...

    @abstractmethod
    async def create_group(self, class_id: int) -> int:
        """Create the next group of *class_id* and return its group id."""

    @abstractmethod
    async def delete_group(self, class_id: int, group_id: int) -> None: ...

    @abstractmethod
    async def delete_class(self, class_id: int) -> None: ...

    @abstractmethod
    async def get_classes(self, admin_id: Optional[int] = None) -> List[ClassSummary]: ...

    # -------------------- Toolbars -------------------- #

    @abstractmethod
    async def get_toolbars(self, class_id: int) -> List[ToolbarRecord]: ...

    @abstractmethod
    async def create_toolbar(self, class_id: int, toolbar_name: str, tools: str) -> None: ...

    @abstractmethod
    async def delete_toolbar(self, class_id: int, toolbar_name: str) -> None: ...

    # -------------------- Admins & sessions -------------------- #

    @abstractmethod
    async def check_user(self, username: str) -> Optional[AdminRecord]: ...

    @abstractmethod
    async def create_user(self, username: str, password_hash: str) -> int: ...

    @abstractmethod
    async def create_session(self, admin_id: int, password_hash: str) -> None: ...

    @abstractmethod
    async def check_session(self, admin_id: int) -> Optional[SessionRecord]: ...

    @abstractmethod
    async def delete_session(self, admin_id: int) -> None: ...

    @abstractmethod
    async def update_time(self, admin_id: int) -> None: ...


def _orm_errors(func):
    """Re-raise ORM failures as :class:`PersistenceError`."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except IntegrityError as exc:
            logger.warning("Integrity error in %s: %s", func.__name__, exc)
            raise PersistenceError(f"Duplicate or conflicting record: {exc}") from exc
        except BaseORMException as exc:
            logger.exception("Database error in %s", func.__name__)
            raise PersistenceError(f"Database error: {exc}") from exc

    return wrapper


class TortoiseClassStore(ClassStore):
    @_orm_errors
    async def create_class(self, class_name: str, group_count: int, admin_id: Optional[int] = None) -> int:
        if await ClassRecord.filter(class_name=class_name).exists():
            raise PersistenceError(f"Class name {class_name} already exists.")
        async with in_transaction():
            record = await ClassRecord.create(class_name=class_name, admin_id=admin_id)
            for group_id in range(1, group_count + 1):
                await GroupRecord.create(klass=record, group_id=group_id)
        return record.id

    @_orm_errors
    async def set_class_handle(self, class_id: int, handle: str) -> None:
        await ClassRecord.filter(id=class_id).update(hashed_id=handle)

    @_orm_errors
    async def create_group(self, class_id: int) -> int:
        if not await ClassRecord.filter(id=class_id).exists():
            raise PersistenceError(f"Class {class_id} does not exist.")
        last = await GroupRecord.filter(klass_id=class_id).order_by("-group_id").first()
        group_id = last.group_id + 1 if last else 1
        await GroupRecord.create(klass_id=class_id, group_id=group_id)
        return group_id

    @_orm_errors
    async def delete_group(self, class_id: int, group_id: int) -> None:
        deleted = await GroupRecord.filter(klass_id=class_id, group_id=group_id).delete()
        if not deleted:
            raise PersistenceError(f"Group {group_id} does not exist.")

    @_orm_errors
    async def delete_class(self, class_id: int) -> None:
        async with in_transaction():
            await GroupRecord.filter(klass_id=class_id).delete()
            await Toolbar.filter(klass_id=class_id).delete()
            deleted = await ClassRecord.filter(id=class_id).delete()
        if not deleted:
            raise PersistenceError(f"Class {class_id} does not exist.")

    @_orm_errors
    async def get_classes(self, admin_id: Optional[int] = None) -> List[ClassSummary]:
        query = ClassRecord.all() if admin_id is None else ClassRecord.filter(admin_id=admin_id)
        records = await query.order_by("id")
        return [ClassSummary(class_id=r.hashed_id, class_name=r.class_name) for r in records]

    @_orm_errors
    async def get_toolbars(self, class_id: int) -> List[ToolbarRecord]:
        records = await Toolbar.filter(klass_id=class_id).order_by("id")
        return [ToolbarRecord(name=r.toolbar_name, tools=r.tools) for r in records]

    @_orm_errors
    async def create_toolbar(self, class_id: int, toolbar_name: str, tools: str) -> None:
        await Toolbar.create(klass_id=class_id, toolbar_name=toolbar_name, tools=tools)

    @_orm_errors
    async def delete_toolbar(self, class_id: int, toolbar_name: str) -> None:
        await Toolbar.filter(klass_id=class_id, toolbar_name=toolbar_name).delete()

    @_orm_errors
    async def check_user(self, username: str) -> Optional[AdminRecord]:
        admin = await Admin.filter(username=username).first()
        if admin is None:
            return None
        return AdminRecord(admin_id=admin.id, username=admin.username, password_hash=admin.password_hash)

    @_orm_errors
    async def create_user(self, username: str, password_hash: str) -> int:
        admin = await Admin.create(username=username, password_hash=password_hash)
        return admin.id

    @_orm_errors
    async def create_session(self, admin_id: int, password_hash: str) -> None:
        # One live session per admin
        async with in_transaction():
            await AdminSession.filter(admin_id=admin_id).delete()
            await AdminSession.create(admin_id=admin_id, password_hash=password_hash)

    @_orm_errors
    async def check_session(self, admin_id: int) -> Optional[SessionRecord]:
        session = await AdminSession.filter(admin_id=admin_id).order_by("-id").first()
        if session is None:
            return None
        return SessionRecord(
            admin_id=admin_id,
            password_hash=session.password_hash,
            last_updated=session.last_updated,
        )

    @_orm_errors
    async def delete_session(self, admin_id: int) -> None:
        await AdminSession.filter(admin_id=admin_id).delete()

    @_orm_errors
    async def update_time(self, admin_id: int) -> None:
        await AdminSession.filter(admin_id=admin_id).update(last_updated=timezone.now())


__all__ = ["ClassStore", "TortoiseClassStore"]
