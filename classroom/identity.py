"""Opaque class handles.

Internal class ids are sequential database keys, so clients only ever see a
random handle. The mapping lives in memory and is one-way: a handle can be
resolved back to its id only through this table.
"""
from __future__ import annotations

import secrets
from typing import Callable, Dict, Optional

from .errors import UnknownClass


class IdentityResolver:
    """Issues, resolves and revokes class handles."""

    def __init__(self, handle_bytes: int = 4, token_factory: Optional[Callable[[int], str]] = None):
        self.handle_bytes = handle_bytes
        self._token = token_factory or secrets.token_hex
        self._ids: Dict[str, int] = {}

    def add(self, internal_id: int) -> str:
        """Return a fresh handle for *internal_id*, regenerating on collision."""
        handle = self._token(self.handle_bytes)
        while handle in self._ids:
            handle = self._token(self.handle_bytes)
        self._ids[handle] = internal_id
        return handle

    def resolve(self, handle: str) -> int:
        try:
            return self._ids[handle]
        except (KeyError, TypeError):
            raise UnknownClass(handle) from None

    def remove(self, handle: str) -> None:
        self._ids.pop(handle, None)

    def __contains__(self, handle: object) -> bool:
        return handle in self._ids

    def __len__(self) -> int:
        return len(self._ids)


__all__ = ["IdentityResolver"]
