# src/dayminder/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/notification delivery swappable and makes testing easier.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Awaitable, Protocol


class BlobStore(Protocol):
    """
    Opaque key -> bytes store.

    Writes replace the whole value atomically as perceived by readers.
    Failures are raised (any exception counts as "fail").
    """

    def get(self, key: str) -> Awaitable[bytes | None]: ...

    def set(self, key: str, value: bytes) -> Awaitable[None]: ...

    def set_many(self, items: Mapping[str, bytes]) -> Awaitable[None]: ...

    def remove(self, keys: Iterable[str]) -> Awaitable[None]: ...


class NotificationScheduler(Protocol):
    """Schedules reminder payloads at instants and returns cancellable handles."""

    def schedule(self, at: datetime, payload: dict[str, Any]) -> Awaitable[str]: ...

    def cancel(self, handle: str) -> Awaitable[None]: ...

    def cancel_many(self, handles: Iterable[str]) -> Awaitable[None]: ...


class PermissionAuthority(Protocol):
    """Asked once at startup whether reminders may be delivered."""

    def request_permission(self) -> Awaitable[bool]: ...


class OutboundMessenger(Protocol):
    """
    Connector-side port: how the reminder loop shows text to the user.

    The console connector prints; other connectors may push elsewhere.
    """

    def send_text(self, *, text: str, title: str | None = None) -> Awaitable[None]: ...
