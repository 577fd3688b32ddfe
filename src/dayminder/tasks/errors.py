# src/dayminder/tasks/errors.py

from __future__ import annotations

from .capability import LimitedFeature


class RepositoryError(Exception):
    """Base class for recoverable repository failures."""


class LimitExceeded(RepositoryError):
    """A free-tier limit blocks the operation (surface an upgrade prompt)."""

    def __init__(self, feature: LimitedFeature) -> None:
        super().__init__(f"free-tier limit reached: {feature.value}")
        self.feature = feature


class NotFound(RepositoryError):
    kind = "item"

    def __init__(self, item_id: str) -> None:
        super().__init__(f"{self.kind} not found: {item_id}")
        self.item_id = item_id


class TaskNotFound(NotFound):
    kind = "task"


class TagNotFound(NotFound):
    kind = "tag"


class PersistenceFailure(RepositoryError):
    """
    The blob store rejected a write.

    The in-memory state has already changed at this point; it stays divergent
    from disk until the next successful write.
    """
