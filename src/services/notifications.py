"""
In-process change notifications scoped to (entity_type, entity_id).

Subscribers register for one entity, or for every entity of a type by passing
``entity_id=None``, instead of refetching everything after any write.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Iterator
from uuid import UUID

from domain.base_types import EntityType

logger = logging.getLogger(__name__)


class ChangeKind(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RECALCULATED = "recalculated"


@dataclass(frozen=True)
class ChangeEvent:
    entity_type: EntityType
    entity_id: UUID
    kind: ChangeKind


ChangeCallback = Callable[[ChangeEvent], None]


class ChangeNotifier:
    def __init__(self) -> None:
        self._subscribers: dict[tuple[EntityType, UUID | None], list[ChangeCallback]] = {}
        self._guard = threading.Lock()
        self._local = threading.local()

    def subscribe(
        self,
        entity_type: EntityType,
        callback: ChangeCallback,
        *,
        entity_id: UUID | None = None,
    ) -> Callable[[], None]:
        """Register ``callback``; returns a function that removes the subscription."""
        key = (entity_type, entity_id)
        with self._guard:
            self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            with self._guard:
                callbacks = self._subscribers.get(key, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    @contextmanager
    def deferred(self) -> Iterator[None]:
        """Queue events published on this thread until the outermost block exits.

        Callers holding account locks wrap their work in this so subscribers only run after release.
        """
        if getattr(self._local, "pending", None) is not None:
            yield
            return
        self._local.pending = []
        try:
            yield
        finally:
            events, self._local.pending = self._local.pending, None
            self.publish_all(events)

    def publish(self, event: ChangeEvent) -> None:
        pending = getattr(self._local, "pending", None)
        if pending is not None:
            pending.append(event)
            return

        with self._guard:
            callbacks = [
                *self._subscribers.get((event.entity_type, event.entity_id), []),
                *self._subscribers.get((event.entity_type, None), []),
            ]

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                # The mutation is already committed; a broken subscriber must not undo it.
                logger.exception("Change subscriber failed for %s %s", event.entity_type, event.entity_id)

    def publish_all(self, events: list[ChangeEvent]) -> None:
        for event in events:
            self.publish(event)


__all__ = ["ChangeCallback", "ChangeEvent", "ChangeKind", "ChangeNotifier"]
