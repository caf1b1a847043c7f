from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker

from db.models import RecordOrm


class RecordStore(Protocol):
    """Durable get/put/delete of JSON payloads by (entity_type, record_id).

    No cross-record atomicity is promised: every call stands alone.
    """

    def get(self, entity_type: str, record_id: str) -> str | None: ...

    def put(self, entity_type: str, record_id: str, payload: str) -> None: ...

    def delete(self, entity_type: str, record_id: str) -> bool: ...

    def list(self, entity_type: str) -> list[str]: ...


class InMemoryRecordStore(RecordStore):
    def __init__(self) -> None:
        self._records: dict[str, dict[str, str]] = {}
        self._guard = threading.Lock()

    def get(self, entity_type: str, record_id: str) -> str | None:
        with self._guard:
            return self._records.get(entity_type, {}).get(record_id)

    def put(self, entity_type: str, record_id: str, payload: str) -> None:
        with self._guard:
            self._records.setdefault(entity_type, {})[record_id] = payload

    def delete(self, entity_type: str, record_id: str) -> bool:
        with self._guard:
            return self._records.get(entity_type, {}).pop(record_id, None) is not None

    def list(self, entity_type: str) -> list[str]:
        with self._guard:
            records = self._records.get(entity_type, {})
            return [records[record_id] for record_id in sorted(records)]


class SqlRecordStore(RecordStore):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, entity_type: str, record_id: str) -> str | None:
        with self._session_factory() as session:
            orm_record = session.get(RecordOrm, (entity_type, record_id))
            if orm_record is None:
                return None
            return orm_record.payload

    def put(self, entity_type: str, record_id: str, payload: str) -> None:
        now = datetime.now(timezone.utc)
        stmt = sqlite_insert(RecordOrm).values(
            entity_type=entity_type,
            record_id=record_id,
            payload=payload,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["entity_type", "record_id"],
            set_={"payload": payload, "updated_at": now},
        )
        with self._session_factory() as session:
            session.execute(stmt)
            session.commit()

    def delete(self, entity_type: str, record_id: str) -> bool:
        stmt = delete(RecordOrm).where(RecordOrm.entity_type == entity_type, RecordOrm.record_id == record_id)
        with self._session_factory() as session:
            result = session.execute(stmt)
            session.commit()
            return bool(result.rowcount)

    def list(self, entity_type: str) -> list[str]:
        stmt = select(RecordOrm.payload).where(RecordOrm.entity_type == entity_type).order_by(RecordOrm.record_id.asc())
        with self._session_factory() as session:
            return list(session.scalars(stmt).all())


__all__ = ["InMemoryRecordStore", "RecordStore", "SqlRecordStore"]
