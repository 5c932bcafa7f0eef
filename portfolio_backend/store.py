"""
Record storage for portfolio content.

Three interchangeable backends sit behind the ``RecordStore`` protocol: an
in-memory store for tests, a SQLAlchemy store (SQLite by default) used as the
local copy of the site data, and a Firebase Realtime Database store.
"""

from __future__ import annotations

import copy
import random
import string
import threading
import time
from typing import Dict, Optional, Protocol

from firebase_admin import db as rtdb
from sqlalchemy import JSON, Column, Float, Integer, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Short, roughly time-ordered id (base36 millis + 5 random chars)."""
    millis = int(time.time() * 1000)
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(5))
    return _to_base36(millis) + suffix


class RecordStore(Protocol):
    """Interface for record and document storage."""

    def list_records(self, collection: str) -> list[dict]:
        ...

    def get_record(self, collection: str, record_id: str) -> Optional[dict]:
        ...

    def put_record(self, collection: str, record_id: str, data: dict) -> None:
        ...

    def delete_record(self, collection: str, record_id: str) -> bool:
        ...

    def new_id(self, collection: str) -> str:
        ...

    def get_document(self, key: str) -> Optional[dict]:
        ...

    def set_document(self, key: str, data: dict) -> None:
        ...

    def ping(self) -> dict:
        ...


class InMemoryRecordStore:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self.documents: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def list_records(self, collection: str) -> list[dict]:
        with self._lock:
            records = self.collections.get(collection, {})
            return [copy.deepcopy(record) for record in records.values()]

    def get_record(self, collection: str, record_id: str) -> Optional[dict]:
        with self._lock:
            record = self.collections.get(collection, {}).get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def put_record(self, collection: str, record_id: str, data: dict) -> None:
        with self._lock:
            self.collections.setdefault(collection, {})[record_id] = copy.deepcopy(
                data
            )

    def delete_record(self, collection: str, record_id: str) -> bool:
        with self._lock:
            return self.collections.get(collection, {}).pop(record_id, None) is not None

    def new_id(self, collection: str) -> str:
        return generate_id()

    def get_document(self, key: str) -> Optional[dict]:
        with self._lock:
            document = self.documents.get(key)
            return copy.deepcopy(document) if document is not None else None

    def set_document(self, key: str, data: dict) -> None:
        with self._lock:
            self.documents[key] = copy.deepcopy(data)

    def ping(self) -> dict:
        return {"status": "healthy", "backend": "memory"}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()
            self.documents.clear()


class SqlRecordStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (SQLite file
    by default, Postgres in larger deployments, in-memory SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("A database URL is required for SqlRecordStore")
        engine_kwargs = {"future": True, "pool_pre_ping": True}
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # A single shared connection keeps the in-memory schema alive.
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_recycle"] = 1800
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def list_records(self, collection: str) -> list[dict]:
        with self.Session() as session:
            stmt = (
                select(RecordRow)
                .where(RecordRow.collection == collection)
                .order_by(RecordRow.seq.asc())
            )
            rows = session.execute(stmt).scalars().all()
            return [dict(row.data) for row in rows]

    def get_record(self, collection: str, record_id: str) -> Optional[dict]:
        with self.Session() as session:
            row = session.get(RecordRow, (collection, record_id))
            return dict(row.data) if row else None

    def put_record(self, collection: str, record_id: str, data: dict) -> None:
        now = time.time()
        with self.Session() as session:
            row = session.get(RecordRow, (collection, record_id))
            if row:
                row.data = data
                row.updated_at = now
            else:
                session.add(
                    RecordRow(
                        collection=collection,
                        record_id=record_id,
                        seq=self._next_seq(session, collection),
                        data=data,
                        updated_at=now,
                    )
                )
            session.commit()

    def _next_seq(self, session: Session, collection: str) -> int:
        stmt = (
            select(RecordRow.seq)
            .where(RecordRow.collection == collection)
            .order_by(RecordRow.seq.desc())
            .limit(1)
        )
        current = session.execute(stmt).scalar_one_or_none()
        return (current or 0) + 1

    def delete_record(self, collection: str, record_id: str) -> bool:
        with self.Session() as session:
            row = session.get(RecordRow, (collection, record_id))
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def new_id(self, collection: str) -> str:
        return generate_id()

    def get_document(self, key: str) -> Optional[dict]:
        with self.Session() as session:
            row = session.get(DocumentRow, key)
            return dict(row.data) if row else None

    def set_document(self, key: str, data: dict) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, key)
            if row:
                row.data = data
                row.updated_at = time.time()
            else:
                session.add(DocumentRow(key=key, data=data, updated_at=time.time()))
            session.commit()

    def ping(self) -> dict:
        with self.engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        return {"status": "healthy", "backend": self.engine.dialect.name}


class FirebaseRecordStore:
    """
    Firebase Realtime Database implementation.

    Collections live at ``/<collection>/<id>`` and single documents at
    ``/<key>``, matching the layout the site frontend reads directly.
    """

    def __init__(self, app=None):
        self._app = app

    def _ref(self, path: str):
        return rtdb.reference(path, app=self._app)

    def list_records(self, collection: str) -> list[dict]:
        value = self._ref(collection).get() or {}
        if isinstance(value, list):
            # RTDB returns arrays for dense integer keys.
            value = {str(i): item for i, item in enumerate(value) if item}
        return [{**record, "id": key} for key, record in value.items()]

    def get_record(self, collection: str, record_id: str) -> Optional[dict]:
        value = self._ref(f"{collection}/{record_id}").get()
        if value is None:
            return None
        return {**value, "id": record_id}

    def put_record(self, collection: str, record_id: str, data: dict) -> None:
        self._ref(f"{collection}/{record_id}").set(data)

    def delete_record(self, collection: str, record_id: str) -> bool:
        ref = self._ref(f"{collection}/{record_id}")
        if ref.get() is None:
            return False
        ref.delete()
        return True

    def new_id(self, collection: str) -> str:
        # push() without a value only reserves a key; nothing is written.
        return self._ref(collection).push().key

    def get_document(self, key: str) -> Optional[dict]:
        return self._ref(key).get()

    def set_document(self, key: str, data: dict) -> None:
        self._ref(key).set(data)

    def ping(self) -> dict:
        self._ref(".info/connected").get()
        return {"status": "healthy", "backend": "firebase"}


Base = declarative_base()


class RecordRow(Base):
    __tablename__ = "records"

    collection = Column(String, primary_key=True)
    record_id = Column(String, primary_key=True)
    seq = Column(Integer, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)


class DocumentRow(Base):
    __tablename__ = "documents"

    key = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)
