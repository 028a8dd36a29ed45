from __future__ import annotations

from datetime import datetime
from pathlib import Path
from threading import Lock

from sqlalchemy import Column, DateTime, MetaData, String, Table, create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from backend.app.models import PersonRecord


class StoreUnavailableError(Exception):
    pass


def _normalize_database_url(database_url: str) -> str:
    value = database_url.strip()
    if value.startswith("sqlite:///"):
        sqlite_path = value[len("sqlite:///") :].split("?", 1)[0]
        if sqlite_path and sqlite_path != ":memory:":
            path = Path(sqlite_path)
            if path.parent:
                path.parent.mkdir(parents=True, exist_ok=True)
        return value
    if "://" in value:
        return value
    path = Path(value)
    if path.parent:
        path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{str(path).replace(chr(92), '/')}"


class SqlitePersistence:
    """
    Durable mirror of the people collection. Uses SQLAlchemy and supports both
    SQLite and PostgreSQL URLs.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = _normalize_database_url(database_url)
        self._lock = Lock()
        self.engine: Engine = create_engine(
            self.database_url,
            future=True,
            pool_pre_ping=True,
        )
        self.metadata = MetaData()
        self.people = Table(
            "people",
            self.metadata,
            Column("id", String(64), primary_key=True),
            Column("name", String(120), nullable=False),
            Column("father_name", String(120), nullable=True),
            Column("father_id", String(120), nullable=True),
            Column("created_at_utc", DateTime, nullable=False),
        )
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.metadata.create_all(self.engine)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
            return True
        except SQLAlchemyError:
            return False

    def upsert_person(self, record: PersonRecord) -> None:
        payload = {
            "name": record.name,
            "father_name": record.father_name,
            "father_id": record.father_id,
            "created_at_utc": record.created_at_utc,
        }
        with self._lock:
            try:
                with self.engine.begin() as conn:
                    existing = conn.execute(
                        select(self.people.c.id).where(self.people.c.id == record.id)
                    ).first()
                    if existing:
                        conn.execute(
                            self.people.update()
                            .where(self.people.c.id == record.id)
                            .values(**payload)
                        )
                    else:
                        conn.execute(self.people.insert().values(id=record.id, **payload))
            except SQLAlchemyError as exc:
                raise StoreUnavailableError(f"failed to save person {record.id}") from exc

    def delete_person(self, person_id: str) -> None:
        with self._lock:
            try:
                with self.engine.begin() as conn:
                    conn.execute(delete(self.people).where(self.people.c.id == person_id))
            except SQLAlchemyError as exc:
                raise StoreUnavailableError(f"failed to delete person {person_id}") from exc

    def clear_people(self) -> None:
        with self._lock:
            try:
                with self.engine.begin() as conn:
                    conn.execute(delete(self.people))
            except SQLAlchemyError as exc:
                raise StoreUnavailableError("failed to clear people") from exc

    def list_people(self) -> list[PersonRecord]:
        with self._lock:
            try:
                with self.engine.connect() as conn:
                    rows = conn.execute(
                        select(
                            self.people.c.id,
                            self.people.c.name,
                            self.people.c.father_name,
                            self.people.c.father_id,
                            self.people.c.created_at_utc,
                        ).order_by(self.people.c.created_at_utc.desc())
                    ).all()
            except SQLAlchemyError as exc:
                raise StoreUnavailableError("failed to load people") from exc
        return [
            PersonRecord(
                id=row.id,
                name=row.name,
                father_name=row.father_name,
                father_id=row.father_id,
                created_at_utc=row.created_at_utc or datetime.utcnow(),
            )
            for row in rows
        ]
