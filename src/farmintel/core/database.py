"""SQLAlchemy-backed key-value store for persisted intelligence blobs."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import DateTime, String, Text, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from farmintel.core.exceptions import PersistenceError


class KeyValueStore(Protocol):
    """Minimal async blob store the intelligence layer persists through."""

    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def set(self, key: str, blob: dict[str, Any]) -> None: ...


class Base(DeclarativeBase):
    pass


class IntelBlobRecord(Base):
    __tablename__ = "intel_blobs"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    blob: Mapped[str] = mapped_column(Text, default="{}")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


class Database:
    """Async SQLite database exposing the :class:`KeyValueStore` interface."""

    def __init__(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
        self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession)

    async def init(self) -> None:
        """Create all tables."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database init failed: {e}") from e

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            async with self.session_factory() as session:
                raw = await session.scalar(
                    select(IntelBlobRecord.blob).where(IntelBlobRecord.key == key)
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Read of {key!r} failed: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Stored blob {key!r} is not valid JSON") from e

    async def set(self, key: str, blob: dict[str, Any]) -> None:
        payload = json.dumps(blob, separators=(",", ":"))
        try:
            async with self.session_factory() as session, session.begin():
                record = await session.get(IntelBlobRecord, key)
                if record is None:
                    session.add(IntelBlobRecord(key=key, blob=payload))
                else:
                    record.blob = payload
        except SQLAlchemyError as e:
            raise PersistenceError(f"Write of {key!r} failed: {e}") from e

    async def close(self) -> None:
        await self.engine.dispose()
