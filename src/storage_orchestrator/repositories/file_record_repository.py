import logging
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select, update, func, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from storage_orchestrator.db.base import get_session
from storage_orchestrator.db.storage_orm import FileRecordORM
from storage_orchestrator.exceptions import DatabaseError, NotFoundError
from storage_orchestrator.models.storage import (
    FileOperationalMetadata,
    FileRecord,
    FileRecordCreate,
    FileScope,
    StorageStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

# Поля, которые нельзя менять через update: идентичность и размер фиксируются при создании
IMMUTABLE_FIELDS = frozenset({"id", "size", "created_at"})


def _to_columns(patch: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, value in patch.items():
        if name in IMMUTABLE_FIELDS:
            raise ValueError(f"Field '{name}' cannot be updated")
        if name == "metadata":
            if isinstance(value, FileOperationalMetadata):
                value = value.to_json()
            values["metadata_"] = value
        else:
            values[name] = value
    return values


class FileRecordRepository:
    """Каталог файлов. Любой поиск ограничен областью (bucket + tenant_id)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_connection(self):
        """Проверяет соединение с базой данных, выполняя простой запрос."""
        logger.debug("Checking catalog connection...")
        async with get_session(self._session_factory) as session:
            try:
                await session.execute(text("SELECT 1"))
                logger.debug("Catalog connection successful.")
            except SQLAlchemyError as e:
                logger.error(f"Catalog connection failed: {e}")
                raise DatabaseError("Failed to connect to the database.") from e

    async def find_by_id(self, file_id: UUID, scope: FileScope) -> FileRecord:
        """
        Ищет запись по id внутри области видимости арендатора.
        Удалённые (soft delete) записи тоже возвращаются: решение за сценарием.
        """
        async with get_session(self._session_factory) as session:
            try:
                stmt = select(FileRecordORM).where(
                    FileRecordORM.id == file_id,
                    FileRecordORM.bucket == scope.bucket,
                    FileRecordORM.tenant_id == scope.tenant_id,
                )
                orm = (await session.execute(stmt)).scalar_one_or_none()
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to look up storage record {file_id}: {e}",
                                    storage_id=file_id, bucket=scope.bucket) from e
        if orm is None:
            raise NotFoundError(f"Storage record with ID {file_id} not found",
                                storage_id=file_id, bucket=scope.bucket)
        return orm.to_pydantic()

    async def create(self, fields: FileRecordCreate) -> FileRecord:
        data = fields.model_dump(exclude={"metadata"})
        orm = FileRecordORM(id=uuid4(), metadata_=fields.metadata.to_json(), **data)
        async with get_session(self._session_factory) as session:
            try:
                session.add(orm)
                await session.commit()
                await session.refresh(orm)
                return orm.to_pydantic()
            except IntegrityError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to save storage record: {e}") from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to save storage record: {e}") from e

    async def update(self, file_id: UUID, patch: dict[str, Any]) -> None:
        """
        Merge-patch: меняются только переданные поля.
        metadata заменяется целиком, поэтому вызывающий собирает её поверх старой.
        """
        values = _to_columns(patch)
        values.setdefault("updated_at", func.now())
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(
                    update(FileRecordORM)
                    .where(FileRecordORM.id == file_id)
                    .values(**values)
                )
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to update storage record {file_id}: {e}",
                                    storage_id=file_id) from e
        if res.rowcount == 0:
            raise NotFoundError(f"Storage record with ID {file_id} not found", storage_id=file_id)

    async def soft_delete(self, file_id: UUID) -> None:
        await self.update(file_id, {"status": StorageStatus.deleted, "deleted_at": utcnow()})

    async def list_by_scope(self,
                            scope: FileScope,
                            include_deleted: bool = False,
                            limit: int | None = None,
                            offset: int = 0) -> list[FileRecord]:
        """
        Возвращает записи арендатора, новые первыми.
        Можно пагинировать через limit/offset.
        """
        async with get_session(self._session_factory) as session:
            q = select(FileRecordORM).where(
                FileRecordORM.bucket == scope.bucket,
                FileRecordORM.tenant_id == scope.tenant_id,
            )
            if not include_deleted:
                q = q.where(FileRecordORM.status != StorageStatus.deleted)
            q = q.order_by(FileRecordORM.created_at.desc(), FileRecordORM.id).offset(offset)
            if limit is not None:
                q = q.limit(limit)
            try:
                rows = await session.execute(q)
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to list storage records: {e}", bucket=scope.bucket) from e
            return [o.to_pydantic() for o in rows.scalars().all()]
