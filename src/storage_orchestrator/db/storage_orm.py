from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Index, String, Uuid, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from storage_orchestrator.db.base import Base, CreatedAt, UpdatedAt
from storage_orchestrator.models.storage import (
    FileOperationalMetadata,
    FileRecord,
    StorageAction,
    StorageStatus,
)

# JSONB на PostgreSQL, обычный JSON везде ещё (SQLite в тестах)
JsonDict = JSON().with_variant(JSONB(), "postgresql")


class FileRecordORM(Base):
    __tablename__ = "storage_files"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)

    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[Optional[str]] = mapped_column(String(500))
    mimetype: Mapped[Optional[str]] = mapped_column(String(100))
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    file_path: Mapped[Optional[str]] = mapped_column(String(500))

    # координаты в блоб-хранилище: пусты, пока блоб не записан
    bucket: Mapped[Optional[str]] = mapped_column(String(100))
    key: Mapped[Optional[str]] = mapped_column(String(500))

    action: Mapped[StorageAction] = mapped_column(
        SAEnum(StorageAction, name="storage_action_enum"), nullable=False
    )
    status: Mapped[StorageStatus] = mapped_column(
        SAEnum(StorageStatus, name="storage_status_enum"),
        nullable=False,
        default=StorageStatus.active,
        server_default=StorageStatus.active.value,
    )

    tenant_id: Mapped[Optional[str]] = mapped_column(String(100))
    user_id: Mapped[Optional[str]] = mapped_column(String(100))
    session_id: Mapped[Optional[str]] = mapped_column(String(100))
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))

    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JsonDict)
    error_message: Mapped[Optional[str]] = mapped_column(String(500))
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, server_default=text("false"))

    downloaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[CreatedAt]
    updated_at: Mapped[UpdatedAt]
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_storage_files_scope", "id", "bucket", "tenant_id"),
        Index("idx_storage_files_tenant_status", "tenant_id", "status"),
    )

    def to_pydantic(self) -> FileRecord:
        return FileRecord(
            id=self.id,
            filename=self.filename,
            original_filename=self.original_filename,
            mimetype=self.mimetype,
            size=self.size,
            file_path=self.file_path,
            bucket=self.bucket,
            key=self.key,
            action=self.action,
            status=self.status,
            tenant_id=self.tenant_id,
            user_id=self.user_id,
            session_id=self.session_id,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            metadata=FileOperationalMetadata.model_validate(self.metadata_ or {}),
            error_message=self.error_message,
            is_public=self.is_public,
            downloaded_at=self.downloaded_at,
            expires_at=self.expires_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
        )
