from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class StorageAction(str, enum.Enum):
    upload = "upload"
    download = "download"
    delete = "delete"
    update = "update"
    move = "move"
    copy = "copy"


class StorageStatus(str, enum.Enum):
    active = "active"
    processing = "processing"
    archived = "archived"
    deleted = "deleted"


class FileScope(BaseModel):
    """Обязательная область видимости любого поиска в каталоге."""
    model_config = ConfigDict(frozen=True)

    bucket: str
    tenant_id: str


class OriginInfo(BaseModel):
    """Кто и откуда прислал запрос. bucket + tenant_id обязательны."""
    bucket: str
    tenant_id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def scope(self) -> FileScope:
        return FileScope(bucket=self.bucket, tenant_id=self.tenant_id)


class FileOperationalMetadata(BaseModel):
    """
    Известные операционные факты о файле. Хранится в колонке metadata.
    Обновления всегда строят новую копию поверх старой, а не заменяют её.
    """
    model_config = ConfigDict(extra="ignore")

    uploaded_at: Optional[datetime] = None
    upload_timestamp: Optional[datetime] = None
    file_type: Optional[str] = None
    download_count: NonNegativeInt = 0
    last_downloaded_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None

    def merged(self, **changes: Any) -> "FileOperationalMetadata":
        return self.model_copy(update=changes)

    def with_download(self, at: Optional[datetime] = None) -> "FileOperationalMetadata":
        return self.merged(download_count=self.download_count + 1, last_downloaded_at=at or utcnow())

    def with_deletion(self, by: Optional[str], at: Optional[datetime] = None) -> "FileOperationalMetadata":
        return self.merged(deleted_at=at or utcnow(), deleted_by=by)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class FileRecordCreate(BaseModel):
    filename: str
    original_filename: Optional[str] = None
    mimetype: Optional[str] = None
    size: NonNegativeInt
    bucket: Optional[str] = None
    key: Optional[str] = None
    file_path: Optional[str] = None
    action: StorageAction = StorageAction.upload
    status: StorageStatus = StorageStatus.active
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: FileOperationalMetadata = Field(default_factory=FileOperationalMetadata)
    is_public: bool = False
    expires_at: Optional[datetime] = None


class FileRecord(FileRecordCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    error_message: Optional[str] = None
    downloaded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def has_blob_pointer(self) -> bool:
        return bool(self.bucket) and bool(self.key)

    @property
    def is_deleted(self) -> bool:
        return self.status == StorageStatus.deleted


# --- модели блоб-хранилища ---

class PresignOperation(str, enum.Enum):
    GET = "GET"
    PUT = "PUT"
    POST = "POST"


class ObjectMetadata(BaseModel):
    filename: str
    original_name: str
    mimetype: str = "application/octet-stream"
    size: NonNegativeInt = 0
    bucket: str
    key: str
    etag: Optional[str] = None
    version_id: Optional[str] = None
    last_modified: Optional[datetime] = None
    user_metadata: Dict[str, str] = Field(default_factory=dict)


class BlobUploadResult(BaseModel):
    success: bool = True
    bucket: str
    key: str
    etag: Optional[str] = None
    version_id: Optional[str] = None
    metadata: ObjectMetadata


class BlobDownloadResult(BaseModel):
    success: bool = True
    data: bytes
    metadata: ObjectMetadata


class ListObjectsResult(BaseModel):
    items: list[ObjectMetadata] = Field(default_factory=list)
    next_continuation_token: Optional[str] = None
    is_truncated: bool = False


class BucketStats(BaseModel):
    bucket: str
    total_files: int = 0
    total_size: int = 0
    last_modified: Optional[datetime] = None


class ObjectVersion(BaseModel):
    version_id: str
    is_latest: bool
    last_modified: Optional[datetime] = None
    size: int = 0
    etag: Optional[str] = None


# --- результаты сценариев ---

class UploadFileResult(BaseModel):
    success: bool = True
    storage_id: UUID
    filename: str
    size: int
    blob_key: str
    bucket: str
    etag: Optional[str] = None
    message: str = "File uploaded successfully"


class DownloadFileResult(BaseModel):
    success: bool = True
    data: bytes
    metadata: ObjectMetadata
    filename: str
    original_filename: Optional[str] = None
    mimetype: Optional[str] = None
    size: int
    storage_id: UUID
    message: str = "File downloaded successfully"


class PresignedUrlResult(BaseModel):
    success: bool = True
    presigned_url: str
    expires_in: int
    operation: PresignOperation
    filename: str
    storage_id: UUID
    message: str = "Presigned URL generated successfully"


class DeleteFileResult(BaseModel):
    success: bool = True
    storage_id: UUID
    filename: Optional[str] = None
    deleted_at: Optional[datetime] = None
    message: str = "File deleted successfully"
