import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncEngine

from storage_orchestrator.config import StorageConfig
from storage_orchestrator.exceptions import StorageError
from storage_orchestrator.models import (
    BucketStats,
    DeleteFileResult,
    DownloadFileResult,
    FileRecord,
    FileScope,
    ListObjectsResult,
    OriginInfo,
    PresignedUrlResult,
    PresignOperation,
    UploadFileResult,
)
from storage_orchestrator.repositories import BlobStorage, FileRecordRepository
from storage_orchestrator.use_cases import UseCaseFactory

logger = logging.getLogger(__name__)


class StorageClient:
    """
    Единая точка входа для роутера: find / upload / download / presigned_url / delete.
    Каждый вызов: независимая единица работы, общего состояния между вызовами нет.
    """

    def __init__(
        self,
        file_repo: FileRecordRepository,
        blob_repo: BlobStorage,
        storage: StorageConfig | None = None,
        engine: AsyncEngine | None = None,
    ):
        self.files = file_repo
        self.blobs = blob_repo
        self.storage = storage or StorageConfig()
        self.use_cases = UseCaseFactory(file_repo, blob_repo, self.storage)
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine | None:
        return self._engine

    async def check_connections(self) -> dict[str, str]:
        """
        Проверяет доступность каталога и блоб-хранилища.
        Возвращает словарь со статусами.
        """
        statuses = {}

        try:
            await self.files.check_connection()
            statuses["postgres"] = "ok"
        except StorageError as e:
            statuses["postgres"] = f"failed: {e}"

        try:
            await self.blobs.check_connection()
            statuses["minio"] = "ok"
        except StorageError as e:
            statuses["minio"] = f"failed: {e}"

        return statuses

    # ――― operation surface ――― #

    async def find(self, file_id: UUID, scope: FileScope) -> FileRecord:
        return await self.files.find_by_id(file_id, scope)

    async def upload(
        self,
        content: bytes,
        filename: str,
        origin: OriginInfo,
        mimetype: Optional[str] = None,
        size: Optional[int] = None,
    ) -> UploadFileResult:
        return await self.use_cases.upload.execute(content, filename, origin, mimetype=mimetype, size=size)

    async def download(self, file_id: UUID, origin: OriginInfo) -> DownloadFileResult:
        return await self.use_cases.download.execute(file_id, origin)

    async def presigned_url(
        self,
        file_id: UUID,
        origin: OriginInfo,
        expires_in: Optional[int] = None,
        operation: PresignOperation | str = PresignOperation.GET,
    ) -> PresignedUrlResult:
        return await self.use_cases.presigned_url.execute(file_id, origin, expires_in=expires_in, operation=operation)

    async def delete(self, file_id: UUID, origin: OriginInfo) -> DeleteFileResult:
        return await self.use_cases.delete.execute(file_id, origin)

    # ――― listing ――― #

    async def list_files(self,
                         scope: FileScope,
                         include_deleted: bool = False,
                         limit: int | None = None,
                         offset: int = 0) -> list[FileRecord]:
        return await self.files.list_by_scope(scope, include_deleted, limit, offset)

    async def list_objects(self,
                           bucket: str | None = None,
                           prefix: str | None = None,
                           max_keys: int | None = None,
                           continuation_token: str | None = None) -> ListObjectsResult:
        if max_keys is None:
            max_keys = self.storage.list_page_size
        return await self.blobs.list_objects(bucket, prefix, max_keys, continuation_token)

    async def bucket_stats(self, bucket: str | None = None) -> BucketStats:
        """Полный проход по бакету. Не для горячего пути."""
        return await self.blobs.bucket_stats(bucket)

    async def aclose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
