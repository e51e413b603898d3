import logging
from uuid import UUID

from storage_orchestrator.exceptions import BadRequestError, NotFoundError, StorageError
from storage_orchestrator.models.storage import (
    DownloadFileResult,
    FileRecord,
    OriginInfo,
    StorageAction,
)
from storage_orchestrator.repositories.blob_storage import BlobStorage
from storage_orchestrator.repositories.file_record_repository import FileRecordRepository
from storage_orchestrator.use_cases.base import UseCase

logger = logging.getLogger(__name__)


async def find_with_pointer(files: FileRecordRepository, file_id: UUID, origin: OriginInfo) -> FileRecord:
    """Поиск в области арендатора + проверка, что у записи есть bucket/key."""
    record = await files.find_by_id(file_id, origin.scope)
    if not record.has_blob_pointer:
        raise BadRequestError(
            f"Storage record {file_id} does not have bucket or key information",
            storage_id=file_id, bucket=origin.bucket,
        )
    return record


async def require_blob(blobs: BlobStorage, record: FileRecord) -> None:
    if not await blobs.object_exists(record.key, record.bucket):
        raise NotFoundError(
            f"File {record.key} not found in bucket {record.bucket}",
            storage_id=record.id, bucket=record.bucket, key=record.key,
        )


class DownloadFileUseCase(UseCase):

    async def execute(self, file_id: UUID, origin: OriginInfo) -> DownloadFileResult:
        logger.info(f"Downloading file for storage ID: {file_id}", extra={"bucket": origin.bucket})

        record = await find_with_pointer(self.files, file_id, origin)
        # указатель каталога мог устареть: блоб удалили в обход сервиса
        await require_blob(self.blobs, record)

        result = await self.blobs.download_object(record.key, record.bucket)

        # счётчик скачиваний: учёт, а не часть успеха скачивания
        try:
            await self.files.update(record.id, {
                "action": StorageAction.download,
                "metadata": record.metadata.with_download(),
            })
        except StorageError as e:
            logger.warning(f"Download bookkeeping failed for {record.id}: {e}",
                           extra={"storage_id": record.id, "bucket": record.bucket, "key": record.key})

        logger.info(f"File downloaded successfully: {record.filename}", extra={"storage_id": record.id})
        return DownloadFileResult(
            data=result.data,
            metadata=result.metadata,
            filename=record.filename,
            original_filename=record.original_filename,
            mimetype=record.mimetype,
            size=record.size,
            storage_id=record.id,
        )
