import logging
from uuid import UUID

from storage_orchestrator.models.storage import (
    DeleteFileResult,
    OriginInfo,
    StorageAction,
    StorageStatus,
    utcnow,
)
from storage_orchestrator.use_cases.base import UseCase

logger = logging.getLogger(__name__)


class DeleteFileUseCase(UseCase):
    """Soft delete: блоб удаляется, строка каталога остаётся со статусом deleted."""

    async def execute(self, file_id: UUID, origin: OriginInfo) -> DeleteFileResult:
        logger.info(f"Deleting file for storage ID: {file_id}", extra={"bucket": origin.bucket})

        record = await self.files.find_by_id(file_id, origin.scope)

        if record.is_deleted:
            logger.warning(f"File {file_id} is already marked as deleted", extra={"storage_id": file_id})
            return DeleteFileResult(
                storage_id=record.id,
                filename=record.filename,
                deleted_at=record.deleted_at,
                message="File was already deleted",
            )

        if record.has_blob_pointer and record.bucket == origin.bucket:
            if await self.blobs.object_exists(record.key, record.bucket):
                await self.blobs.delete_object(record.key, record.bucket)
                logger.info(f"File deleted from blob storage: {record.key}", extra={"storage_id": record.id})
            else:
                # итог тот же: блоба нет
                logger.warning(f"File {record.key} not found in bucket {record.bucket}",
                               extra={"storage_id": record.id, "bucket": record.bucket, "key": record.key})

        deleted_at = utcnow()
        await self.files.update(record.id, {
            "status": StorageStatus.deleted,
            "action": StorageAction.delete,
            "deleted_at": deleted_at,
            "metadata": record.metadata.with_deletion(by=origin.user_id or origin.tenant_id, at=deleted_at),
        })

        logger.info(f"File marked as deleted successfully: {record.filename}", extra={"storage_id": record.id})
        return DeleteFileResult(storage_id=record.id, filename=record.filename, deleted_at=deleted_at)
