import logging
from typing import Optional
from uuid import UUID

from storage_orchestrator.exceptions import BadRequestError
from storage_orchestrator.models.storage import (
    OriginInfo,
    PresignedUrlResult,
    PresignOperation,
    StorageAction,
    utcnow,
)
from storage_orchestrator.repositories.blob_storage import BlobStorage
from storage_orchestrator.repositories.file_record_repository import FileRecordRepository
from storage_orchestrator.use_cases.base import UseCase
from storage_orchestrator.use_cases.download_file import find_with_pointer

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 10800


class PresignedUrlUseCase(UseCase):
    """
    Выдача ссылки считается скачиванием: downloaded_at ставится в момент
    выдачи, даже если по ссылке так и не пойдут.
    """

    def __init__(self, files: FileRecordRepository, blobs: BlobStorage,
                 default_expires_in: int = DEFAULT_EXPIRES_IN):
        super().__init__(files, blobs)
        self.default_expires_in = default_expires_in

    async def execute(
        self,
        file_id: UUID,
        origin: OriginInfo,
        expires_in: Optional[int] = None,
        operation: PresignOperation | str = PresignOperation.GET,
    ) -> PresignedUrlResult:
        expires_in = self.default_expires_in if expires_in is None else expires_in
        try:
            operation = PresignOperation(operation)
        except ValueError:
            raise BadRequestError(f"Unsupported presign operation: {operation}", storage_id=file_id) from None
        logger.info(f"Generating presigned URL for storage ID: {file_id}", extra={"bucket": origin.bucket})

        record = await find_with_pointer(self.files, file_id, origin)
        # статус не проверяется: для удалённой записи PUT/POST-ссылка тоже выдаётся
        url = await self.blobs.generate_presigned_url(
            record.key, operation, expires_in, record.bucket or origin.bucket
        )
        await self.files.update(record.id, {
            "downloaded_at": utcnow(),
            "action": StorageAction.download,
        })

        logger.info(f"Presigned URL generated successfully for file: {record.filename}",
                    extra={"storage_id": record.id, "key": record.key})
        return PresignedUrlResult(
            presigned_url=url,
            expires_in=expires_in,
            operation=operation,
            filename=record.filename,
            storage_id=record.id,
        )
