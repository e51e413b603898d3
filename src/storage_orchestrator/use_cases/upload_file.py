import logging
from typing import Optional

from storage_orchestrator.exceptions import BadRequestError, StorageError, UploadFailedError
from storage_orchestrator.models.storage import (
    FileOperationalMetadata,
    FileRecordCreate,
    OriginInfo,
    StorageAction,
    StorageStatus,
    UploadFileResult,
    utcnow,
)
from storage_orchestrator.use_cases.base import UseCase
from storage_orchestrator.utils.files import guess_content_type

logger = logging.getLogger(__name__)


class UploadFileUseCase(UseCase):
    """
    Сначала запись в каталоге, потом блоб, потом указатель bucket/key.

    Сбой после первого шага оставляет запись без блоба: она видна, и загрузку
    можно повторить по storage_id. Блоба без записи в каталоге так не получить.
    """

    async def execute(
        self,
        content: bytes,
        filename: str,
        origin: OriginInfo,
        mimetype: Optional[str] = None,
        size: Optional[int] = None,
    ) -> UploadFileResult:
        if size is not None and size != len(content):
            raise BadRequestError(
                f"Declared size {size} does not match payload length {len(content)} for {filename}",
                bucket=origin.bucket,
            )
        mimetype = mimetype or guess_content_type(filename)
        now = utcnow()
        logger.info(f"Uploading file: {filename} ({len(content)} bytes, {mimetype})",
                    extra={"bucket": origin.bucket, "tenant_id": origin.tenant_id})

        # 1. Каталог
        record = await self.files.create(FileRecordCreate(
            filename=filename,
            original_filename=filename,
            mimetype=mimetype,
            size=len(content),
            bucket=origin.bucket,
            action=StorageAction.upload,
            status=StorageStatus.active,
            tenant_id=origin.tenant_id,
            user_id=origin.user_id,
            session_id=origin.session_id,
            ip_address=origin.ip_address,
            user_agent=origin.user_agent,
            metadata=FileOperationalMetadata(uploaded_at=now, file_type=mimetype),
        ))

        # 2. Блоб. Без повторов и без отката записи каталога.
        try:
            blob = await self.blobs.upload_object(
                content,
                filename,
                bucket=origin.bucket,
                metadata={
                    "original-filename": filename,
                    "storage-id": str(record.id),
                    "upload-timestamp": now.isoformat(),
                },
                content_type=mimetype,
                storage_id=record.id,
            )
        except StorageError as e:
            logger.error(f"Blob upload failed for {filename}: {e}",
                         extra={"storage_id": record.id, "bucket": origin.bucket})
            await self._record_failure(record.id, e)
            raise UploadFailedError(
                f"Failed to upload file {filename}: {e.message}",
                storage_id=record.id,
                bucket=origin.bucket,
                key=e.key,
            ) from e

        # 3. Указатель на блоб
        try:
            await self.files.update(record.id, {
                "bucket": blob.bucket,
                "key": blob.key,
                "file_path": blob.key,
                "metadata": record.metadata.merged(upload_timestamp=now),
            })
        except StorageError:
            logger.error(f"Blob stored but catalog pointer not saved for {filename}",
                         extra={"storage_id": record.id, "bucket": blob.bucket, "key": blob.key})
            raise

        logger.info(f"File uploaded successfully: {blob.key}",
                    extra={"storage_id": record.id, "bucket": blob.bucket, "key": blob.key})
        return UploadFileResult(
            storage_id=record.id,
            filename=record.filename,
            size=record.size,
            blob_key=blob.key,
            bucket=blob.bucket,
            etag=blob.etag,
        )

    async def _record_failure(self, storage_id, error: StorageError) -> None:
        # запись ошибки в каталог не должна подменять исходную ошибку загрузки
        try:
            await self.files.update(storage_id, {"error_message": error.message[:500]})
        except StorageError as e:
            logger.warning(f"Could not record upload failure on {storage_id}: {e}")
