from storage_orchestrator.config import StorageConfig
from storage_orchestrator.repositories.blob_storage import BlobStorage
from storage_orchestrator.repositories.file_record_repository import FileRecordRepository
from storage_orchestrator.use_cases.delete_file import DeleteFileUseCase
from storage_orchestrator.use_cases.download_file import DownloadFileUseCase
from storage_orchestrator.use_cases.presigned_url import PresignedUrlUseCase
from storage_orchestrator.use_cases.upload_file import UploadFileUseCase


class UseCaseFactory:
    """Собирает все сценарии над одной парой каталог + блоб-хранилище."""

    def __init__(self, files: FileRecordRepository, blobs: BlobStorage, storage: StorageConfig | None = None):
        storage = storage or StorageConfig()
        self.upload = UploadFileUseCase(files, blobs)
        self.download = DownloadFileUseCase(files, blobs)
        self.presigned_url = PresignedUrlUseCase(files, blobs, default_expires_in=storage.default_presign_ttl)
        self.delete = DeleteFileUseCase(files, blobs)
