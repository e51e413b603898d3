from .blob_storage import BlobStorage
from .minio_repository import MinioRepository
from .file_record_repository import FileRecordRepository

__all__ = [
    "BlobStorage",
    "MinioRepository",
    "FileRecordRepository",
]
