from .storage import (
    BlobDownloadResult,
    BlobUploadResult,
    BucketStats,
    DeleteFileResult,
    DownloadFileResult,
    FileOperationalMetadata,
    FileRecord,
    FileRecordCreate,
    FileScope,
    ListObjectsResult,
    ObjectMetadata,
    ObjectVersion,
    OriginInfo,
    PresignedUrlResult,
    PresignOperation,
    StorageAction,
    StorageStatus,
    UploadFileResult,
)

__all__ = [
    "StorageAction", "StorageStatus", "PresignOperation",
    "FileScope", "OriginInfo", "FileOperationalMetadata", "FileRecordCreate", "FileRecord",
    "ObjectMetadata", "ObjectVersion", "BlobUploadResult", "BlobDownloadResult",
    "ListObjectsResult", "BucketStats",
    "UploadFileResult", "DownloadFileResult", "PresignedUrlResult", "DeleteFileResult",
]
