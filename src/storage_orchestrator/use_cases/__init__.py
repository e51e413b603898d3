from .upload_file import UploadFileUseCase
from .download_file import DownloadFileUseCase
from .presigned_url import PresignedUrlUseCase
from .delete_file import DeleteFileUseCase
from .factory import UseCaseFactory

__all__ = [
    "UploadFileUseCase",
    "DownloadFileUseCase",
    "PresignedUrlUseCase",
    "DeleteFileUseCase",
    "UseCaseFactory",
]
