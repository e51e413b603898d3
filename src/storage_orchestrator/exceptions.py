from typing import Any, Optional
from uuid import UUID


class StorageError(Exception):
    """Base class. Every error carries a stable numeric code and reconciliation context."""

    code: int = 500

    def __init__(
        self,
        message: str,
        *,
        storage_id: UUID | str | None = None,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
    ):
        self.message = message
        self.storage_id = storage_id
        self.bucket = bucket
        self.key = key
        super().__init__(f"[{self.code}] {message}")

    @property
    def context(self) -> dict[str, Any]:
        ctx = {"storage_id": self.storage_id, "bucket": self.bucket, "key": self.key}
        return {k: str(v) for k, v in ctx.items() if v is not None}

    def to_payload(self) -> dict[str, Any]:
        """Стабильная форма ошибки для роутера: код, сообщение, контекст."""
        return {"code": self.code, "message": str(self), "context": self.context}


class NotFoundError(StorageError):
    code = 404


class BadRequestError(StorageError):
    code = 400


class DatabaseError(StorageError):
    pass


# --- ошибки блоб-хранилища ---

class BackendUnavailableError(StorageError):
    code = 503


class WriteFailedError(StorageError):
    pass


class ReadFailedError(StorageError):
    pass


class DeleteFailedError(StorageError):
    pass


class CopyFailedError(StorageError):
    pass


class UploadFailedError(StorageError):
    """Блоб не записан, но запись каталога уже создана: storage_id нужен для повтора."""


__all__ = [
    "StorageError", "NotFoundError", "BadRequestError", "DatabaseError",
    "BackendUnavailableError", "WriteFailedError", "ReadFailedError",
    "DeleteFailedError", "CopyFailedError", "UploadFailedError",
]
