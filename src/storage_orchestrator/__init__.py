# Файл: src/storage_orchestrator/__init__.py

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from .client import StorageClient
from .config import get_settings, StorageClientConfig, PostgresConfig, MinioConfig, StorageConfig
from .repositories.file_record_repository import FileRecordRepository
from .repositories.minio_repository import MinioRepository
from .repositories.blob_storage import BlobStorage

from .exceptions import *


def create_engine_from_config(config: PostgresConfig) -> AsyncEngine:
    dsn = config.get_pg_dsn()
    if dsn.startswith("sqlite"):
        # один общий коннект, иначе in-memory база у каждой сессии своя
        return create_async_engine(dsn, poolclass=StaticPool, connect_args={"check_same_thread": False})
    return create_async_engine(
        dsn,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=config.pool_pre_ping,
        connect_args={
            "server_settings": {
                "application_name": config.application_name
            }
        }
    )


def create_storage_client(
    config: Optional[StorageClientConfig] = None,
    blob_repo: Optional[BlobStorage] = None,
) -> StorageClient:
    """
    Фабричная функция для создания и конфигурации StorageClient.

    :param config: Единый объект с настройками.
                   Если не предоставлен, используются переменные окружения.
    :param blob_repo: Готовое блоб-хранилище вместо MinIO из конфига.
    :return: Сконфигурированный экземпляр StorageClient.
    """
    if config is None:
        config = get_settings().to_client_config()

    engine = create_engine_from_config(config.postgres)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    file_repo = FileRecordRepository(session_factory)
    if blob_repo is None:
        blob_repo = MinioRepository(config.minio, config.storage)

    return StorageClient(
        file_repo=file_repo,
        blob_repo=blob_repo,
        storage=config.storage,
        engine=engine,
    )

__all__ = [
    "StorageClient", "create_storage_client", "create_engine_from_config",
    "StorageClientConfig", "PostgresConfig", "MinioConfig", "StorageConfig",
    "BlobStorage", "MinioRepository", "FileRecordRepository",
    "StorageError", "NotFoundError", "BadRequestError", "DatabaseError",
    "BackendUnavailableError", "WriteFailedError", "ReadFailedError",
    "DeleteFailedError", "CopyFailedError", "UploadFailedError",
]
