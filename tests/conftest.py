import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker

from fakes import FakeMinio

# Base нужен для создания/удаления таблиц
from storage_orchestrator.db.base import Base
from storage_orchestrator import StorageClient, create_engine_from_config
from storage_orchestrator.config import MinioConfig, PostgresConfig, StorageConfig
from storage_orchestrator.models import OriginInfo
from storage_orchestrator.repositories import FileRecordRepository, MinioRepository

SQLITE_DSN = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def fake_minio() -> FakeMinio:
    return FakeMinio()


@pytest.fixture
def minio_config() -> MinioConfig:
    return MinioConfig(bucket="default-bucket")


@pytest.fixture
def blob_repo(fake_minio, minio_config) -> MinioRepository:
    return MinioRepository(minio_config, StorageConfig(), client=fake_minio)


@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite каталог: таблицы создаются на каждый тест,
    после теста движок закрывается вместе с базой.
    """
    engine = create_engine_from_config(PostgresConfig(dsn=SQLITE_DSN))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def file_repo(db_engine) -> FileRecordRepository:
    return FileRecordRepository(async_sessionmaker(bind=db_engine, expire_on_commit=False))


@pytest.fixture
def storage_client(file_repo, blob_repo, db_engine) -> StorageClient:
    return StorageClient(file_repo=file_repo, blob_repo=blob_repo, storage=StorageConfig(), engine=db_engine)


@pytest.fixture
def origin() -> OriginInfo:
    return OriginInfo(bucket="tenant-a", tenant_id="t1", user_id="u1")
