import pytest
import pytest_asyncio

from storage_orchestrator.db.base import Base
from storage_orchestrator import StorageClient, create_storage_client
from storage_orchestrator.config import MinioConfig, PostgresConfig, StorageClientConfig

def _docker_available() -> bool:
    docker = pytest.importorskip("docker")
    try:
        docker.from_env().ping()
    except docker.errors.DockerException:
        return False
    return True


@pytest.fixture(scope="session")
def live_config():
    """
    Поднимает PostgreSQL и MinIO один раз на всю сессию
    и собирает из них конфигурацию клиента.
    """
    if not _docker_available():
        pytest.skip("Docker is not available")
    from testcontainers.minio import MinioContainer
    from testcontainers.postgres import PostgresContainer

    postgres = PostgresContainer("postgres:15")
    minio = MinioContainer("minio/minio:latest", access_key="minioadmin", secret_key="minioadmin")
    postgres.start()
    minio.start()

    minio_config = minio.get_config()
    config = StorageClientConfig(
        postgres=PostgresConfig(
            user=postgres.username,
            password=postgres.password,
            db=postgres.dbname,
            host=postgres.get_container_host_ip(),
            port=int(postgres.get_exposed_port(5432)),
        ),
        minio=MinioConfig(
            endpoint=minio_config["endpoint"].replace("http://", ""),
            accesskey=minio_config["access_key"],
            secretkey=minio_config["secret_key"],
            secure=False,
            bucket="test-bucket",
        ),
    )
    yield config
    postgres.stop()
    minio.stop()


@pytest_asyncio.fixture(scope="function")
async def live_client(live_config) -> StorageClient:
    """
    Клиент из фабрики, как в приложении. Таблицы создаются перед тестом
    и удаляются после него.
    """
    client = create_storage_client(live_config)
    async with client.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await client.blobs.check_connection()
    yield client
    async with client.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await client.aclose()
