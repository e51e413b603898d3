# Файл: src/storage_orchestrator/config.py

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


# --- Каталог метаданных (PostgreSQL) ---
class PostgresConfig(BaseModel):
    user: str = "postgres"
    password: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    db: str = "storage"

    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    application_name: str = "storage_orchestrator"

    # Полный SQLAlchemy URL, перекрывает поля выше (например sqlite+aiosqlite:// в тестах)
    dsn: Optional[str] = None

    def get_pg_dsn(self) -> str:
        """Собирает DSN для SQLAlchemy из полей этого объекта."""
        if self.dsn:
            return self.dsn
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"

    @property
    def is_postgres(self) -> bool:
        return self.get_pg_dsn().startswith("postgresql")


# --- Блоб-хранилище (MinIO / S3) ---
class MinioConfig(BaseModel):
    endpoint: str = "localhost:9000"
    accesskey: str = "minioadmin"
    secretkey: str = "minioadmin"
    bucket: str = "storage"
    secure: bool = False
    cert_check: bool = True
    region: Optional[str] = None


class StorageConfig(BaseModel):
    default_presign_ttl: int = Field(10800, description="TTL presigned URL по умолчанию, секунды")
    max_presign_ttl: int = Field(604800, description="Верхняя граница S3 для presigned URL (7 дней)")
    list_page_size: int = 1000


# Единый объект для явной передачи конфигурации
class StorageClientConfig(BaseModel):
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter='_',
        env_nested_max_split=1,
        extra='ignore'
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    def to_client_config(self) -> StorageClientConfig:
        return StorageClientConfig(postgres=self.postgres, minio=self.minio, storage=self.storage)


_cached_settings: Optional[Settings] = None

def get_settings() -> Settings:
    """
    Возвращает синглтон-экземпляр настроек, создавая его при первом вызове.
    Это предотвращает ошибки валидации при импорте.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings


def reset_settings() -> None:
    """Сбрасывает кэш настроек (нужно тестам, меняющим окружение)."""
    global _cached_settings
    _cached_settings = None
