import logging
import time
from contextlib import aclosing
from datetime import timedelta
from io import BytesIO
from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

import urllib3
from minio import Minio
from minio.commonconfig import CopySource
from minio.error import InvalidResponseError, S3Error, ServerError

from storage_orchestrator.config import MinioConfig, StorageConfig
from storage_orchestrator.exceptions import (
    BackendUnavailableError,
    BadRequestError,
    CopyFailedError,
    DeleteFailedError,
    NotFoundError,
    ReadFailedError,
    StorageError,
    WriteFailedError,
)
from storage_orchestrator.models.storage import (
    BlobDownloadResult,
    BlobUploadResult,
    BucketStats,
    ListObjectsResult,
    ObjectMetadata,
    ObjectVersion,
    PresignOperation,
)
from storage_orchestrator.repositories.blob_storage import BlobStorage
from storage_orchestrator.utils.files import DEFAULT_CONTENT_TYPE, guess_content_type
from storage_orchestrator.utils.minio_async import iterate_io_bound, run_io_bound

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024

# Коды S3, означающие "объекта нет"
NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchObject", "NoSuchBucket", "NoSuchVersion", "ResourceNotFound"})
BUCKET_EXISTS_CODES = frozenset({"BucketAlreadyOwnedByYou", "BucketAlreadyExists"})
# Сетевые сбои: запрос не дошёл или ответ не разобран
TRANSPORT_ERRORS = (urllib3.exceptions.HTTPError, ServerError, InvalidResponseError, OSError)


def is_not_found(error: S3Error) -> bool:
    return error.code in NOT_FOUND_CODES


def _is_latest(obj) -> bool:
    # в листинге версий SDK отдаёт IsLatest строкой "true"/"false"
    flag = getattr(obj, "is_latest", None)
    if flag is None:
        return True
    return str(flag).lower() == "true"


class MinioRepository(BlobStorage):
    """Блоб-хранилище поверх MinIO SDK (любой S3-совместимый сервер)."""

    def __init__(self,
                 settings: MinioConfig,
                 storage: StorageConfig | None = None,
                 client: Minio | None = None):
        self._client = client or Minio(
            endpoint=settings.endpoint,
            access_key=settings.accesskey,
            secret_key=settings.secretkey,
            secure=settings.secure,
            region=settings.region,
            cert_check=settings.cert_check,
        )
        self._bucket = settings.bucket
        self._storage = storage or StorageConfig()

    @property
    def default_bucket(self) -> str:
        return self._bucket

    def _target(self, bucket: Optional[str]) -> str:
        return bucket or self._bucket

    async def check_connection(self):
        """Проверяет соединение с MinIO и наличие бакета по умолчанию."""
        logger.debug(f"Checking MinIO connection and bucket '{self._bucket}' existence...")
        try:
            await self.ensure_bucket_exists(self._bucket)
            logger.debug("MinIO connection and bucket presence confirmed.")
        except StorageError as e:
            logger.error(f"MinIO connection failed: {e}")
            raise

    async def ensure_bucket_exists(self, bucket: Optional[str] = None) -> bool:
        target = self._target(bucket)
        try:
            exists = await run_io_bound(self._client.bucket_exists, bucket_name=target)
        except (S3Error, *TRANSPORT_ERRORS) as e:
            raise BackendUnavailableError(f"Failed to check bucket {target}: {e}", bucket=target) from e
        if exists:
            return True
        try:
            await run_io_bound(self._client.make_bucket, bucket_name=target)
            logger.info(f"Bucket {target} created successfully")
        except S3Error as e:
            # параллельный запрос успел создать бакет первым
            if e.code in BUCKET_EXISTS_CODES:
                return True
            raise WriteFailedError(f"Failed to create bucket {target}: {e}", bucket=target) from e
        except TRANSPORT_ERRORS as e:
            raise BackendUnavailableError(f"Failed to create bucket {target}: {e}", bucket=target) from e
        return True

    @staticmethod
    def build_object_key(filename: str, storage_id: Optional[UUID] = None) -> str:
        """
        Ключ = <epoch-ms>-<соль>-<имя файла>.
        Соль: id записи каталога (или случайный uuid4), поэтому два
        одновременных upload с одинаковым именем не совпадут по ключу.
        """
        salt = storage_id.hex if storage_id else uuid4().hex
        return f"{int(time.time() * 1000)}-{salt}-{filename}"

    async def upload_object(
        self,
        data: bytes,
        filename: str,
        bucket: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        content_type: Optional[str] = None,
        storage_id: Optional[UUID] = None,
    ) -> BlobUploadResult:
        target = self._target(bucket)
        logger.info(f"Uploading file: {filename} to bucket: {target}")
        await self.ensure_bucket_exists(target)

        key = self.build_object_key(filename, storage_id)
        mimetype = content_type or guess_content_type(filename)
        user_metadata = {k: str(v) for k, v in (metadata or {}).items()}
        try:
            result = await run_io_bound(
                self._client.put_object,
                bucket_name=target,
                object_name=key,
                data=BytesIO(data),
                length=len(data),
                content_type=mimetype,
                metadata=user_metadata or None,
            )
        except S3Error as e:
            raise WriteFailedError(f"Failed to upload file {filename}: {e}", bucket=target, key=key) from e
        except TRANSPORT_ERRORS as e:
            raise BackendUnavailableError(f"Failed to upload file {filename}: {e}", bucket=target, key=key) from e

        logger.info(f"File uploaded successfully: {key}")
        return BlobUploadResult(
            bucket=target,
            key=key,
            etag=result.etag,
            version_id=result.version_id,
            metadata=ObjectMetadata(
                filename=filename,
                original_name=filename,
                mimetype=mimetype,
                size=len(data),
                bucket=target,
                key=key,
                etag=result.etag,
                version_id=result.version_id,
                user_metadata=user_metadata,
            ),
        )

    def _read_all(self, bucket: str, key: str, version_id: Optional[str]) -> bytes:
        resp = self._client.get_object(bucket_name=bucket, object_name=key, version_id=version_id)
        try:
            return b"".join(resp.stream(READ_CHUNK_SIZE))
        finally:
            resp.close()
            resp.release_conn()

    async def download_object(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> BlobDownloadResult:
        target = self._target(bucket)
        logger.info(f"Downloading file: {key} from bucket: {target}")

        # метаданные берём из той же проверки существования: после чтения объект могут удалить
        head = await self._stat(key, target, version_id)
        if head is None:
            raise NotFoundError(f"File {key} not found in bucket {target}", bucket=target, key=key)

        try:
            data = await run_io_bound(self._read_all, target, key, version_id)
        except (S3Error, *TRANSPORT_ERRORS) as e:
            raise ReadFailedError(f"Failed to download file {key}: {e}", bucket=target, key=key) from e

        return BlobDownloadResult(data=data, metadata=self._to_metadata(head, target))

    async def delete_object(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> bool:
        target = self._target(bucket)
        logger.info(f"Deleting file: {key} from bucket: {target}")

        if not await self.object_exists(key, target, version_id):
            logger.warning(f"File {key} not found in bucket {target}, nothing to delete")
            return True
        try:
            await run_io_bound(self._client.remove_object, bucket_name=target, object_name=key, version_id=version_id)
        except S3Error as e:
            raise DeleteFailedError(f"Failed to delete file {key}: {e}", bucket=target, key=key) from e
        except TRANSPORT_ERRORS as e:
            raise BackendUnavailableError(f"Failed to delete file {key}: {e}", bucket=target, key=key) from e
        logger.info(f"File {key} deleted successfully")
        return True

    async def copy_object(
        self,
        src_key: str,
        dst_key: str,
        src_bucket: Optional[str] = None,
        dst_bucket: Optional[str] = None,
    ) -> bool:
        source = self._target(src_bucket)
        destination = self._target(dst_bucket)
        logger.info(f"Copying file from {src_key} ({source}) to {dst_key} ({destination})")

        if not await self.object_exists(src_key, source):
            raise NotFoundError(f"Source file {src_key} not found in bucket {source}", bucket=source, key=src_key)
        await self.ensure_bucket_exists(destination)
        try:
            await run_io_bound(
                self._client.copy_object,
                bucket_name=destination,
                object_name=dst_key,
                source=CopySource(source, src_key),
            )
        except S3Error as e:
            raise CopyFailedError(f"Failed to copy file {src_key}: {e}", bucket=destination, key=dst_key) from e
        except TRANSPORT_ERRORS as e:
            raise BackendUnavailableError(f"Failed to copy file {src_key}: {e}", bucket=destination, key=dst_key) from e
        return True

    async def _stat(self, key: str, bucket: str, version_id: Optional[str]):
        """Сырой stat: None, если объекта нет."""
        try:
            return await run_io_bound(
                self._client.stat_object, bucket_name=bucket, object_name=key, version_id=version_id
            )
        except S3Error as e:
            if is_not_found(e):
                return None
            raise BackendUnavailableError(f"Failed to check file {key}: {e}", bucket=bucket, key=key) from e
        except TRANSPORT_ERRORS as e:
            raise BackendUnavailableError(f"Failed to check file {key}: {e}", bucket=bucket, key=key) from e

    @staticmethod
    def _to_metadata(obj, bucket: str) -> ObjectMetadata:
        name = obj.object_name
        user_metadata = {}
        if getattr(obj, "metadata", None):
            user_metadata = {
                k[len("x-amz-meta-"):]: v
                for k, v in dict(obj.metadata).items()
                if k.lower().startswith("x-amz-meta-")
            }
        return ObjectMetadata(
            filename=name.split("/")[-1] or name,
            original_name=name,
            mimetype=getattr(obj, "content_type", None) or DEFAULT_CONTENT_TYPE,
            size=obj.size or 0,
            bucket=bucket,
            key=name,
            etag=obj.etag,
            version_id=obj.version_id,
            last_modified=obj.last_modified,
            user_metadata=user_metadata,
        )

    async def stat_object(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> ObjectMetadata:
        target = self._target(bucket)
        obj = await self._stat(key, target, version_id)
        if obj is None:
            raise NotFoundError(f"File {key} not found in bucket {target}", bucket=target, key=key)
        return self._to_metadata(obj, target)

    async def object_exists(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> bool:
        target = self._target(bucket)
        logger.debug(f"Checking if file exists: {key} in bucket: {target}")
        return await self._stat(key, target, version_id) is not None

    async def get_object_size(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> int:
        return (await self.stat_object(key, bucket, version_id)).size

    async def generate_presigned_url(
        self,
        key: str,
        operation: PresignOperation | str = PresignOperation.GET,
        ttl_seconds: Optional[int] = None,
        bucket: Optional[str] = None,
    ) -> str:
        target = self._target(bucket)
        try:
            operation = PresignOperation(operation)
        except ValueError:
            raise BadRequestError(f"Unsupported presign operation: {operation}", bucket=target, key=key) from None
        ttl = self._storage.default_presign_ttl if ttl_seconds is None else ttl_seconds
        if not 1 <= ttl <= self._storage.max_presign_ttl:
            raise BadRequestError(
                f"Presigned URL expiry must be between 1 and {self._storage.max_presign_ttl} seconds, got {ttl}",
                bucket=target, key=key,
            )
        logger.info(f"Generating presigned URL for: {key} in bucket: {target}, operation: {operation.value}, expires in: {ttl}s")

        if operation is PresignOperation.GET:
            if not await self.object_exists(key, target):
                raise NotFoundError(f"File {key} not found in bucket {target}", bucket=target, key=key)
            presign = self._client.presigned_get_object
        else:
            if operation is PresignOperation.POST:
                logger.warning("POST presigned URLs are not supported by the backend, using PUT instead")
            presign = self._client.presigned_put_object

        try:
            return await run_io_bound(presign, bucket_name=target, object_name=key, expires=timedelta(seconds=ttl))
        except (S3Error, *TRANSPORT_ERRORS) as e:
            raise BackendUnavailableError(f"Failed to generate presigned URL for {key}: {e}", bucket=target, key=key) from e

    def _list(self, bucket: str, prefix: Optional[str] = None, start_after: Optional[str] = None,
              include_version: bool = False):
        return lambda: self._client.list_objects(
            bucket_name=bucket,
            prefix=prefix,
            recursive=True,
            start_after=start_after,
            include_version=include_version,
        )

    async def list_objects(
        self,
        bucket: Optional[str] = None,
        prefix: Optional[str] = None,
        max_keys: Optional[int] = None,
        continuation_token: Optional[str] = None,
    ) -> ListObjectsResult:
        target = self._target(bucket)
        if max_keys is not None and max_keys < 1:
            raise BadRequestError(f"max_keys must be positive, got {max_keys}", bucket=target)
        logger.info(f"Listing files in bucket: {target} (prefix={prefix!r}, max_keys={max_keys}, token={continuation_token!r})")

        items: list[ObjectMetadata] = []
        next_token: Optional[str] = None

        # Токен: ключ первого невыданного объекта. S3 start_after исключает его,
        # поэтому сам объект добираем через stat.
        if continuation_token and continuation_token.startswith(prefix or ""):
            head = await self._stat(continuation_token, target, None)
            if head is not None:
                items.append(self._to_metadata(head, target))

        try:
            async with aclosing(iterate_io_bound(self._list(target, prefix, continuation_token))) as objects:
                async for obj in objects:
                    if obj.is_dir:
                        continue
                    if max_keys is not None and len(items) >= max_keys:
                        next_token = obj.object_name
                        break
                    items.append(self._to_metadata(obj, target))
        except S3Error as e:
            if is_not_found(e):
                raise NotFoundError(f"Bucket {target} not found", bucket=target) from e
            raise BackendUnavailableError(f"Failed to list files in bucket {target}: {e}", bucket=target) from e
        except TRANSPORT_ERRORS as e:
            raise BackendUnavailableError(f"Failed to list files in bucket {target}: {e}", bucket=target) from e

        return ListObjectsResult(items=items, next_continuation_token=next_token, is_truncated=next_token is not None)

    async def bucket_stats(self, bucket: Optional[str] = None) -> BucketStats:
        target = self._target(bucket)
        logger.info(f"Getting stats for bucket: {target}")
        stats = BucketStats(bucket=target)
        try:
            async with aclosing(iterate_io_bound(self._list(target))) as objects:
                async for obj in objects:
                    if obj.is_dir:
                        continue
                    stats.total_files += 1
                    stats.total_size += obj.size or 0
                    if obj.last_modified and (stats.last_modified is None or obj.last_modified > stats.last_modified):
                        stats.last_modified = obj.last_modified
        except S3Error as e:
            if is_not_found(e):
                raise NotFoundError(f"Bucket {target} not found", bucket=target) from e
            raise BackendUnavailableError(f"Failed to get stats for bucket {target}: {e}", bucket=target) from e
        except TRANSPORT_ERRORS as e:
            raise BackendUnavailableError(f"Failed to get stats for bucket {target}: {e}", bucket=target) from e
        return stats

    async def list_object_versions(self, key: str, bucket: Optional[str] = None) -> list[ObjectVersion]:
        """
        Версии объекта. Для бакета без версионирования S3 отдаёт одну версию 'null'.
        """
        target = self._target(bucket)
        versions: list[ObjectVersion] = []
        try:
            async with aclosing(iterate_io_bound(self._list(target, prefix=key, include_version=True))) as objects:
                async for obj in objects:
                    if obj.object_name != key:
                        continue
                    versions.append(ObjectVersion(
                        version_id=obj.version_id or "null",
                        is_latest=_is_latest(obj),
                        last_modified=obj.last_modified,
                        size=obj.size or 0,
                        etag=obj.etag,
                    ))
        except S3Error as e:
            if is_not_found(e):
                raise NotFoundError(f"Bucket {target} not found", bucket=target) from e
            raise BackendUnavailableError(f"Failed to list versions of {key}: {e}", bucket=target, key=key) from e
        except TRANSPORT_ERRORS as e:
            raise BackendUnavailableError(f"Failed to list versions of {key}: {e}", bucket=target, key=key) from e
        if not versions:
            raise NotFoundError(f"File {key} not found in bucket {target}", bucket=target, key=key)
        return versions
