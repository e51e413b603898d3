"""
Uniform contract of a blob backend.

The orchestrators only talk to this interface, so any S3-compatible store
(or an in-process fake) can stand behind it. The backend knows nothing about
the catalog.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional
from uuid import UUID

from storage_orchestrator.models.storage import (
    BlobDownloadResult,
    BlobUploadResult,
    BucketStats,
    ListObjectsResult,
    ObjectMetadata,
    ObjectVersion,
    PresignOperation,
)


class BlobStorage(ABC):

    @property
    @abstractmethod
    def default_bucket(self) -> str:
        """Bucket used when a call does not name one."""

    @abstractmethod
    async def check_connection(self) -> None:
        """Raises BackendUnavailableError when the backend cannot be reached."""

    @abstractmethod
    async def ensure_bucket_exists(self, bucket: Optional[str] = None) -> bool:
        """
        Create the bucket if it is absent.

        Idempotent: "already exists" is success, never an error.
        """

    @abstractmethod
    async def upload_object(
        self,
        data: bytes,
        filename: str,
        bucket: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        content_type: Optional[str] = None,
        storage_id: Optional[UUID] = None,
    ) -> BlobUploadResult:
        """
        Store bytes under a freshly derived key.

        Keys are salted, so an upload never overwrites an existing object.
        Raises BackendUnavailableError or WriteFailedError.
        """

    @abstractmethod
    async def download_object(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> BlobDownloadResult:
        """
        Read the whole object.

        Raises NotFoundError after an existence probe, ReadFailedError when the
        stream breaks midway.
        """

    @abstractmethod
    async def delete_object(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> bool:
        """Idempotent delete. An absent object returns True without a backend delete call."""

    @abstractmethod
    async def copy_object(
        self,
        src_key: str,
        dst_key: str,
        src_bucket: Optional[str] = None,
        dst_bucket: Optional[str] = None,
    ) -> bool:
        """Server-side copy. Raises NotFoundError when the source is absent."""

    @abstractmethod
    async def stat_object(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> ObjectMetadata:
        """Raises NotFoundError when absent."""

    @abstractmethod
    async def object_exists(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> bool:
        """
        The only trustworthy answer to "is the blob there?".

        Never raises for absence; transport and auth failures raise
        BackendUnavailableError.
        """

    @abstractmethod
    async def generate_presigned_url(
        self,
        key: str,
        operation: PresignOperation | str = PresignOperation.GET,
        ttl_seconds: Optional[int] = None,
        bucket: Optional[str] = None,
    ) -> str:
        """
        Issue a time-limited URL.

        GET checks existence first. POST degrades to PUT with a warning.
        """

    @abstractmethod
    async def list_objects(
        self,
        bucket: Optional[str] = None,
        prefix: Optional[str] = None,
        max_keys: Optional[int] = None,
        continuation_token: Optional[str] = None,
    ) -> ListObjectsResult:
        """
        One page of a lazily enumerated listing.

        When truncated, next_continuation_token is the key of the first
        object not returned; passing it back resumes exactly there.
        """

    @abstractmethod
    async def bucket_stats(self, bucket: Optional[str] = None) -> BucketStats:
        """Full enumeration fold, O(objects in bucket). Keep off hot paths."""

    @abstractmethod
    async def get_object_size(
        self, key: str, bucket: Optional[str] = None, version_id: Optional[str] = None
    ) -> int:
        ...

    @abstractmethod
    async def list_object_versions(self, key: str, bucket: Optional[str] = None) -> list[ObjectVersion]:
        ...
