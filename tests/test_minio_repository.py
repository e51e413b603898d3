import logging

import pytest
import urllib3

from fakes import FakeS3Error
from storage_orchestrator.exceptions import (
    BackendUnavailableError,
    BadRequestError,
    DeleteFailedError,
    NotFoundError,
    ReadFailedError,
    WriteFailedError,
)
from storage_orchestrator.models import PresignOperation
from storage_orchestrator.repositories import MinioRepository

pytestmark = pytest.mark.asyncio


def seed(fake_minio, bucket: str, names: list[str], payload: bytes = b"x"):
    fake_minio.buckets.setdefault(bucket, {})
    for name in names:
        fake_minio.put_object(bucket, name, _Reader(payload), len(payload))
    fake_minio.calls.clear()


class _Reader:
    def __init__(self, data: bytes):
        self._data = data

    def read(self, n: int) -> bytes:
        return self._data[:n]


# ――― бакеты ――― #

async def test_ensure_bucket_creates_once(blob_repo, fake_minio):
    assert await blob_repo.ensure_bucket_exists("photos") is True
    assert await blob_repo.ensure_bucket_exists("photos") is True
    assert "photos" in fake_minio.buckets
    assert fake_minio.calls_to("make_bucket") == 1


async def test_ensure_bucket_treats_concurrent_create_as_success(blob_repo, fake_minio):
    fake_minio.fail_on["make_bucket"] = FakeS3Error("BucketAlreadyOwnedByYou")
    assert await blob_repo.ensure_bucket_exists("photos") is True


async def test_ensure_bucket_other_create_error_is_write_failure(blob_repo, fake_minio):
    fake_minio.fail_on["make_bucket"] = FakeS3Error("InvalidBucketName")
    with pytest.raises(WriteFailedError):
        await blob_repo.ensure_bucket_exists("Bad_Bucket")


async def test_check_connection_unreachable(blob_repo, fake_minio):
    fake_minio.fail_on["bucket_exists"] = urllib3.exceptions.MaxRetryError(None, "/default-bucket")
    with pytest.raises(BackendUnavailableError) as exc:
        await blob_repo.check_connection()
    assert exc.value.code == 503
    assert exc.value.bucket == "default-bucket"


# ――― upload / download ――― #

async def test_build_object_key_is_salted():
    first = MinioRepository.build_object_key("a.txt")
    second = MinioRepository.build_object_key("a.txt")
    assert first != second
    assert first.endswith("-a.txt")
    assert second.endswith("-a.txt")


async def test_upload_and_download_roundtrip(blob_repo, fake_minio):
    uploaded = await blob_repo.upload_object(
        b"hello", "a.txt", bucket="tenant-a", metadata={"storage-id": "42"}
    )
    assert uploaded.bucket == "tenant-a"
    assert uploaded.key.endswith("-a.txt")
    assert uploaded.metadata.mimetype == "text/plain"
    assert uploaded.metadata.size == 5

    downloaded = await blob_repo.download_object(uploaded.key, "tenant-a")
    assert downloaded.data == b"hello"
    assert downloaded.metadata.key == uploaded.key
    assert downloaded.metadata.user_metadata == {"storage-id": "42"}
    assert downloaded.metadata.etag == uploaded.etag


async def test_upload_uses_default_bucket(blob_repo, fake_minio):
    uploaded = await blob_repo.upload_object(b"data", "blob.bin")
    assert uploaded.bucket == "default-bucket"
    assert uploaded.metadata.mimetype == "application/octet-stream"
    assert uploaded.key in fake_minio.buckets["default-bucket"]


async def test_upload_write_error(blob_repo, fake_minio):
    fake_minio.fail_on["put_object"] = FakeS3Error("AccessDenied")
    with pytest.raises(WriteFailedError) as exc:
        await blob_repo.upload_object(b"hello", "a.txt", bucket="tenant-a")
    assert exc.value.bucket == "tenant-a"
    assert exc.value.key.endswith("-a.txt")


async def test_download_missing_object(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", [])
    with pytest.raises(NotFoundError) as exc:
        await blob_repo.download_object("nope.txt", "tenant-a")
    assert exc.value.code == 404
    assert fake_minio.calls_to("get_object") == 0


async def test_download_stats_once(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["a.txt"], payload=b"hello")

    result = await blob_repo.download_object("a.txt", "tenant-a")

    assert result.data == b"hello"
    assert result.metadata.size == 5
    assert fake_minio.calls_to("stat_object") == 1


async def test_download_survives_removal_after_read(blob_repo, fake_minio, monkeypatch):
    seed(fake_minio, "tenant-a", ["a.txt"], payload=b"hello")
    get_object = fake_minio.get_object

    def read_then_remove(**kwargs):
        response = get_object(**kwargs)
        fake_minio.buckets["tenant-a"].pop("a.txt")
        return response

    monkeypatch.setattr(fake_minio, "get_object", read_then_remove)

    result = await blob_repo.download_object("a.txt", "tenant-a")

    assert result.data == b"hello"
    assert result.metadata.key == "a.txt"


async def test_download_broken_stream(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["big.bin"], payload=b"0" * (200 * 1024))
    fake_minio.stream_fail_after = 64 * 1024
    with pytest.raises(ReadFailedError):
        await blob_repo.download_object("big.bin", "tenant-a")


# ――― delete / copy / stat ――― #

async def test_delete_is_idempotent(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["a.txt"])

    assert await blob_repo.delete_object("a.txt", "tenant-a") is True
    assert await blob_repo.delete_object("a.txt", "tenant-a") is True

    assert "a.txt" not in fake_minio.buckets["tenant-a"]
    assert fake_minio.calls_to("remove_object") == 1


async def test_delete_backend_error(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["a.txt"])
    fake_minio.fail_on["remove_object"] = FakeS3Error("AccessDenied")
    with pytest.raises(DeleteFailedError):
        await blob_repo.delete_object("a.txt", "tenant-a")


async def test_copy_object(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["a.txt"], payload=b"hello")

    assert await blob_repo.copy_object("a.txt", "copy.txt", "tenant-a", "archive") is True
    assert fake_minio.buckets["archive"]["copy.txt"].data == b"hello"

    with pytest.raises(NotFoundError):
        await blob_repo.copy_object("missing.txt", "x.txt", "tenant-a", "archive")


async def test_stat_and_exists(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["docs/report.pdf"], payload=b"12345")

    meta = await blob_repo.stat_object("docs/report.pdf", "tenant-a")
    assert meta.filename == "report.pdf"
    assert meta.size == 5
    assert await blob_repo.get_object_size("docs/report.pdf", "tenant-a") == 5
    assert await blob_repo.object_exists("docs/report.pdf", "tenant-a") is True
    assert await blob_repo.object_exists("docs/other.pdf", "tenant-a") is False

    with pytest.raises(NotFoundError):
        await blob_repo.stat_object("docs/other.pdf", "tenant-a")


async def test_exists_raises_on_access_denied(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["a.txt"])
    fake_minio.fail_on["stat_object"] = FakeS3Error("AccessDenied")
    with pytest.raises(BackendUnavailableError):
        await blob_repo.object_exists("a.txt", "tenant-a")


# ――― presigned URL ――― #

async def test_presigned_get_requires_object(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["a.txt"])

    url = await blob_repo.generate_presigned_url("a.txt", bucket="tenant-a")
    assert "X-Amz-Expires=10800" in url

    with pytest.raises(NotFoundError):
        await blob_repo.generate_presigned_url("missing.txt", bucket="tenant-a")


async def test_presigned_post_degrades_to_put(blob_repo, fake_minio, caplog):
    seed(fake_minio, "tenant-a", [])
    with caplog.at_level(logging.WARNING, logger="storage_orchestrator.repositories.minio_repository"):
        url = await blob_repo.generate_presigned_url("new.txt", PresignOperation.POST, 60, "tenant-a")

    assert "method=PUT" in url
    assert fake_minio.calls_to("presigned_put_object") == 1
    assert any("PUT instead" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize("ttl", [0, -5, 604801])
async def test_presigned_ttl_bounds(blob_repo, fake_minio, ttl):
    seed(fake_minio, "tenant-a", ["a.txt"])
    with pytest.raises(BadRequestError):
        await blob_repo.generate_presigned_url("a.txt", ttl_seconds=ttl, bucket="tenant-a")


async def test_presigned_unknown_operation(blob_repo):
    with pytest.raises(BadRequestError):
        await blob_repo.generate_presigned_url("a.txt", "DELETE", bucket="tenant-a")


# ――― листинг ――― #

async def test_list_pagination_has_no_gaps_or_overlaps(blob_repo, fake_minio):
    names = [f"k{i}" for i in range(5)]
    seed(fake_minio, "tenant-a", names)

    seen, token, pages = [], None, 0
    while True:
        page = await blob_repo.list_objects("tenant-a", max_keys=2, continuation_token=token)
        pages += 1
        seen.extend(item.key for item in page.items)
        if not page.is_truncated:
            assert page.next_continuation_token is None
            break
        token = page.next_continuation_token

    assert pages == 3
    assert seen == names


async def test_list_stops_pulling_at_page_size(blob_repo, fake_minio, monkeypatch):
    names = [f"k{i:02d}" for i in range(50)]
    seed(fake_minio, "tenant-a", names)

    pulled = []
    list_all = fake_minio.list_objects

    def counting_list(**kwargs):
        for obj in list_all(**kwargs):
            pulled.append(obj.object_name)
            yield obj

    monkeypatch.setattr(fake_minio, "list_objects", counting_list)

    page = await blob_repo.list_objects("tenant-a", max_keys=3)

    assert [item.key for item in page.items] == ["k00", "k01", "k02"]
    assert page.next_continuation_token == "k03"
    assert len(pulled) <= 4


async def test_list_with_prefix(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["docs/a", "docs/b", "img/c"])

    page = await blob_repo.list_objects("tenant-a", prefix="docs/", max_keys=10)
    assert [item.key for item in page.items] == ["docs/a", "docs/b"]
    assert page.is_truncated is False


async def test_list_rejects_non_positive_page(blob_repo):
    with pytest.raises(BadRequestError):
        await blob_repo.list_objects("tenant-a", max_keys=0)


async def test_list_missing_bucket(blob_repo):
    with pytest.raises(NotFoundError):
        await blob_repo.list_objects("ghost", max_keys=10)


async def test_bucket_stats(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["a", "b", "c"], payload=b"1234")

    stats = await blob_repo.bucket_stats("tenant-a")
    assert stats.bucket == "tenant-a"
    assert stats.total_files == 3
    assert stats.total_size == 12
    assert stats.last_modified == fake_minio.buckets["tenant-a"]["c"].last_modified


async def test_bucket_stats_empty(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", [])
    stats = await blob_repo.bucket_stats("tenant-a")
    assert stats.total_files == 0
    assert stats.total_size == 0
    assert stats.last_modified is None


async def test_list_object_versions(blob_repo, fake_minio):
    seed(fake_minio, "tenant-a", ["a.txt", "a.txt.bak"])

    versions = await blob_repo.list_object_versions("a.txt", "tenant-a")
    assert len(versions) == 1
    assert versions[0].version_id == "null"
    assert versions[0].is_latest is True

    with pytest.raises(NotFoundError):
        await blob_repo.list_object_versions("missing.txt", "tenant-a")
