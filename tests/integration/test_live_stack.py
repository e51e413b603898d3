import pytest

from storage_orchestrator import StorageClient
from storage_orchestrator.exceptions import NotFoundError
from storage_orchestrator.models import OriginInfo, StorageStatus

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]


async def test_full_lifecycle(live_client: StorageClient):
    """
    Полный цикл на настоящих PostgreSQL и MinIO: загрузка, ссылка, скачивание, удаление.
    """
    # --- ARRANGE ---
    origin = OriginInfo(bucket="tenant-a", tenant_id="t1", user_id="u1")

    # 1. Загрузка
    uploaded = await live_client.upload(b"hello", "a.txt", origin)
    record = await live_client.find(uploaded.storage_id, origin.scope)
    assert record.key == uploaded.blob_key
    assert await live_client.blobs.object_exists(record.key, "tenant-a")

    # 2. Presigned URL
    link = await live_client.presigned_url(uploaded.storage_id, origin, expires_in=60)
    assert uploaded.blob_key in link.presigned_url

    # 3. Скачивание
    downloaded = await live_client.download(uploaded.storage_id, origin)
    assert downloaded.data == b"hello"

    # 4. Удаление, дважды
    await live_client.delete(uploaded.storage_id, origin)
    again = await live_client.delete(uploaded.storage_id, origin)
    assert again.message == "File was already deleted"

    record = await live_client.find(uploaded.storage_id, origin.scope)
    assert record.status == StorageStatus.deleted
    assert record.metadata.download_count == 1
    assert not await live_client.blobs.object_exists(uploaded.blob_key, "tenant-a")

    with pytest.raises(NotFoundError):
        await live_client.download(uploaded.storage_id, origin)


async def test_listing_pages(live_client: StorageClient):
    origin = OriginInfo(bucket="listing", tenant_id="t1")
    for i in range(5):
        await live_client.upload(f"file {i}".encode(), f"f{i}.txt", origin)

    keys, token = [], None
    while True:
        page = await live_client.list_objects("listing", max_keys=2, continuation_token=token)
        keys.extend(item.key for item in page.items)
        if not page.is_truncated:
            break
        token = page.next_continuation_token

    assert len(keys) == 5
    assert len(set(keys)) == 5
    assert keys == sorted(keys)

    stats = await live_client.bucket_stats("listing")
    assert stats.total_files == 5
