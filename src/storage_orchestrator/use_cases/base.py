from storage_orchestrator.repositories.blob_storage import BlobStorage
from storage_orchestrator.repositories.file_record_repository import FileRecordRepository


class UseCase:
    """
    Один сценарий = один вызов execute(). Между вызовами ничего не кэшируется:
    каталог и блоб-хранилище опрашиваются заново каждый раз.
    """

    def __init__(self, files: FileRecordRepository, blobs: BlobStorage):
        self.files = files
        self.blobs = blobs
