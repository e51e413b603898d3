# storage_orchestrator/db/__init__.py

from .base import Base, get_session
from .storage_orm import FileRecordORM


__all__ = [
    "Base",
    "get_session",
    "FileRecordORM",
]
