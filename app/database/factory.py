from app.config.settings import Settings
from app.database.postgres_record_store import PostgresRecordStore
from app.database.record_store import BaseRecordStore, InMemoryRecordStore


class RecordStoreFactory:
    """Creates the record store selected by ``storage_backend``."""

    @staticmethod
    def create(settings: Settings) -> BaseRecordStore:
        backend = settings.storage_backend.lower()
        if backend == "memory":
            return InMemoryRecordStore()
        if backend == "postgres":
            return PostgresRecordStore()
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
