"""ORM model registry — import all models so Alembic autogenerate discovers them."""

from election_sync.models.base import Base
from election_sync.models.sync_run import SyncRun, SyncRunStatus
from election_sync.models.synced_record import SyncedRecord

__all__ = [
    "Base",
    "SyncRun",
    "SyncRunStatus",
    "SyncedRecord",
]
