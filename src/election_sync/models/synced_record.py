"""SyncedRecord model — one logical election entity merged across sources.

Every source that has ever supplied the entity keeps its own contribution;
``merged`` holds the precedence-resolved view served to consumers and
``supplementary`` keeps the lower-precedence values for audit and display.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from election_sync.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class SyncedRecord(Base, UUIDMixin, TimestampMixin):
    """A normalized election record (election, deadline, race, candidate, result, results link)."""

    __tablename__ = "synced_records"

    category: Mapped[str] = mapped_column(String(30), nullable=False)
    record_type: Mapped[str] = mapped_column(String(30), nullable=False)
    record_key: Mapped[str] = mapped_column(String(500), nullable=False)

    # Source that supplied the winning value of the most fields
    primary_source: Mapped[str] = mapped_column(String(50), nullable=False)

    merged: Mapped[dict] = mapped_column(JSONType, nullable=False)
    provenance: Mapped[dict] = mapped_column(JSONType, nullable=False)
    supplementary: Mapped[dict] = mapped_column(JSONType, nullable=False)
    contributions: Mapped[dict] = mapped_column(JSONType, nullable=False)
    checksum: Mapped[str] = mapped_column(String(16), nullable=False)

    last_sync_run_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    last_fetched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("uq_synced_records_type_key", "record_type", "record_key", unique=True),
        Index("idx_synced_records_category", "category"),
    )
