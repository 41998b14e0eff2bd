"""Scraper run audit records."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from eventcatalog.models.base import Base, UUIDPrimaryKeyMixin


class ScraperRun(UUIDPrimaryKeyMixin, Base):
    """Append-only audit row for one orchestrator run.

    Written once when the run completes and never updated afterwards.
    """

    __tablename__ = "scraper_runs"

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="Status: 'completed' or 'failed'",
    )
    trigger: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="manual",
        comment="What started the run: 'scheduled', 'catch_up', 'retry', 'manual'",
    )

    # Metrics
    total_events: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_inserted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    platform_results: Mapped[list] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=list,
        comment="Per-platform outcome detail",
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Summary of failed platforms; null when every platform succeeded",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ScraperRun(id={self.id}, status='{self.status}', total_events={self.total_events})>"
