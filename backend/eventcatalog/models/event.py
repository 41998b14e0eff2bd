"""Event model holding the unified external catalog."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from eventcatalog.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Event(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Event ingested from an external ticketing platform.

    Each event is uniquely identified by the (source_platform, external_id)
    pair. Re-ingesting the same listing updates the row in place.
    """

    __tablename__ = "events"

    # Listing info
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    starts_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Parsed start time (UTC); null when the listing date was unparseable",
    )
    venue_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    organizer_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    price_range: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Provenance
    source_platform: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    source_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    external_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Deterministic per-platform fingerprint",
    )
    is_external: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    ticketing_type: Mapped[str] = mapped_column(String(20), nullable=False, default="external")
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="scraper")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="live")

    scraped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last time this listing was ingested",
    )

    __table_args__ = (
        UniqueConstraint(
            "source_platform",
            "external_id",
            name="uq_events_source_platform_external_id",
        ),
        Index("ix_events_starts_at", "starts_at"),
        Index("ix_events_scraped_at", "scraped_at"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, platform='{self.source_platform}', title='{self.title[:30]}')>"
