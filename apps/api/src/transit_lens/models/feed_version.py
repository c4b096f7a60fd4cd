"""Feed version ledger model."""

from __future__ import annotations

from datetime import date, datetime  # noqa: TC003 - SQLAlchemy needs these at runtime

from sqlalchemy import CheckConstraint, Date, DateTime, Index, Integer, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from transit_lens.models.base import Base


class FeedVersion(Base):
    """One published static schedule with its validity window.

    Windows of the same feed source never overlap; a newer version truncates
    the ``valid_to`` of the one it supersedes.
    """

    __tablename__ = "feed_versions"

    feed_version_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    feed_source_id: Mapped[int] = mapped_column(Integer, nullable=False)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date] = mapped_column(Date, nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("feed_source_id", "valid_from", name="uq_feed_versions_source_from"),
        CheckConstraint("valid_to >= valid_from", name="ck_feed_versions_window"),
        Index("ix_feed_versions_source_window", "feed_source_id", "valid_from", "valid_to"),
    )
