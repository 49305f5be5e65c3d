"""Ghostwriter/approver relationship model."""

from datetime import datetime

from sqlalchemy import String, DateTime, Boolean, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cocreate.services.database import Base


class GhostwriterApproverLink(Base):
    """A ghostwriter allowed to write in an approver's voice (and vice versa while active)."""

    __tablename__ = "ghostwriter_approver_link"

    id: Mapped[int] = mapped_column(primary_key=True)
    ghostwriter_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    approver_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("ghostwriter_id", "approver_id", name="uq_ghostwriter_approver"),
        Index("ix_link_pair_active", "ghostwriter_id", "approver_id", "active"),
    )
