from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.platform.database.orm_db_setting import Base


class BookingModel(Base):
    __tablename__ = 'booking'
    __table_args__ = (
        # At most one active booking per (subject, event)
        Index(
            'uq_booking_active_subject_event',
            'subject_id',
            'event_id',
            unique=True,
            postgresql_where=text("status IN ('confirmed', 'waitlist')"),
        ),
        Index('ix_booking_event_waitlist', 'event_id', 'status', 'waitlist_position'),
        Index('ix_booking_event_created', 'event_id', 'created_at'),
        Index('ix_booking_subject_created', 'subject_id', 'created_at'),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)  # UUID7
    subject_id: Mapped[str] = mapped_column(String(128), nullable=False)
    event_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey('event.id'), nullable=False
    )
    ticket_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    is_waitlist: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    waitlist_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancel_reason: Mapped[Optional[str]] = mapped_column(String(500))
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    checked_in_by: Mapped[Optional[str]] = mapped_column(String(128))
    check_in_method: Mapped[Optional[str]] = mapped_column(String(20))
