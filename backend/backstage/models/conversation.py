"""Conversation ORM — aggregate root for a persisted transcript.

Invariants:
    - id is the caller-supplied conversation id (the chat "sessionId")
    - messages are ordered by position; deleting a conversation deletes them

Design Decisions:
    - String primary key: ids come from the front end, not the database
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backstage.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True,
    )
    model_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    messages = relationship(
        "TranscriptMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="TranscriptMessage.position",
    )
