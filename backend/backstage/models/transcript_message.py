"""TranscriptMessage ORM — one stored Message of a conversation.

Invariants:
    - (conversation_id, position) is unique; position follows transcript order
    - parts holds the wire-shape parts list (camelCase keys)

Design Decisions:
    - JSON column for parts: the part shape is owned by core/messages.py,
      the table does not mirror it
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backstage.db.base import Base


class TranscriptMessage(Base):
    __tablename__ = "transcript_messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "position", name="uq_transcript_position"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    message_id: Mapped[str] = mapped_column(String(128), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    parts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    conversation = relationship("Conversation", back_populates="messages")
