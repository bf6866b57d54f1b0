"""Transcript Store — durable storage for merged conversation transcripts.

Invariants:
    - save_transcript() replaces the stored transcript atomically (one transaction)
    - save_transcript() never raises: failures are logged and reported as False
    - A conversation owned by one user is never read or overwritten by anyone
      else, anonymous callers included
    - load_transcript() returns messages in stored position order

Design Decisions:
    - Full replace over append: the merged transcript is authoritative and
      already contains the history the caller sent
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select

from backstage.core.errors import DatabaseError, PersistenceError, ResourceNotFoundError
from backstage.core.messages import Message
from backstage.infrastructure.database import DatabaseSessionManager
from backstage.models.conversation import Conversation
from backstage.models.transcript_message import TranscriptMessage

logger = logging.getLogger(__name__)


def _may_access(convo: Conversation, user_id: str | None) -> bool:
    """Unowned conversations are open; owned ones only to their owner."""
    return convo.user_id is None or convo.user_id == user_id


class TranscriptStore:
    def __init__(self, db: DatabaseSessionManager):
        self.db = db

    async def save_transcript(
        self,
        conversation_id: str,
        user_id: str | None,
        messages: list[Message],
        model_key: str | None = None,
    ) -> bool:
        if not conversation_id:
            return False
        try:
            async with self.db.session() as session:
                convo = await session.get(Conversation, conversation_id)
                if convo is None:
                    convo = Conversation(
                        id=conversation_id, user_id=user_id, model_key=model_key,
                    )
                    session.add(convo)
                elif not _may_access(convo, user_id):
                    raise PersistenceError(conversation_id, "owned by another user")
                else:
                    convo.user_id = convo.user_id or user_id
                    convo.model_key = model_key or convo.model_key
                    convo.updated_at = datetime.now(timezone.utc)

                await session.execute(
                    delete(TranscriptMessage)
                    .where(TranscriptMessage.conversation_id == conversation_id),
                )
                for position, message in enumerate(messages):
                    wire = message.to_wire()
                    session.add(TranscriptMessage(
                        conversation_id=conversation_id,
                        message_id=message.id,
                        position=position,
                        role=message.role.value,
                        content=message.content or "",
                        parts=wire["parts"],
                        created_at=message.created_at,
                    ))
                await session.commit()
        except (DatabaseError, PersistenceError) as e:
            logger.error(
                f"Failed to persist transcript: {e.message}",
                extra={
                    "conversation_id": conversation_id,
                    "user_id": user_id,
                    "error_code": e.code,
                },
            )
            return False
        logger.info(
            f"Saved {len(messages)} messages",
            extra={"conversation_id": conversation_id, "user_id": user_id},
        )
        return True

    async def load_transcript(
        self, conversation_id: str, user_id: str | None = None,
    ) -> list[Message]:
        async with self.db.session() as session:
            convo = await session.get(Conversation, conversation_id)
            if convo is None or not _may_access(convo, user_id):
                raise ResourceNotFoundError("Conversation", conversation_id)
            rows = (await session.execute(
                select(TranscriptMessage)
                .where(TranscriptMessage.conversation_id == conversation_id)
                .order_by(TranscriptMessage.position),
            )).scalars().all()
        return [
            Message.from_wire({
                "id": row.message_id,
                "role": row.role,
                "content": row.content,
                "parts": row.parts,
                "createdAt": row.created_at,
                "session": conversation_id,
            })
            for row in rows
        ]
