"""Conversations Route — read back a persisted transcript.

Invariants:
    - Unknown conversations, and conversations owned by another user, are 404
"""

from fastapi import APIRouter, Depends, Path

from backstage.api.dependencies import get_transcript_store, get_user_id
from backstage.services.transcript_store import TranscriptStore

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.get("/{conversation_id}/messages")
async def get_conversation_messages(
    conversation_id: str = Path(max_length=128),
    user_id: str | None = Depends(get_user_id),
    store: TranscriptStore = Depends(get_transcript_store),
):
    messages = await store.load_transcript(conversation_id, user_id)
    return {
        "conversationId": conversation_id,
        "messages": [m.to_wire() for m in messages],
    }
