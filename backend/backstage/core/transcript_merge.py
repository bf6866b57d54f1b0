"""Transcript Merge — pure merge of caller history with messages produced by a run.

Invariants:
    - Output order: caller-supplied history (input order), then produced messages
      in the order their steps completed
    - Every output message carries the same conversation id
    - Inputs are never mutated; tagged copies are returned
    - Produced messages whose id already exists in history are not duplicated
"""

import logging

from backstage.core.messages import Message

logger = logging.getLogger(__name__)


def merge_transcript(
    history: list[Message],
    produced: list[Message],
    conversation_id: str | None,
) -> list[Message]:
    """Return history + produced, each tagged with conversation_id."""
    merged = [m.with_conversation(conversation_id) for m in history]
    seen = {m.id for m in history}
    for message in produced:
        if message.id in seen:
            logger.warning(
                f"Skipping produced message with duplicate id {message.id}",
                extra={"conversation_id": conversation_id},
            )
            continue
        seen.add(message.id)
        merged.append(message.with_conversation(conversation_id))

    duplicates = find_duplicate_tool_call_ids(merged)
    if duplicates:
        logger.warning(
            f"Transcript contains duplicate toolCallIds: {', '.join(sorted(duplicates))}",
            extra={"conversation_id": conversation_id},
        )
    return merged


def find_duplicate_tool_call_ids(messages: list[Message]) -> set[str]:
    """toolCallIds requested more than once, or answered more than once.

    A step legitimately carries each id twice: once in the assistant
    message that requested it and once in the tool message answering it.
    """
    seen: set[tuple[str, str]] = set()
    duplicates: set[str] = set()
    for message in messages:
        for invocation in message.tool_invocations():
            key = (message.role.value, invocation.tool_call_id)
            if key in seen:
                duplicates.add(invocation.tool_call_id)
            seen.add(key)
    return duplicates
