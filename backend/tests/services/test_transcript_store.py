"""Transcript Store — persistence of merged transcripts on SQLite.

Tests cover:
    - save then load round-trips order, roles and settled invocations
    - A second save replaces the stored transcript
    - Ownership: another user, or an anonymous caller, can neither overwrite nor read
    - Unknown conversation → ResourceNotFoundError
"""

import pytest

from backstage.core.domain_types import InvocationState, Role
from backstage.core.errors import ResourceNotFoundError
from backstage.core.messages import Message, MessagePart, ToolInvocation, tool_message
from backstage.services.transcript_store import TranscriptStore


def _transcript():
    inv = ToolInvocation("toolu_1", "terminal_execute_command", {"command": "ls"})
    inv.resolve({"stdout": "README.md\n"})
    return [
        Message(role=Role.USER, content="list files", id="u1"),
        Message(
            role=Role.ASSISTANT,
            content="Listing.",
            parts=[MessagePart.text_part("Listing."), MessagePart.invocation_part(inv)],
            id="a1",
        ),
        tool_message([inv]),
        Message(role=Role.ASSISTANT, content="One file.", id="a2"),
    ]


@pytest.fixture
def store(test_db_manager):
    return TranscriptStore(test_db_manager)


async def test_save_then_load_preserves_order(store):
    messages = _transcript()

    assert await store.save_transcript("conv-1", "alice", messages, "claude-3-7-sonnet-20250219")
    loaded = await store.load_transcript("conv-1", "alice")

    assert [m.id for m in loaded] == [m.id for m in messages]
    assert [m.role for m in loaded] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
    inv = loaded[1].tool_invocations()[0]
    assert inv.state == InvocationState.RESULT
    assert inv.result == {"stdout": "README.md\n"}
    assert all(m.conversation_id == "conv-1" for m in loaded)


async def test_second_save_replaces_transcript(store):
    await store.save_transcript("conv-1", "alice", _transcript())
    shorter = [Message(role=Role.USER, content="again", id="u9")]

    await store.save_transcript("conv-1", "alice", shorter)
    loaded = await store.load_transcript("conv-1", "alice")

    assert [m.id for m in loaded] == ["u9"]


async def test_other_user_cannot_overwrite(store):
    await store.save_transcript("conv-1", "alice", _transcript())

    saved = await store.save_transcript("conv-1", "mallory", [])

    assert saved is False
    assert len(await store.load_transcript("conv-1", "alice")) == 4


async def test_other_user_cannot_read(store):
    await store.save_transcript("conv-1", "alice", _transcript())

    with pytest.raises(ResourceNotFoundError):
        await store.load_transcript("conv-1", "mallory")


async def test_anonymous_caller_cannot_overwrite_owned(store):
    await store.save_transcript("conv-1", "alice", _transcript())

    saved = await store.save_transcript("conv-1", None, [Message(role=Role.USER, content="x")])

    assert saved is False
    loaded = await store.load_transcript("conv-1", "alice")
    assert [m.id for m in loaded][:2] == ["u1", "a1"]
    assert len(loaded) == 4


async def test_anonymous_caller_cannot_read_owned(store):
    await store.save_transcript("conv-1", "alice", _transcript())

    with pytest.raises(ResourceNotFoundError):
        await store.load_transcript("conv-1", None)


async def test_unowned_conversation_is_open_and_claimed_by_first_user(store):
    await store.save_transcript("conv-2", None, _transcript())

    assert len(await store.load_transcript("conv-2", None)) == 4
    assert await store.save_transcript("conv-2", "alice", _transcript()) is True
    with pytest.raises(ResourceNotFoundError):
        await store.load_transcript("conv-2", None)


async def test_unknown_conversation_not_found(store):
    with pytest.raises(ResourceNotFoundError):
        await store.load_transcript("nope")


async def test_empty_conversation_id_is_not_saved(store):
    assert await store.save_transcript("", "alice", _transcript()) is False
