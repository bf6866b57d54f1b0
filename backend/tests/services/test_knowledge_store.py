"""Knowledge Store + Handlers — add/lookup against SQLite.

Tests cover:
    - Snippets are scoped per user
    - lookup ranks by shared keywords and honours the limit
    - Handlers reject empty input
"""

import pytest

from backstage.core.errors import InputValidationError
from backstage.services.handle_knowledge import KnowledgeHandlers
from backstage.services.knowledge_store import KnowledgeStore


@pytest.fixture
def store(test_db_manager):
    return KnowledgeStore(test_db_manager)


async def test_search_ranks_by_overlap(store):
    await store.add_text("alice", "The staging server runs on port 8080")
    await store.add_text("alice", "Deploys happen every Friday")
    await store.add_text("alice", "nginx config lives in /etc/nginx/sites-enabled on staging")

    results = await store.search("alice", "where is the nginx config on staging?")

    assert results[0]["content"].startswith("nginx config lives")
    assert all("Friday" not in r["content"] for r in results)
    assert results[0]["score"] >= results[-1]["score"]


async def test_search_is_user_scoped(store):
    await store.add_text("alice", "alice secret database password location")
    await store.add_text(None, "shared database notes")

    assert await store.search("bob", "database password") == []
    anonymous = await store.search(None, "database notes")
    assert [r["content"] for r in anonymous] == ["shared database notes"]


async def test_search_honours_limit(store):
    for i in range(4):
        await store.add_text("alice", f"python tip number {i}")

    assert len(await store.search("alice", "python tip", limit=2)) == 2


async def test_handlers_add_and_lookup(store):
    handlers = KnowledgeHandlers(store, "alice")

    added = await handlers.add_knowledge({"content": "Backups run at 02:00 UTC"})
    found = await handlers.lookup_knowledge({"question": "when do backups run?"})
    missing = await handlers.lookup_knowledge({"question": "kubernetes"})

    assert added["status"] == "ok" and added["id"]
    assert found["results"][0]["content"] == "Backups run at 02:00 UTC"
    assert missing["message"] == "No relevant information found."


async def test_handlers_reject_empty_input(store):
    handlers = KnowledgeHandlers(store, "alice")

    with pytest.raises(InputValidationError):
        await handlers.add_knowledge({"content": "  "})
    with pytest.raises(InputValidationError):
        await handlers.lookup_knowledge({})
