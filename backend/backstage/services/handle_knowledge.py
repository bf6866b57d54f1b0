"""Knowledge Handlers — add_knowledge, lookup_knowledge."""

from backstage.core.errors import InputValidationError
from backstage.core.repository_protocols import KnowledgeRepository


class KnowledgeHandlers:
    def __init__(self, store: KnowledgeRepository, user_id: str | None):
        self.store = store
        self.user_id = user_id

    async def add_knowledge(self, input_data: dict) -> dict:
        content = (input_data.get("content") or "").strip()
        if not content:
            raise InputValidationError("'content' is required", "content")
        saved = await self.store.add_text(self.user_id, content)
        return {"status": "ok", "id": saved["id"], "message": "Knowledge stored."}

    async def lookup_knowledge(self, input_data: dict) -> dict:
        question = (input_data.get("question") or "").strip()
        if not question:
            raise InputValidationError("'question' is required", "question")
        limit = int(input_data.get("limit") or 5)
        results = await self.store.search(self.user_id, question, limit)
        if not results:
            return {"status": "ok", "results": [], "message": "No relevant information found."}
        return {"status": "ok", "results": results}
