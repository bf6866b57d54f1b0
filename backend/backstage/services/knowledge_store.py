"""Knowledge Store — persistence for the knowledge tools (add / lookup).

Invariants:
    - Snippets are scoped by user_id; anonymous runs share the NULL scope
    - lookup scans at most SCAN_LIMIT newest snippets before ranking
"""

import logging

from sqlalchemy import select

from backstage.core.search_knowledge import rank_by_overlap
from backstage.infrastructure.database import DatabaseSessionManager
from backstage.models.knowledge_text import KnowledgeText

logger = logging.getLogger(__name__)

SCAN_LIMIT = 500


class KnowledgeStore:
    def __init__(self, db: DatabaseSessionManager):
        self.db = db

    async def add_text(self, user_id: str | None, text: str) -> dict:
        async with self.db.session() as session:
            row = KnowledgeText(user_id=user_id, content=text)
            session.add(row)
            await session.commit()
            logger.info("Stored knowledge snippet", extra={"user_id": user_id})
            return {"id": str(row.id), "content": row.content}

    async def search(self, user_id: str | None, query: str, limit: int = 5) -> list[dict]:
        stmt = select(KnowledgeText).order_by(KnowledgeText.created_at.desc())
        if user_id is None:
            stmt = stmt.where(KnowledgeText.user_id.is_(None))
        else:
            stmt = stmt.where(KnowledgeText.user_id == user_id)
        async with self.db.session() as session:
            rows = (await session.execute(stmt.limit(SCAN_LIMIT))).scalars().all()
        entries = [{"id": str(r.id), "content": r.content} for r in rows]
        return rank_by_overlap(entries, query, limit)
