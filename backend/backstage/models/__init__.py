"""ORM Models — SQLAlchemy declarative models for persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Conversation is the aggregate root for transcript messages

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from backstage.models.conversation import Conversation  # noqa: F401
from backstage.models.transcript_message import TranscriptMessage  # noqa: F401
from backstage.models.knowledge_text import KnowledgeText  # noqa: F401
