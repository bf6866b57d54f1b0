"""API Dependencies — request-scoped access to process-wide collaborators.

Invariants:
    - The Props registry is created by the lifespan and lives on app.state
    - The user id comes from the configured auth header; absence means anonymous
    - Stores resolve the db_manager at call time (it is initialized in the lifespan)

Design Decisions:
    - FastAPI Depends over module globals: route tests swap collaborators with
      app.dependency_overrides instead of monkeypatching imports
"""

from fastapi import Depends, Request

from backstage.config import Settings, get_settings
from backstage.core.domain_types import ClientKind
from backstage.infrastructure.database import get_db_manager
from backstage.services.knowledge_store import KnowledgeStore
from backstage.services.props_manager import PropsManager
from backstage.services.tool_clients import ClientFactory, build_client_factories
from backstage.services.transcript_store import TranscriptStore


def get_props_manager(request: Request) -> PropsManager:
    return request.app.state.props


def get_user_id(
    request: Request, settings: Settings = Depends(get_settings),
) -> str | None:
    value = request.headers.get(settings.auth_user_header)
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_client_factories(
    settings: Settings = Depends(get_settings),
    props: PropsManager = Depends(get_props_manager),
) -> dict[ClientKind, ClientFactory]:
    return build_client_factories(settings, props)


def get_transcript_store() -> TranscriptStore:
    return TranscriptStore(get_db_manager())


def get_knowledge_store() -> KnowledgeStore:
    return KnowledgeStore(get_db_manager())
