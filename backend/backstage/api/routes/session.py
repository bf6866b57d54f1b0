"""Session Route — direct control of the caller's remote shell session.

Invariants:
    - POST requires a user identity (401 otherwise), checked before body validation
    - Exactly one handler per SessionAction variant
    - GET without a user returns only aggregate counts, never another user's data

Design Decisions:
    - Body validated with the discriminated-union TypeAdapter; pydantic errors
      are re-raised as RequestValidationError so they share the 400 envelope
"""

import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Body, Depends
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from backstage.api.dependencies import get_props_manager, get_user_id
from backstage.core.domain_types import SessionAction
from backstage.core.errors import AuthError
from backstage.schemas.session import (
    DisconnectAction, EditFileAction, ExecuteAction, InitializeAction,
    ReadFileAction, session_action_adapter,
)
from backstage.services.props_manager import PropsManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/session", tags=["session"])


async def _initialize(props: PropsManager, user_id: str, body: InitializeAction) -> dict:
    snapshot = await props.initialize(user_id, body.credentials())
    return {
        "success": True,
        "message": f"Connected to {body.host}",
        **snapshot,
    }


async def _execute(props: PropsManager, user_id: str, body: ExecuteAction) -> dict:
    result = await props.execute_command(user_id, body.command)
    return result.to_dict()


async def _edit_file(props: PropsManager, user_id: str, body: EditFileAction) -> dict:
    return await props.edit_remote_file(user_id, body.file_path, body.content)


async def _read_file(props: PropsManager, user_id: str, body: ReadFileAction) -> dict:
    content = await props.read_remote_file(user_id, body.file_path)
    return {"success": True, "filePath": body.file_path, "content": content}


async def _disconnect(props: PropsManager, user_id: str, body: DisconnectAction) -> dict:
    closed = await props.disconnect(user_id)
    return {
        "success": True,
        "disconnected": closed,
        "message": "SSH connection closed" if closed else "No active SSH connection",
    }


_HANDLERS: dict[SessionAction, Callable[..., Awaitable[dict]]] = {
    SessionAction.INITIALIZE: _initialize,
    SessionAction.EXECUTE: _execute,
    SessionAction.EDIT_FILE: _edit_file,
    SessionAction.READ_FILE: _read_file,
    SessionAction.DISCONNECT: _disconnect,
}


@router.post("")
async def session_action(
    payload: dict[str, Any] = Body(...),
    user_id: str | None = Depends(get_user_id),
    props: PropsManager = Depends(get_props_manager),
):
    if not user_id:
        raise AuthError()
    try:
        body = session_action_adapter.validate_python(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e
    action = SessionAction(body.action)
    logger.info(f"Session action '{action.value}'", extra={"user_id": user_id})
    return await _HANDLERS[action](props, user_id, body)


@router.get("")
async def session_status(
    user_id: str | None = Depends(get_user_id),
    props: PropsManager = Depends(get_props_manager),
):
    if user_id:
        return props.get_user_status(user_id)
    return props.get_manager_status()
