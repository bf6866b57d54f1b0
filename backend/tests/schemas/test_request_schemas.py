"""Request schemas — POST /cast body and POST /session action union.

Invariants:
    - Session actions are a discriminated union on `action`
    - camelCase wire keys are accepted alongside snake_case
    - Message payloads convert to transcript Messages, legacy states included
"""

import pytest
from pydantic import ValidationError

from backstage.core.domain_types import InvocationState, Role
from backstage.schemas.cast import CastBody, MessagePartPayload
from backstage.schemas.session import (
    ExecuteAction, InitializeAction, ReadFileAction, session_action_adapter,
)


# --- Session actions -----------------------------------------------------------

def test_initialize_defaults_port_and_accepts_camel_case_key():
    body = session_action_adapter.validate_python({
        "action": "initialize", "host": "h", "username": "u", "privateKeyPath": "/k",
    })

    assert isinstance(body, InitializeAction)
    assert body.credentials() == {
        "host": "h", "port": 22, "username": "u", "password": None, "private_key_path": "/k",
    }


def test_execute_strips_command():
    body = session_action_adapter.validate_python({"action": "execute", "command": "  ls -la "})

    assert isinstance(body, ExecuteAction)
    assert body.command == "ls -la"


def test_unknown_action_rejected():
    with pytest.raises(ValidationError):
        session_action_adapter.validate_python({"action": "reboot"})


def test_port_out_of_range_rejected():
    with pytest.raises(ValidationError):
        session_action_adapter.validate_python({
            "action": "initialize", "host": "h", "username": "u", "port": 70000,
        })


def test_read_file_takes_file_path_alias():
    body = session_action_adapter.validate_python({"action": "readFile", "filePath": "/etc/hosts"})

    assert isinstance(body, ReadFileAction)
    assert body.file_path == "/etc/hosts"


# --- Cast body -----------------------------------------------------------------

def test_cast_body_aliases():
    body = CastBody.model_validate({
        "messages": [{"role": "user", "content": "hi"}],
        "customInfo": "ctx",
        "sessionId": "conv-1",
        "stepLimit": 3,
    })

    assert body.custom_info == "ctx"
    assert body.session_id == "conv-1"
    assert body.step_limit == 3
    assert body.tools == []


def test_step_limit_must_be_positive():
    with pytest.raises(ValidationError):
        CastBody.model_validate({"messages": [], "stepLimit": 0})


def test_tool_invocation_part_requires_invocation():
    with pytest.raises(ValidationError):
        MessagePartPayload.model_validate({"type": "tool-invocation"})


def test_payload_converts_legacy_call_state():
    body = CastBody.model_validate({"messages": [{
        "id": "a1",
        "role": "assistant",
        "parts": [{
            "type": "tool-invocation",
            "toolInvocation": {"toolCallId": "t1", "toolName": "x", "state": "call"},
        }],
    }]})

    message = body.messages[0].to_message()

    assert message.role == Role.ASSISTANT
    assert message.id == "a1"
    assert message.tool_invocations()[0].state == InvocationState.PENDING
