"""Errors — response envelopes and SSE events.

Tests:
    - to_response carries code, category and context
    - to_sse_event prefers the user-facing message
    - Status codes per error family
"""

from backstage.core.errors import (
    AuthError, ErrorContext, InputValidationError, NotConnectedError,
    ResourceNotFoundError, ToolUnavailableError,
)


def test_response_envelope():
    err = InputValidationError("Messages cannot be empty", "messages")

    body = err.to_response()["error"]

    assert body["code"] == "VALIDATION_ERROR"
    assert body["message"] == "Messages cannot be empty"
    assert err.field == "messages"
    assert err.http_status == 400


def test_sse_event_uses_user_message():
    err = ToolUnavailableError(
        "browser", "spawn failed", ErrorContext(user_message="Browser tools are unavailable."),
    )

    event = err.to_sse_event()

    assert event["type"] == "error"
    assert event["data"]["message"] == "Browser tools are unavailable."


def test_status_codes():
    assert AuthError().http_status == 401
    assert ResourceNotFoundError("conversation", "c1").http_status == 404
    assert NotConnectedError("alice").context.user_id == "alice"
