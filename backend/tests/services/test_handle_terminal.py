"""Terminal Handlers — remote_shell tools through a real PropsManager capability.

Tests cover:
    - initialize → execute → read/edit → disconnect through the tool surface
    - Missing arguments rejected
    - Dev server launch and check commands
"""

import pytest

from backstage.core.errors import InputValidationError, NotConnectedError
from backstage.services.handle_terminal import TerminalHandlers
from backstage.infrastructure.ssh_client import RemoteCommandOutput


@pytest.fixture
def handlers(props):
    return TerminalHandlers(props.capability("alice"))


INIT = {"host": "dev.example.com", "username": "dev", "password": "pw"}


async def test_initialize_reports_host_and_cwd(handlers):
    out = await handlers.initialize_ssh(INIT)

    assert out == {
        "success": True,
        "message": "SSH connection successful",
        "cwd": "/home/dev",
        "activeHost": "dev.example.com",
    }


async def test_execute_before_initialize_raises(handlers):
    with pytest.raises(NotConnectedError):
        await handlers.execute_command({"command": "ls"})


async def test_execute_requires_command(handlers):
    await handlers.initialize_ssh(INIT)

    with pytest.raises(InputValidationError):
        await handlers.execute_command({})


async def test_edit_and_read_file(handlers):
    await handlers.initialize_ssh(INIT)

    await handlers.edit_file({"filePath": "/srv/app.py", "content": "print(1)\n"})
    out = await handlers.read_file({"filePath": "/srv/app.py"})

    assert out == {"success": True, "filePath": "/srv/app.py", "content": "print(1)\n"}


async def test_read_command_log(handlers):
    await handlers.initialize_ssh(INIT)
    empty = await handlers.read_command_log({})
    await handlers.execute_command({"command": "echo hi"})

    out = await handlers.read_command_log({})

    assert empty["log"] == []
    assert out["log"][0]["command"] == "echo hi"


async def test_disconnect_twice(handlers):
    await handlers.initialize_ssh(INIT)

    first = await handlers.disconnect_ssh({})
    second = await handlers.disconnect_ssh({})

    assert first["message"] == "SSH session disconnected."
    assert second["message"] == "No SSH session was active."


async def test_launch_dev_server_kills_then_launches(handlers, fake_connector):
    await handlers.initialize_ssh(INIT)

    out = await handlers.launch_dev_server({"projectRoot": "/srv/web"})

    commands = fake_connector.connections[0].commands
    assert commands[-2].endswith("pkill -f 'npm run dev' || true")
    assert "nohup npm run dev > npm_dev.log 2>&1 &" in commands[-1]
    assert out["logFile"] == "/srv/web/npm_dev.log"
    assert out["success"] is True


async def test_launch_dev_server_requires_absolute_root(handlers):
    await handlers.initialize_ssh(INIT)

    with pytest.raises(InputValidationError):
        await handlers.launch_dev_server({"projectRoot": "web"})


async def test_check_dev_server(handlers, fake_connector):
    await handlers.initialize_ssh(INIT)
    conn = fake_connector.connections[0]
    conn.responses["ps aux | grep 'npm run dev' | grep -v grep"] = RemoteCommandOutput(
        "dev 123 npm run dev\n", "", 0,
    )

    out = await handlers.check_dev_server({})

    assert out["isRunning"] is True
