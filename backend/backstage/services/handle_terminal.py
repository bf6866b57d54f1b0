"""Terminal Handlers — remote_shell tools on top of a user-scoped RemoteShellClient.

Invariants:
    - Handlers only talk to the capability they were built with, never to PropsManager
    - Manager errors (NotConnected, RemoteFile, InvalidCredentials, ...) propagate;
      ToolDispatch folds them into errored invocations
    - A non-zero exit status is returned as data with success=False
"""

import shlex

from backstage.core.errors import InputValidationError
from backstage.core.repository_protocols import RemoteShell

DEV_LOG = "npm_dev.log"


class TerminalHandlers:
    def __init__(self, shell: RemoteShell):
        self.shell = shell

    async def initialize_ssh(self, input_data: dict) -> dict:
        status = await self.shell.initialize(input_data)
        return {
            "success": True,
            "message": "SSH connection successful",
            "cwd": status.get("cwd"),
            "activeHost": (status.get("credentials") or {}).get("host"),
        }

    async def execute_command(self, input_data: dict) -> dict:
        return await self.shell.execute(_required(input_data, "command"))

    async def read_file(self, input_data: dict) -> dict:
        path = _required(input_data, "filePath")
        content = await self.shell.read_file(path)
        return {"success": True, "filePath": path, "content": content}

    async def edit_file(self, input_data: dict) -> dict:
        path = _required(input_data, "filePath")
        return await self.shell.edit_file(path, input_data.get("content") or "")

    async def disconnect_ssh(self, input_data: dict) -> dict:
        closed = await self.shell.disconnect()
        message = "SSH session disconnected." if closed else "No SSH session was active."
        return {"success": True, "message": message}

    async def read_command_log(self, input_data: dict) -> dict:
        log = self.shell.command_log()
        if not log:
            return {"success": True, "message": "No commands logged for this session yet.", "log": []}
        return {
            "success": True,
            "message": f"Retrieved {len(log)} command log entries.",
            "log": log,
        }

    async def launch_dev_server(self, input_data: dict) -> dict:
        root = _required(input_data, "projectRoot")
        if not root.startswith("/"):
            raise InputValidationError("projectRoot must be an absolute path", "projectRoot")
        killed = await self.shell.execute("pkill -f 'npm run dev' || true")
        launched = await self.shell.execute(
            f"(cd {shlex.quote(root)} && nohup npm run dev > {DEV_LOG} 2>&1 &)",
        )
        return {
            "success": launched["success"],
            "message": (
                f"Kill attempt: {killed['message']}. "
                f"Launch attempt: {launched['message']}"
            ),
            "logFile": f"{root.rstrip('/')}/{DEV_LOG}",
            "stderr": launched["stderr"],
        }

    async def check_dev_server(self, input_data: dict) -> dict:
        result = await self.shell.execute("ps aux | grep 'npm run dev' | grep -v grep")
        running = bool(result["stdout"].strip())
        return {
            "success": True,
            "isRunning": running,
            "message": (
                f"An 'npm run dev' process is running: {result['stdout'].strip()}"
                if running else "No 'npm run dev' process found running."
            ),
        }


def _required(input_data: dict, key: str) -> str:
    value = input_data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InputValidationError(f"'{key}' is required", key)
    return value
