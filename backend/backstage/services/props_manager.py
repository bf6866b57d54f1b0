"""Props — per-user remote shell sessions over SSH.

Invariants:
    - At most one live connection per user; initialize() closes the prior one first
    - Writes (initialize/execute/edit/read/disconnect) for the same user are
      serialized by that user's asyncio.Lock; different users never wait on each other
    - A user's lock lives only while an operation holds or awaits it; idle users
      leave nothing behind in the lock registry
    - Status reads take no lock and may observe a slightly stale connected flag
    - CommandLogEntry is immutable once appended; the log keeps the newest
      max_log_entries entries
    - A non-zero exit status is a result, not an error
    - A timed-out command is logged with timed_out=True and the session stays connected
    - A transport failure marks the session disconnected and raises
      SessionConnectionError; there is no automatic reconnect

Design Decisions:
    - Explicit registry object owned by the application (app.state), not a module
      singleton: tests build their own with a fake connector
    - Tool code never sees a UserSession; it gets a RemoteShellClient bound to one user
    - cwd is tracked client-side: every command runs as `cd <cwd> && <command>`,
      and `cd` commands are run as `<command> && pwd` to learn the new directory
"""

import asyncio
import logging
import shlex
import weakref
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

from backstage.core.errors import (
    ErrorContext, InputValidationError, InvalidCredentialsError,
    NotConnectedError, RemoteFileError, SessionConnectionError,
)
from backstage.infrastructure.ssh_client import (
    RemoteCommandOutput, SSHConnection, SSHConnector, SSHTransportError,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SSHCredentials:
    host: str | None = None
    username: str | None = None
    port: int = 22
    password: str | None = None
    private_key_path: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "SSHCredentials":
        """Accepts both snake_case and the camelCase used by the HTTP body."""
        return cls(
            host=data.get("host"),
            username=data.get("username"),
            port=int(data.get("port") or 22),
            password=data.get("password"),
            private_key_path=data.get("private_key_path") or data.get("privateKeyPath"),
        )

    def validate(self) -> None:
        if not self.host or not self.username or not (self.password or self.private_key_path):
            raise InvalidCredentialsError(
                "SSH connection details (host, username, and password/privateKeyPath) "
                "are missing or incomplete.",
            )

    def redacted(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "auth": "password" if self.password else "private_key",
        }


@dataclass(frozen=True)
class CommandLogEntry:
    command: str
    stdout: str
    stderr: str
    exit_code: int | None
    timestamp: datetime = field(default_factory=_utcnow)
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
            "timestamp": self.timestamp.isoformat(),
            "timedOut": self.timed_out,
            "success": self.success,
        }


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int | None
    cwd: str | None
    timed_out: bool = False
    message: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
            "cwd": self.cwd,
            "timedOut": self.timed_out,
            "message": self.message,
        }


@dataclass
class UserSession:
    user_id: str
    connection: SSHConnection
    cwd: str | None
    credentials_used: dict
    command_log: deque
    connected: bool = True


class PropsManager:
    """Registry of remote shell sessions, one per user."""

    def __init__(
        self,
        connector: SSHConnector,
        command_timeout: float = 120,
        max_log_entries: int = 500,
    ):
        self.connector = connector
        self.command_timeout = command_timeout
        self.max_log_entries = max_log_entries
        self._sessions: dict[str, UserSession] = {}
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    # -- Writes (serialized per user) -----------------------------------------

    async def initialize(self, user_id: str, credentials: SSHCredentials | dict) -> dict:
        if isinstance(credentials, dict):
            credentials = SSHCredentials.from_dict(credentials)
        credentials.validate()
        async with self._lock_for(user_id):
            previous = self._sessions.pop(user_id, None)
            if previous is not None:
                logger.info("Replacing existing SSH session", extra={"user_id": user_id})
                await previous.connection.close()
            try:
                connection = await self.connector.connect(
                    host=credentials.host,
                    username=credentials.username,
                    port=credentials.port,
                    password=credentials.password,
                    private_key_path=credentials.private_key_path,
                )
            except SSHTransportError as e:
                raise SessionConnectionError(
                    f"SSH Connection failed: {e}", ErrorContext(user_id=user_id),
                ) from e
            session = UserSession(
                user_id=user_id,
                connection=connection,
                cwd=await self._initial_cwd(connection, user_id),
                credentials_used=credentials.redacted(),
                command_log=deque(maxlen=self.max_log_entries),
            )
            self._sessions[user_id] = session
            logger.info(
                f"SSH session ready for {credentials.username}@{credentials.host}",
                extra={"user_id": user_id},
            )
            return self._snapshot(session)

    async def execute_command(self, user_id: str, command: str) -> CommandResult:
        cmd = (command or "").strip()
        if not cmd:
            raise InputValidationError("Command is required for execute action", "command")
        async with self._lock_for(user_id):
            session = self._live_session(user_id)
            is_cd = cmd == "cd" or cmd.startswith("cd ")
            remote = f"{cmd} && pwd" if is_cd else cmd
            try:
                output = await self._run(session, remote)
            except asyncio.TimeoutError:
                return self._record_timeout(session, cmd)

            stdout = output.stdout
            message = "Command executed successfully"
            if output.exit_code != 0:
                message = f"Command exited with status {output.exit_code}"
            elif is_cd:
                stdout, new_cwd = _split_trailing_pwd(stdout)
                if new_cwd:
                    session.cwd = new_cwd
                message = f"Working directory changed to {session.cwd or 'unknown'}"

            session.command_log.append(CommandLogEntry(
                command=cmd, stdout=stdout, stderr=output.stderr,
                exit_code=output.exit_code,
            ))
            return CommandResult(
                stdout=stdout, stderr=output.stderr, exit_code=output.exit_code,
                cwd=session.cwd, message=message,
            )

    async def edit_remote_file(self, user_id: str, path: str, content: str) -> dict:
        _require_absolute(path)
        async with self._lock_for(user_id):
            session = self._live_session(user_id)
            try:
                output = await self._run(
                    session, f"cat > {shlex.quote(path)}", input=content,
                )
            except asyncio.TimeoutError:
                raise RemoteFileError(path, "timed out")
            if output.exit_code != 0:
                raise RemoteFileError(path, _failure_reason(output))
            return {
                "success": True,
                "message": f"File content uploaded successfully to {path}",
                "bytes": len(content.encode("utf-8")),
            }

    async def read_remote_file(self, user_id: str, path: str) -> str:
        _require_absolute(path)
        async with self._lock_for(user_id):
            session = self._live_session(user_id)
            try:
                output = await self._run(session, f"cat {shlex.quote(path)}")
            except asyncio.TimeoutError:
                raise RemoteFileError(path, "timed out")
            if output.exit_code != 0:
                raise RemoteFileError(path, _failure_reason(output))
            return output.stdout

    async def disconnect(self, user_id: str) -> bool:
        """Close and evict the user's session. Returns False when there was none."""
        async with self._lock_for(user_id):
            session = self._sessions.pop(user_id, None)
            if session is None:
                return False
            session.connected = False
            await session.connection.close()
            logger.info("SSH session disconnected", extra={"user_id": user_id})
            return True

    async def disconnect_all(self) -> int:
        user_ids = list(self._sessions)
        closed = 0
        for user_id in user_ids:
            if await self.disconnect(user_id):
                closed += 1
        if closed:
            logger.info(f"Disconnected {closed} SSH sessions")
        return closed

    # -- Reads (lock-free snapshots) ------------------------------------------

    def get_user_status(self, user_id: str) -> dict:
        session = self._sessions.get(user_id)
        if session is None:
            return {"connected": False, "cwd": None, "commandLog": []}
        return self._snapshot(session)

    def get_manager_status(self) -> dict:
        sessions = list(self._sessions.values())
        return {
            "activeSessions": len(sessions),
            "connectedSessions": sum(1 for s in sessions if s.connected),
        }

    def get_command_log(self, user_id: str) -> list[CommandLogEntry]:
        session = self._sessions.get(user_id)
        if session is None:
            return []
        return list(session.command_log)

    def is_connected(self, user_id: str) -> bool:
        session = self._sessions.get(user_id)
        return bool(session and session.connected)

    def capability(self, user_id: str) -> "RemoteShellClient":
        return RemoteShellClient(self, user_id)

    # -- Internals ------------------------------------------------------------

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    def _live_session(self, user_id: str) -> UserSession:
        session = self._sessions.get(user_id)
        if session is None or not session.connected:
            raise NotConnectedError(user_id)
        return session

    async def _run(
        self, session: UserSession, command: str, input: str | None = None,
    ) -> RemoteCommandOutput:
        """Run in the session cwd. Raises asyncio.TimeoutError or SessionConnectionError."""
        remote = command
        if session.cwd:
            remote = f"cd {shlex.quote(session.cwd)} && {command}"
        try:
            return await asyncio.wait_for(
                session.connection.run(remote, input=input),
                timeout=self.command_timeout,
            )
        except SSHTransportError as e:
            session.connected = False
            logger.error(
                f"SSH transport failed: {e}", extra={"user_id": session.user_id},
            )
            raise SessionConnectionError(
                f"Connection to remote host lost: {e}",
                ErrorContext(user_id=session.user_id),
            ) from e

    def _record_timeout(self, session: UserSession, command: str) -> CommandResult:
        stderr = f"Command timed out after {self.command_timeout}s"
        session.command_log.append(CommandLogEntry(
            command=command, stdout="", stderr=stderr, exit_code=None, timed_out=True,
        ))
        logger.warning(stderr, extra={"user_id": session.user_id})
        return CommandResult(
            stdout="", stderr=stderr, exit_code=None, cwd=session.cwd,
            timed_out=True, message=stderr,
        )

    async def _initial_cwd(self, connection: SSHConnection, user_id: str) -> str | None:
        try:
            output = await asyncio.wait_for(
                connection.run("pwd"), timeout=self.command_timeout,
            )
        except (SSHTransportError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Could not determine initial working directory: {e}",
                extra={"user_id": user_id},
            )
            return None
        lines = [ln.strip() for ln in output.stdout.splitlines() if ln.strip()]
        if output.exit_code != 0 or not lines:
            return None
        return lines[0]

    def _snapshot(self, session: UserSession) -> dict:
        return {
            "connected": session.connected,
            "cwd": session.cwd,
            "credentials": dict(session.credentials_used),
            "commandLog": [e.to_dict() for e in session.command_log],
        }


class RemoteShellClient:
    """A user-scoped handle on PropsManager, handed to terminal tools for one run."""

    def __init__(self, manager: PropsManager, user_id: str):
        self._manager = manager
        self.user_id = user_id
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise SessionConnectionError(
                "Remote shell client already released", ErrorContext(user_id=self.user_id),
            )

    async def initialize(self, credentials: dict) -> dict:
        self._check_open()
        return await self._manager.initialize(self.user_id, credentials)

    async def execute(self, command: str) -> dict:
        self._check_open()
        result = await self._manager.execute_command(self.user_id, command)
        return result.to_dict()

    async def read_file(self, path: str) -> str:
        self._check_open()
        return await self._manager.read_remote_file(self.user_id, path)

    async def edit_file(self, path: str, content: str) -> dict:
        self._check_open()
        return await self._manager.edit_remote_file(self.user_id, path, content)

    async def disconnect(self) -> bool:
        self._check_open()
        return await self._manager.disconnect(self.user_id)

    def status(self) -> dict:
        return self._manager.get_user_status(self.user_id)

    def command_log(self) -> list[dict]:
        return [e.to_dict() for e in self._manager.get_command_log(self.user_id)]

    async def close(self) -> None:
        """Release the handle. The underlying session outlives the run."""
        self._closed = True


def _require_absolute(path: str) -> None:
    if not path or not path.startswith("/"):
        raise InputValidationError(
            f"Remote file path must be absolute: '{path}'", "path",
        )


def _failure_reason(output: RemoteCommandOutput) -> str:
    return output.stderr.strip() or f"remote command exited with status {output.exit_code}"


def _split_trailing_pwd(stdout: str) -> tuple[str, str | None]:
    """Separate the `pwd` line appended to cd commands from the command's own output."""
    lines = stdout.splitlines(keepends=True)
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines:
        return "", None
    return "".join(lines[:-1]), lines[-1].strip()
