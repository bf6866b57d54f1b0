"""SSH Transport — thin asyncssh wrapper used by the remote session manager.

Invariants:
    - Every asyncssh / socket failure surfaces as SSHTransportError
    - run() never raises on a non-zero exit status; the status is returned
    - A connection is closed at most once; close() after close() is a no-op

Design Decisions:
    - Connector object over a module function: PropsManager receives it by
      injection, so tests substitute an in-memory fake
    - known_hosts=None disables host key checking (password logins against
      throwaway dev boxes); set ssh_known_hosts to enforce it
"""

import logging
from dataclasses import dataclass

import asyncssh

logger = logging.getLogger(__name__)


class SSHTransportError(Exception):
    """Connection-level failure (refused, dropped, auth rejected, timeout)."""


@dataclass(frozen=True)
class RemoteCommandOutput:
    stdout: str
    stderr: str
    exit_code: int | None


class SSHConnection:
    """One live asyncssh client connection."""

    def __init__(self, conn: asyncssh.SSHClientConnection, host: str):
        self._conn = conn
        self.host = host
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self, command: str, input: str | None = None) -> RemoteCommandOutput:
        if self._closed:
            raise SSHTransportError("Connection already closed")
        try:
            completed = await self._conn.run(command, input=input, check=False)
        except (asyncssh.Error, OSError) as e:
            raise SSHTransportError(str(e)) from e
        return RemoteCommandOutput(
            stdout=_as_text(completed.stdout),
            stderr=_as_text(completed.stderr),
            exit_code=completed.exit_status,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._conn.close()
        try:
            await self._conn.wait_closed()
        except (asyncssh.Error, OSError) as e:
            logger.warning(f"Error while closing SSH connection to {self.host}: {e}")


class SSHConnector:
    """Opens SSHConnections from validated credentials."""

    def __init__(self, connect_timeout: float = 15, known_hosts: str | None = None):
        self.connect_timeout = connect_timeout
        self.known_hosts = known_hosts

    async def connect(
        self,
        host: str,
        username: str,
        port: int = 22,
        password: str | None = None,
        private_key_path: str | None = None,
    ) -> SSHConnection:
        options: dict = {
            "username": username,
            "port": port,
            "known_hosts": self.known_hosts,
            "connect_timeout": self.connect_timeout,
        }
        if password:
            options["password"] = password
        if private_key_path:
            options["client_keys"] = [private_key_path]
        try:
            conn = await asyncssh.connect(host, **options)
        except (asyncssh.Error, OSError, TimeoutError) as e:
            raise SSHTransportError(f"Failed to connect to {host}: {e}") from e
        logger.info(f"SSH connection established to {username}@{host}:{port}")
        return SSHConnection(conn, host)


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
