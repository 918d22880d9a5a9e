from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    """The ssh session to a host could not be established."""


class ExecutionError(RuntimeError):
    """A remote command could not be invoked at all (as opposed to exiting non-zero)."""


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str
    transport_failed: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0


# ssh exits 255 when the connection itself fails.
SSH_ERROR_CODE = 255


class SSHRunner:
    def __init__(self, connect_timeout: int = 10, command_timeout: int = 60):
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout

    def ssh_options(self, port: int = 22, private_key: str | None = None) -> list[str]:
        options = [
            "-o",
            "BatchMode=yes",
            "-o",
            "IdentitiesOnly=yes",
            "-o",
            "StrictHostKeyChecking=accept-new",
            "-o",
            "ServerAliveInterval=10",
            "-o",
            "ServerAliveCountMax=2",
            "-o",
            f"ConnectTimeout={self.connect_timeout}",
            "-p",
            str(port),
        ]
        if private_key:
            options.extend(["-i", private_key])
        return options

    def run_ssh(
        self,
        target: str,
        remote_command: str,
        port: int = 22,
        private_key: str | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        timeout = timeout or self.command_timeout
        cmd = ["ssh", *self.ssh_options(port, private_key), target, remote_command]
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
            return CommandResult(
                returncode=completed.returncode,
                stdout=completed.stdout,
                stderr=completed.stderr,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(returncode=124, stdout="", stderr=f"ssh timeout after {timeout}s", transport_failed=True)
        except FileNotFoundError:
            return CommandResult(returncode=127, stdout="", stderr="ssh binary not found", transport_failed=True)

    def session(self, host: str, port: int = 22, user: str | None = None, private_key: str | None = None) -> SSHSession:
        return SSHSession(self, host, port=port, user=user, private_key=private_key)


class SSHSession:
    """One authenticated channel to a host, running one command at a time.

    ``open`` verifies that the host answers before any check runs, so a
    broken host is reported once instead of once per check.
    """

    def __init__(
        self,
        runner: SSHRunner,
        host: str,
        port: int = 22,
        user: str | None = None,
        private_key: str | None = None,
    ):
        self.runner = runner
        self.host = host
        self.port = port
        self.user = user
        self.private_key = private_key
        self.is_open = False

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def _run(self, command: str, timeout: int | None = None) -> CommandResult:
        return self.runner.run_ssh(
            self.target,
            command,
            port=self.port,
            private_key=self.private_key,
            timeout=timeout,
        )

    def open(self) -> None:
        greeting = self._run("echo ok", timeout=self.runner.connect_timeout + 5)
        if greeting.returncode != 0 or "ok" not in greeting.stdout.split():
            reason = greeting.stderr.strip() or f"ssh exited with {greeting.returncode}"
            raise SessionError(f"{self.target}:{self.port}: {reason}")
        self.is_open = True
        logger.debug("session open to %s:%s", self.target, self.port)

    def exec(self, command: str) -> CommandResult:
        if not self.is_open:
            raise ExecutionError(f"session to {self.target} is not open")
        result = self._run(command)
        if result.transport_failed or result.returncode == SSH_ERROR_CODE:
            raise ExecutionError(result.stderr.strip() or f"ssh exited with {result.returncode}")
        return result

    def close(self) -> None:
        if self.is_open:
            logger.debug("session closed to %s:%s", self.target, self.port)
        self.is_open = False

    def __enter__(self) -> SSHSession:
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
