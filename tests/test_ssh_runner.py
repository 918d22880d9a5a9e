import os
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from remotesysmonitor.ssh_runner import CommandResult, ExecutionError, SessionError, SSHRunner


def _completed(returncode: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["ssh"], returncode=returncode, stdout=stdout, stderr=stderr)


def test_ssh_options_include_port_and_key() -> None:
    options = SSHRunner(connect_timeout=7).ssh_options(port=2222, private_key="/keys/id")
    assert "ConnectTimeout=7" in options
    assert "BatchMode=yes" in options
    assert options[options.index("-p") + 1] == "2222"
    assert options[-2:] == ["-i", "/keys/id"]


@patch("remotesysmonitor.ssh_runner.subprocess.run")
def test_run_ssh_builds_command(mock_run) -> None:
    mock_run.return_value = _completed(0, "ok\n")
    result = SSHRunner().run_ssh("monitor@10.0.0.1", "echo ok", port=22)
    cmd = mock_run.call_args.args[0]
    assert cmd[0] == "ssh"
    assert cmd[-2:] == ["monitor@10.0.0.1", "echo ok"]
    assert result == CommandResult(returncode=0, stdout="ok\n", stderr="")


@patch("remotesysmonitor.ssh_runner.subprocess.run")
def test_run_ssh_timeout_and_missing_binary(mock_run) -> None:
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="ssh", timeout=5)
    result = SSHRunner().run_ssh("h", "sleep 100", timeout=5)
    assert result.returncode == 124
    assert result.transport_failed is True
    mock_run.side_effect = FileNotFoundError()
    result = SSHRunner().run_ssh("h", "true")
    assert result.returncode == 127
    assert result.stderr == "ssh binary not found"


@patch("remotesysmonitor.ssh_runner.subprocess.run")
def test_session_lifecycle(mock_run) -> None:
    mock_run.side_effect = [_completed(0, "ok\n"), _completed(0, "0.1 0.2 0.3\n"), _completed(2, "", "no such file")]
    session = SSHRunner().session("10.0.0.1", port=22, user="monitor")
    with session:
        assert session.is_open
        assert session.exec("cat /proc/loadavg").stdout == "0.1 0.2 0.3\n"
        failed = session.exec("cat /missing")
        assert failed.returncode == 2
        assert not failed.ok
    assert not session.is_open
    assert mock_run.call_args_list[0].args[0][-2:] == ["monitor@10.0.0.1", "echo ok"]


@patch("remotesysmonitor.ssh_runner.subprocess.run")
def test_session_open_failure(mock_run) -> None:
    mock_run.return_value = _completed(255, "", "ssh: connect to host 10.0.0.9 port 22: Connection refused")
    session = SSHRunner().session("10.0.0.9", user="monitor")
    with pytest.raises(SessionError, match="Connection refused"):
        with session:
            pass
    assert not session.is_open


@patch("remotesysmonitor.ssh_runner.subprocess.run")
def test_exec_transport_failure_raises(mock_run) -> None:
    mock_run.side_effect = [_completed(0, "ok\n"), _completed(255, "", "Connection reset by peer")]
    with SSHRunner().session("10.0.0.1") as session:
        with pytest.raises(ExecutionError, match="Connection reset"):
            session.exec("uptime")


def test_exec_requires_open_session() -> None:
    with pytest.raises(ExecutionError, match="not open"):
        SSHRunner().session("10.0.0.1").exec("uptime")


@patch("remotesysmonitor.ssh_runner.subprocess.run")
def test_run_ssh_decodes_with_replacement(mock_run) -> None:
    mock_run.return_value = _completed(0, "caf\ufffd\n")
    SSHRunner().run_ssh("h", "cat /etc/motd")
    kwargs = mock_run.call_args.kwargs
    assert kwargs["encoding"] == "utf-8"
    assert kwargs["errors"] == "replace"


def _fake_ssh(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, body: str) -> None:
    script = tmp_path / "ssh"
    script.write_text("#!/bin/sh\nfor last; do :; done\n" + body)
    script.chmod(0o755)
    monkeypatch.setenv("PATH", f"{tmp_path}{os.pathsep}{os.environ.get('PATH', '')}")


def test_non_utf8_output_does_not_break_the_session(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_ssh(
        tmp_path,
        monkeypatch,
        'if [ "$last" = "echo ok" ]; then echo ok; else printf \'caf\\351\\n\'; fi\n',
    )
    with SSHRunner().session("10.0.0.1") as session:
        result = session.exec("cat /etc/motd")
        assert result.ok
        assert result.stdout == "caf\ufffd\n"
        assert session.exec("uptime").ok


@patch("remotesysmonitor.ssh_runner.subprocess.run")
def test_session_opens_after_login_banner(mock_run) -> None:
    mock_run.side_effect = [_completed(0, "Welcome to host-1\nLast login: Mon\nok\n"), _completed(0, "up 3 days\n")]
    with SSHRunner().session("10.0.0.1") as session:
        assert session.is_open
        assert session.exec("uptime").stdout == "up 3 days\n"


@patch("remotesysmonitor.ssh_runner.subprocess.run")
def test_session_open_requires_ok_line(mock_run) -> None:
    mock_run.return_value = _completed(0, "broken\n")
    with pytest.raises(SessionError):
        SSHRunner().session("10.0.0.1").open()
