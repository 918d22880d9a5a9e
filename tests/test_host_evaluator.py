from remotesysmonitor.checks import CustomCommandCheck, LoadCheck, Status, TemperatureCheck
from remotesysmonitor.config import ServerConfig
from remotesysmonitor.host_evaluator import HostReport, evaluate_all, evaluate_host, evaluate_server
from remotesysmonitor.ssh_runner import CommandResult, ExecutionError, SessionError


class FakeSession:
    def __init__(self, answers: dict[str, CommandResult | Exception] | None = None):
        self.answers = answers or {}
        self.closed = False

    def exec(self, command: str) -> CommandResult:
        for needle, answer in self.answers.items():
            if needle in command:
                if isinstance(answer, Exception):
                    raise answer
                return answer
        return CommandResult(returncode=0, stdout="", stderr="")

    def __enter__(self) -> "FakeSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True


class UnreachableSession:
    def __init__(self, error: SessionError):
        self.error = error

    def __enter__(self) -> FakeSession:
        raise self.error

    def __exit__(self, *exc_info: object) -> None:
        return None


class FakeRunner:
    def __init__(self, sessions: dict[str, FakeSession | SessionError]):
        self.sessions = sessions

    def session(self, host: str, port: int = 22, user: str | None = None, private_key: str | None = None):
        session = self.sessions[host]
        if isinstance(session, SessionError):
            return UnreachableSession(session)
        return session


def ok(stdout: str) -> CommandResult:
    return CommandResult(returncode=0, stdout=stdout, stderr="")


def _server(name: str, host: str) -> ServerConfig:
    return ServerConfig(
        name=name,
        host=host,
        user="monitor",
        checks=(
            LoadCheck(name="load", interval=5),
            TemperatureCheck(name="temperature", sensor="/sensor"),
            CustomCommandCheck(name="disk", command="df -h /"),
        ),
    )


def _healthy() -> FakeSession:
    return FakeSession(
        {
            "loadavg": ok("0.10 0.20 0.30 1/90 77\n"),
            "/sensor": ok("t=21000\n"),
            "df -h": ok("/dev/sda1 40G 10G 30G 25% /\n"),
        }
    )


def test_evaluate_host_runs_every_check_in_order() -> None:
    session = FakeSession(
        {
            "loadavg": ExecutionError("broken pipe"),
            "/sensor": ok("ERROR"),
            "df -h": ok("fine\n"),
        }
    )
    report = evaluate_host(session, _server("web-1", "10.0.0.1"))
    assert [result.check for result in report.results] == ["load", "temperature", "disk"]
    assert [result.status for result in report.results] == [Status.FAIL, Status.FAIL, Status.PASS]
    assert report.failed is True
    assert report.reachable is True


def test_host_failure_flag_is_or_of_results() -> None:
    report = evaluate_host(_healthy(), _server("web-1", "10.0.0.1"))
    assert report.failed is False
    assert report.failed == any(result.failed for result in report.results)
    assert HostReport(server="x", host="y", results=()).failed is False


def test_evaluate_server_closes_session() -> None:
    session = _healthy()
    report = evaluate_server(FakeRunner({"10.0.0.1": session}), _server("web-1", "10.0.0.1"))
    assert session.closed is True
    assert len(report.results) == 3


def test_evaluate_server_records_unreachable_host() -> None:
    runner = FakeRunner({"10.0.0.2": SessionError("monitor@10.0.0.2:22: Connection refused")})
    report = evaluate_server(runner, _server("web-2", "10.0.0.2"))
    assert report.reachable is False
    assert report.failed is True
    assert len(report.results) == 1
    assert report.results[0].check == "ssh"
    assert "host unreachable" in report.results[0].detail
    assert "Connection refused" in report.results[0].detail


def test_one_unreachable_host_among_three() -> None:
    servers = (
        _server("web-1", "10.0.0.1"),
        _server("web-2", "10.0.0.2"),
        _server("web-3", "10.0.0.3"),
    )
    runner = FakeRunner(
        {
            "10.0.0.1": _healthy(),
            "10.0.0.2": SessionError("timed out"),
            "10.0.0.3": _healthy(),
        }
    )
    reports = evaluate_all(runner, servers)
    assert [report.server for report in reports] == ["web-1", "web-2", "web-3"]
    assert [report.reachable for report in reports] == [True, False, True]
    assert any(report.failed for report in reports)


def test_parallel_evaluation_keeps_configuration_order() -> None:
    servers = tuple(_server(f"web-{index}", f"10.0.0.{index}") for index in range(1, 6))
    runner = FakeRunner({server.host: _healthy() for server in servers})
    reports = evaluate_all(runner, servers, workers=4)
    assert [report.server for report in reports] == [server.name for server in servers]
    assert not any(report.failed for report in reports)


def test_parallel_evaluation_survives_unexpected_errors() -> None:
    class ExplodingRunner(FakeRunner):
        def session(self, host: str, port: int = 22, user: str | None = None, private_key: str | None = None):
            if host == "10.0.0.2":
                raise RuntimeError("boom")
            return super().session(host, port, user, private_key)

    servers = (_server("web-1", "10.0.0.1"), _server("web-2", "10.0.0.2"))
    runner = ExplodingRunner({"10.0.0.1": _healthy()})
    reports = evaluate_all(runner, servers, workers=2)
    assert [report.server for report in reports] == ["web-1", "web-2"]
    assert reports[1].reachable is False
    assert "boom" in reports[1].results[0].detail


def test_non_zero_exit_is_a_check_failure_not_a_host_failure() -> None:
    session = FakeSession({"df -h": CommandResult(returncode=1, stdout="", stderr="df: /: No such file")})
    report = evaluate_host(session, _server("web-1", "10.0.0.1"))
    assert report.reachable is True
    assert report.results[2].status is Status.FAIL
