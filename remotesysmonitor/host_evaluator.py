from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

from remotesysmonitor.check_runner import Session, run_check
from remotesysmonitor.checks import CheckResult, unreachable_result
from remotesysmonitor.config import ServerConfig
from remotesysmonitor.ssh_runner import SessionError, SSHRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostReport:
    server: str
    host: str
    results: tuple[CheckResult, ...]
    reachable: bool = True

    @property
    def failed(self) -> bool:
        return any(result.failed for result in self.results)


def evaluate_host(session: Session, server: ServerConfig) -> HostReport:
    """Run every configured check in declaration order.

    A failing check never stops the ones after it.
    """
    results = tuple(run_check(session, check) for check in server.checks)
    return HostReport(server=server.name, host=server.host, results=results)


def unreachable_report(server: ServerConfig, reason: str) -> HostReport:
    return HostReport(
        server=server.name,
        host=server.host,
        results=(unreachable_result(reason),),
        reachable=False,
    )


def evaluate_server(runner: SSHRunner, server: ServerConfig) -> HostReport:
    session = runner.session(server.host, port=server.port, user=server.user, private_key=server.private_key)
    try:
        with session:
            return evaluate_host(session, server)
    except SessionError as exc:
        logger.warning("server %s unreachable: %s", server.name, exc)
        return unreachable_report(server, str(exc))


def evaluate_all(runner: SSHRunner, servers: tuple[ServerConfig, ...], workers: int = 1) -> list[HostReport]:
    """Evaluate every server; the result is in configuration order."""
    if workers <= 1 or len(servers) <= 1:
        return [evaluate_server(runner, server) for server in servers]

    reports: dict[int, HostReport] = {}
    with ThreadPoolExecutor(max_workers=min(workers, len(servers))) as pool:
        futures = {pool.submit(evaluate_server, runner, server): index for index, server in enumerate(servers)}
        for future in as_completed(futures):
            index = futures[future]
            try:
                reports[index] = future.result()
            except Exception as exc:
                logger.exception("evaluation of %s failed", servers[index].name)
                reports[index] = unreachable_report(servers[index], f"evaluator error: {exc}")
    return [reports[index] for index in range(len(servers))]
