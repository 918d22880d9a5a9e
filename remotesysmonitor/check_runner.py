from __future__ import annotations

import logging
from typing import Protocol

from remotesysmonitor.checks import CheckResult, CheckSpec, Status
from remotesysmonitor.parsers import snippet
from remotesysmonitor.ssh_runner import CommandResult, ExecutionError

logger = logging.getLogger(__name__)


class Session(Protocol):
    def exec(self, command: str) -> CommandResult: ...


def run_check(session: Session, check: CheckSpec) -> CheckResult:
    """Run one check over ``session``: one command, no retries.

    Checks that run on the monitoring machine never touch the session.

    A non-zero exit fails the check whatever the output says; errors never
    escape, they end up in the result's detail.
    """
    if not check.remote:
        logger.debug("running %s (%s) locally", check.name, check.kind)
        return _logged(check, check.parse_output(check.run_local()))

    command = check.build_command()
    logger.debug("running %s (%s): %s", check.name, check.kind, command)
    try:
        result = session.exec(command)
    except ExecutionError as exc:
        outcome = check.result(Status.FAIL, f"execution failed: {snippet(str(exc))}")
    else:
        if result.returncode != 0:
            outcome = check.exit_failure(result.returncode, result.stdout, result.stderr)
        else:
            outcome = check.parse_output(result.stdout)
    return _logged(check, outcome)


def _logged(check: CheckSpec, outcome: CheckResult) -> CheckResult:
    if outcome.failed:
        summary = outcome.detail.splitlines()[0] if outcome.detail else ""
        logger.info("check %s %s: %s", check.name, outcome.status.value, summary)
    return outcome
