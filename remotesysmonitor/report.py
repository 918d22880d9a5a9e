from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from remotesysmonitor.checks import CheckResult, Status
from remotesysmonitor.host_evaluator import HostReport

GLYPHS = {
    Status.PASS: "✅",
    Status.FAIL: "❌",
    Status.INDETERMINATE: "⚠️",
}
FAILURE_GLYPHS = (GLYPHS[Status.FAIL], GLYPHS[Status.INDETERMINATE])


@dataclass(frozen=True)
class RunSummary:
    hosts: tuple[HostReport, ...]
    failed: bool
    body: str


def _render_result(result: CheckResult) -> list[str]:
    first, *rest = result.detail.splitlines() or [""]
    line = f"{GLYPHS[result.status]} {result.check}"
    if first:
        line += f": {first}"
    lines = [line]
    if rest:
        lines.append("```")
        lines.extend(rest)
        lines.append("```")
    return lines


def render_report(host_reports: Iterable[HostReport]) -> str:
    lines: list[str] = []
    for report in host_reports:
        if lines:
            lines.append("")
        header = f"*{report.server}* ({report.host})"
        if not report.reachable:
            header += " unreachable"
        lines.append(header)
        if not report.results:
            lines.append("no checks configured")
        for result in report.results:
            lines.extend(_render_result(result))
    return "\n".join(lines)


def aggregate(host_reports: Iterable[HostReport]) -> RunSummary:
    hosts = tuple(host_reports)
    return RunSummary(
        hosts=hosts,
        failed=any(report.failed for report in hosts),
        body=render_report(hosts),
    )


def should_post(any_failure: bool, full: bool) -> bool:
    return any_failure or full
