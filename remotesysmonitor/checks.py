"""Check catalog.

Every check kind is a frozen dataclass carrying only its own parameters and
implementing the same pair of operations:

- ``build_command()`` returns the shell command to run on the host, a pure
  function of the parameters. Kinds with ``remote = False`` implement
  ``run_local()`` instead and produce the same kind of text from the
  monitoring machine.
- ``parse_output(raw)`` turns the command's stdout into a ``CheckResult``,
  a pure function of the text.

The runner never looks inside a check, so adding a kind means adding one
class here and registering it in ``CHECK_KINDS``.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

import httpx

from remotesysmonitor.parsers import (
    ParseError,
    parse_directory_ages,
    parse_folder_counts,
    parse_http_statuses,
    parse_load_average,
    parse_temperature_celsius,
    snippet,
)


class Status(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check against one host."""

    check: str
    kind: str
    status: Status
    detail: str = ""

    @property
    def failed(self) -> bool:
        # An indeterminate result is never counted as a pass.
        return self.status is not Status.PASS


def _quote_all(items: tuple[str, ...]) -> str:
    return " ".join(shlex.quote(item) for item in items)


@dataclass(frozen=True)
class CheckSpec:
    name: str

    kind: ClassVar[str] = ""
    requires_output: ClassVar[bool] = True
    remote: ClassVar[bool] = True

    def build_command(self) -> str:
        raise NotImplementedError

    def run_local(self) -> str:
        raise NotImplementedError

    def interpret(self, raw: str) -> CheckResult:
        raise NotImplementedError

    def parse_output(self, raw: str) -> CheckResult:
        if self.requires_output and not raw.strip():
            return self.result(Status.INDETERMINATE, "empty output")
        try:
            return self.interpret(raw)
        except ParseError as exc:
            return self.result(Status.INDETERMINATE, f"parse error: {exc}")

    def exit_failure(self, returncode: int, stdout: str, stderr: str) -> CheckResult:
        message = stderr.strip() or stdout.strip()
        detail = f"exit status {returncode}"
        return self.result(Status.FAIL, f"{detail}: {snippet(message)}" if message else detail)

    def result(self, status: Status, detail: str = "") -> CheckResult:
        return CheckResult(check=self.name, kind=self.kind, status=status, detail=detail)


@dataclass(frozen=True)
class PingCheck(CheckSpec):
    """HTTP GET against each url, made from the monitoring machine."""

    urls: tuple[str, ...] = ()
    timeout: int = 10

    kind: ClassVar[str] = "ping"
    remote: ClassVar[bool] = False

    def run_local(self, client: httpx.Client | None = None) -> str:
        """GET every url and return one ``code<TAB>url[<TAB>error]`` line each.

        Transport errors are reported as code ``000`` so the result always
        goes through ``parse_output``.
        """
        owned = client is None
        if client is None:
            client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        lines: list[str] = []
        try:
            for url in self.urls:
                try:
                    resp = client.get(url)
                except httpx.HTTPError as exc:
                    lines.append(f"000\t{url}\t{type(exc).__name__}: {snippet(str(exc))}")
                else:
                    lines.append(f"{resp.status_code}\t{url}")
        finally:
            if owned:
                client.close()
        return "".join(f"{line}\n" for line in lines)

    def interpret(self, raw: str) -> CheckResult:
        statuses = parse_http_statuses(raw)
        answered = {url for _, url, _ in statuses}
        failed = [(code, url, error) for code, url, error in statuses if not code or not 200 <= code < 400]
        missing = [url for url in self.urls if url not in answered]
        if failed or missing:
            lines = [f"{url} == {code if code else error or 'no response'}" for code, url, error in failed]
            lines.extend(f"{url} == not checked" for url in missing)
            count = len(failed) + len(missing)
            return self.result(Status.FAIL, f"{count}/{len(self.urls)} unreachable\n" + "\n".join(lines))
        return self.result(Status.PASS, ", ".join(self.urls))

@dataclass(frozen=True)
class LoadCheck(CheckSpec):
    interval: int = 5
    max_load: float = 5.0

    kind: ClassVar[str] = "load"

    def build_command(self) -> str:
        return "cat /proc/loadavg"

    def interpret(self, raw: str) -> CheckResult:
        load = parse_load_average(raw, self.interval)
        detail = f"load {load:.2f} ({self.interval}min), max {self.max_load:.2f}"
        return self.result(Status.PASS if load < self.max_load else Status.FAIL, detail)


@dataclass(frozen=True)
class SubfolderCountCheck(CheckSpec):
    paths: tuple[str, ...] = ()
    max_folders: int | None = None

    kind: ClassVar[str] = "number_of_subfolders"

    def build_command(self) -> str:
        return (
            f"for p in {_quote_all(self.paths)}; do "
            'if [ -d "$p" ]; then '
            'printf "%s\\t%s\\n" "$p" "$(find "$p" -mindepth 1 -maxdepth 1 -type d | wc -l)"; '
            'else printf "%s\\tmissing\\n" "$p"; fi; '
            "done"
        )

    def interpret(self, raw: str) -> CheckResult:
        counts = dict(parse_folder_counts(raw))
        lines: list[str] = []
        failed = False
        for path in self.paths:
            if path not in counts:
                raise ParseError(f"no count reported for {path}")
            count = counts[path]
            if count is None:
                failed = True
                lines.append(f"{path}: missing")
                continue
            if self.max_folders is not None and count > self.max_folders:
                failed = True
                lines.append(f"{path}: {count} folders (max {self.max_folders})")
            else:
                lines.append(f"{path}: {count} folders")
        return self.result(Status.FAIL if failed else Status.PASS, "; ".join(lines))


@dataclass(frozen=True)
class CustomCommandCheck(CheckSpec):
    command: str = ""

    kind: ClassVar[str] = "custom_command"
    requires_output: ClassVar[bool] = False

    def build_command(self) -> str:
        return self.command

    def interpret(self, raw: str) -> CheckResult:
        output = raw.rstrip("\n")
        detail = f"`{self.command}`"
        if output:
            detail += "\n" + output
        return self.result(Status.PASS, detail)

    def exit_failure(self, returncode: int, stdout: str, stderr: str) -> CheckResult:
        output = "\n".join(part for part in (stdout.rstrip("\n"), stderr.rstrip("\n")) if part)
        detail = f"`{self.command}` exit status {returncode}"
        return self.result(Status.FAIL, f"{detail}\n{output}" if output else detail)


@dataclass(frozen=True)
class OldDirectoriesCheck(CheckSpec):
    loc: str = ""
    cutoff: int = 7

    kind: ClassVar[str] = "list_old_directories"

    def build_command(self) -> str:
        return (
            "date +%s && "
            f"find {shlex.quote(self.loc)} -mindepth 1 -maxdepth 1 -type d -printf '%T@ %p\\n'"
        )

    def interpret(self, raw: str) -> CheckResult:
        _, entries = parse_directory_ages(raw)
        old = sorted((path, age) for path, age in entries if age > self.cutoff)
        if old:
            lines = [f"{path} ({int(age)} days)" for path, age in old]
            return self.result(
                Status.FAIL,
                f"{len(old)} directories older than {self.cutoff} days in `{self.loc}`\n" + "\n".join(lines),
            )
        return self.result(Status.PASS, f"no directories older than {self.cutoff} days in `{self.loc}`")


@dataclass(frozen=True)
class TemperatureCheck(CheckSpec):
    sensor: str = ""
    min_celsius: float = -40.0
    max_celsius: float = 30.0

    kind: ClassVar[str] = "temperature"

    def build_command(self) -> str:
        return f"cat {shlex.quote(self.sensor)}"

    def interpret(self, raw: str) -> CheckResult:
        try:
            celsius = parse_temperature_celsius(raw)
        except ParseError as exc:
            return self.result(Status.FAIL, f"parse error: {exc}")
        detail = f"{celsius:.1f}°C"
        if not self.min_celsius <= celsius < self.max_celsius:
            return self.result(Status.FAIL, f"{detail} outside [{self.min_celsius:g}, {self.max_celsius:g})°C")
        return self.result(Status.PASS, detail)


CHECK_KINDS: dict[str, type[CheckSpec]] = {
    cls.kind: cls
    for cls in (
        PingCheck,
        LoadCheck,
        SubfolderCountCheck,
        CustomCommandCheck,
        OldDirectoriesCheck,
        TemperatureCheck,
    )
}


def unreachable_result(reason: str) -> CheckResult:
    return CheckResult(check="ssh", kind="session", status=Status.FAIL, detail=f"host unreachable: {snippet(reason)}")
