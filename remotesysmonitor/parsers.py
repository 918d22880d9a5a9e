from __future__ import annotations

import re

LOAD_INTERVALS = (1, 5, 15)
SNIPPET_LENGTH = 80
MISSING = "missing"

_FLOAT = r"\d+(?:[.,]\d+)?"
_UPTIME_LOAD = re.compile(rf"load averages?:\s*({_FLOAT})[,\s]+({_FLOAT})[,\s]+({_FLOAT})")
_LOADAVG = re.compile(rf"^\s*({_FLOAT})\s+({_FLOAT})\s+({_FLOAT})")
_W1_TEMPERATURE = re.compile(r"t=(-?\d+)")
_MILLIDEGREES = re.compile(r"^\s*(-?\d+)\s*$")


class ParseError(ValueError):
    pass


def snippet(raw: str, length: int = SNIPPET_LENGTH) -> str:
    text = " ".join(raw.split())
    if len(text) > length:
        return text[: length - 3] + "..."
    return text


def _to_float(value: str) -> float:
    return float(value.replace(",", "."))


def parse_load_average(output: str, interval: int) -> float:
    """Return the load average for ``interval`` minutes.

    Accepts ``/proc/loadavg`` content (``0.42 0.30 0.21 1/123 4567``) as
    well as ``uptime`` output (``... load average: 0.42, 0.30, 0.21``).
    """
    if interval not in LOAD_INTERVALS:
        raise ParseError(f"interval must be one of {LOAD_INTERVALS}, got {interval}")
    match = _UPTIME_LOAD.search(output) or _LOADAVG.match(output)
    if match is None:
        raise ParseError(f"no load average in output: {snippet(output)!r}")
    return _to_float(match.group(LOAD_INTERVALS.index(interval) + 1))


def parse_temperature_celsius(output: str) -> float:
    """Parse a sensor reading in millidegrees Celsius.

    Handles the 1-Wire ``w1_slave`` format (``... t=21875``) and a bare
    integer as found in ``/sys/class/thermal/thermal_zone*/temp``.
    """
    if "crc=" in output and "YES" not in output:
        raise ParseError(f"sensor CRC check failed: {snippet(output)!r}")
    match = _W1_TEMPERATURE.search(output) or _MILLIDEGREES.match(output)
    if match is None:
        raise ParseError(f"cannot read temperature from {snippet(output)!r}")
    return int(match.group(1)) / 1000


def parse_tab_lines(output: str) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        if "\t" not in line:
            raise ParseError(f"unexpected line: {snippet(line)!r}")
        key, value = line.split("\t", 1)
        rows.append((key.strip(), value.strip()))
    return rows


def parse_folder_counts(output: str) -> list[tuple[str, int | None]]:
    """Parse ``path<TAB>count`` lines; ``missing`` as the count yields ``None``."""
    counts: list[tuple[str, int | None]] = []
    for path, value in parse_tab_lines(output):
        if value == MISSING:
            counts.append((path, None))
            continue
        if not value.isdigit():
            raise ParseError(f"count for {path} is not a number: {value!r}")
        counts.append((path, int(value)))
    return counts


def parse_http_statuses(output: str) -> list[tuple[int | None, str, str]]:
    """Parse ``code<TAB>url[<TAB>error]`` lines; a code that is not a number becomes ``None``."""
    statuses: list[tuple[int | None, str, str]] = []
    for code, rest in parse_tab_lines(output):
        url, _, error = rest.partition("\t")
        statuses.append((int(code) if code.isdigit() else None, url.strip(), error.strip()))
    return statuses


def parse_directory_ages(output: str) -> tuple[float, list[tuple[str, float]]]:
    """Parse a remote epoch line followed by ``<mtime epoch> <path>`` lines.

    Returns the remote epoch and ``(path, age_in_days)`` pairs, ages
    computed against the remote clock.
    """
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        raise ParseError("empty output")
    try:
        now = float(lines[0].strip())
    except ValueError as exc:
        raise ParseError(f"first line is not an epoch: {snippet(lines[0])!r}") from exc
    entries: list[tuple[str, float]] = []
    for line in lines[1:]:
        stamp, _, path = line.strip().partition(" ")
        try:
            mtime = float(stamp)
        except ValueError as exc:
            raise ParseError(f"unexpected line: {snippet(line)!r}") from exc
        if not path:
            raise ParseError(f"missing path: {snippet(line)!r}")
        entries.append((path, (now - mtime) / 86400))
    return now, entries
