from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from remotesysmonitor.checks import (
    CHECK_KINDS,
    CheckSpec,
    CustomCommandCheck,
    LoadCheck,
    OldDirectoriesCheck,
    PingCheck,
    SubfolderCountCheck,
    TemperatureCheck,
)
from remotesysmonitor.parsers import LOAD_INTERVALS


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class ServerConfig:
    name: str
    host: str
    user: str | None = None
    port: int = 22
    private_key: str | None = None
    checks: tuple[CheckSpec, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AppConfig:
    servers: tuple[ServerConfig, ...]


# Value used when a check is written in shorthand, e.g. ``load: 5``.
PRIMARY_PARAMS = {
    "ping": "url",
    "load": "interval",
    "number_of_subfolders": "path",
    "custom_command": "command",
    "list_old_directories": "loc",
    "temperature": "sensor",
}

# Parameters each kind accepts besides ``kind``.
ALLOWED_PARAMS = {
    "ping": {"url", "scheme", "timeout"},
    "load": {"interval", "max_load"},
    "number_of_subfolders": {"path", "max_folders"},
    "custom_command": {"command"},
    "list_old_directories": {"loc", "cutoff"},
    "temperature": {"sensor", "min_celsius", "max_celsius"},
}


def _require(params: dict[str, Any], key: str, where: str) -> Any:
    if params.get(key) is None:
        raise ConfigError(f"{where}.{key} is required")
    return params[key]


def _str_list(value: Any, where: str) -> tuple[str, ...]:
    items = [value] if isinstance(value, str) else value
    if not isinstance(items, list) or not items or not all(isinstance(item, str) and item.strip() for item in items):
        raise ConfigError(f"{where} must be a non-empty string or list of strings")
    return tuple(items)


def _non_empty_str(value: Any, where: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{where} must be a non-empty string")
    return value


def _int(value: Any, where: str, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{where} must be an integer")
    if minimum is not None and value < minimum:
        raise ConfigError(f"{where} must be >= {minimum}")
    return value


def _number(value: Any, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{where} must be a number")
    return float(value)


def _join_url(scheme: str, host: str, url: str) -> str:
    if "://" in url:
        return url
    if not url.startswith("/"):
        url = "/" + url
    return f"{scheme}://{host}{url}"


def _to_check(label: str, raw: Any, server_host: str, where: str) -> CheckSpec:
    params = dict(raw) if isinstance(raw, dict) else None
    kind = str(params.get("kind", label)) if params is not None else label
    if kind not in CHECK_KINDS:
        raise ConfigError(f"{where}: unknown check kind {kind!r} (expected one of {', '.join(CHECK_KINDS)})")
    if params is None:
        params = {PRIMARY_PARAMS[kind]: raw}
    unknown = sorted(str(key) for key in set(params) - ALLOWED_PARAMS[kind] - {"kind"})
    if unknown:
        allowed = ", ".join(sorted(ALLOWED_PARAMS[kind]))
        raise ConfigError(f"{where}: unknown parameter(s) {', '.join(unknown)} (expected {allowed})")

    if kind == "ping":
        scheme = _non_empty_str(params.get("scheme", "https"), f"{where}.scheme")
        urls = _str_list(_require(params, "url", where), f"{where}.url")
        return PingCheck(
            name=label,
            urls=tuple(_join_url(scheme, server_host, url) for url in urls),
            timeout=_int(params.get("timeout", 10), f"{where}.timeout", minimum=1),
        )
    if kind == "load":
        interval = _int(_require(params, "interval", where), f"{where}.interval")
        if interval not in LOAD_INTERVALS:
            raise ConfigError(f"{where}.interval must be 1, 5 or 15")
        return LoadCheck(
            name=label,
            interval=interval,
            max_load=_number(params.get("max_load", LoadCheck.max_load), f"{where}.max_load"),
        )
    if kind == "number_of_subfolders":
        max_folders = params.get("max_folders")
        return SubfolderCountCheck(
            name=label,
            paths=_str_list(_require(params, "path", where), f"{where}.path"),
            max_folders=None if max_folders is None else _int(max_folders, f"{where}.max_folders", minimum=0),
        )
    if kind == "custom_command":
        return CustomCommandCheck(
            name=label,
            command=_non_empty_str(_require(params, "command", where), f"{where}.command"),
        )
    if kind == "list_old_directories":
        return OldDirectoriesCheck(
            name=label,
            loc=_non_empty_str(_require(params, "loc", where), f"{where}.loc"),
            cutoff=_int(_require(params, "cutoff", where), f"{where}.cutoff", minimum=0),
        )
    min_celsius = _number(params.get("min_celsius", TemperatureCheck.min_celsius), f"{where}.min_celsius")
    max_celsius = _number(params.get("max_celsius", TemperatureCheck.max_celsius), f"{where}.max_celsius")
    if min_celsius >= max_celsius:
        raise ConfigError(f"{where}.min_celsius must be below max_celsius")
    return TemperatureCheck(
        name=label,
        sensor=_non_empty_str(_require(params, "sensor", where), f"{where}.sensor"),
        min_celsius=min_celsius,
        max_celsius=max_celsius,
    )


def _to_server(item: Any, index: int) -> ServerConfig:
    where = f"servers[{index}]"
    if not isinstance(item, dict):
        raise ConfigError(f"{where} must be an object")
    try:
        name = _non_empty_str(item["name"], f"{where}.name")
        host = _non_empty_str(item["host"], f"{where}.host")
    except KeyError as exc:
        raise ConfigError(f"Missing server field: {where}.{exc.args[0]}") from exc
    port = _int(item.get("port", 22), f"{where}.port", minimum=1)
    if port > 65535:
        raise ConfigError(f"{where}.port must be <= 65535")
    user = item.get("user")
    if user is not None:
        user = _non_empty_str(user, f"{where}.user")
    private_key = item.get("private_key")
    if private_key is not None:
        private_key = str(Path(_non_empty_str(private_key, f"{where}.private_key")).expanduser())

    checks_raw = item.get("checks") or {}
    if not isinstance(checks_raw, dict):
        raise ConfigError(f"{where}.checks must be a mapping of check name to parameters")
    checks = tuple(
        _to_check(str(label), raw, host, f"{where}.checks.{label}") for label, raw in checks_raw.items()
    )
    return ServerConfig(
        name=name,
        host=host,
        user=user,
        port=port,
        private_key=private_key,
        checks=checks,
    )


def _validate(data: dict[str, Any]) -> AppConfig:
    servers_raw = data.get("servers")
    if not isinstance(servers_raw, list) or not servers_raw:
        raise ConfigError("servers must be a non-empty list")
    servers = tuple(_to_server(item, index) for index, item in enumerate(servers_raw))
    names = [item.name for item in servers]
    if len(set(names)) != len(names):
        raise ConfigError("servers[].name must be unique")
    return AppConfig(servers=servers)


def load_config(path: Path) -> AppConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read configuration file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config format in {path}")
    return _validate(data)
