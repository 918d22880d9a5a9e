from __future__ import annotations

from importlib import metadata
from pathlib import Path

DISTRIBUTION = "remotesysmonitor"
PROJECT_ROOT = Path(__file__).resolve().parent.parent
VERSION_FILE = PROJECT_ROOT / "VERSION"
DEFAULT_VERSION = "0.0.0"


def get_app_version() -> str:
    try:
        value = VERSION_FILE.read_text(encoding="utf-8").strip()
    except OSError:
        value = ""
    if value:
        return value
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return DEFAULT_VERSION
