"""Command line entry point: one pass over one configuration, then exit.

Run it from cron; each invocation loads the YAML configuration, checks every
server over ssh and prints and/or posts the report.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from remotesysmonitor.config import ConfigError, load_config
from remotesysmonitor.host_evaluator import evaluate_all
from remotesysmonitor.notifier import WEBHOOK_ENV, DeliveryError, SlackNotifier
from remotesysmonitor.report import aggregate, should_post
from remotesysmonitor.ssh_runner import SSHRunner
from remotesysmonitor.versioning import get_app_version

logger = logging.getLogger("remotesysmonitor")

LOG_LEVEL_ENV = "REMOTESYSMONITOR_LOG_LEVEL"
EXIT_OK = 0
EXIT_DELIVERY = 1
EXIT_CONFIG = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remotesysmonitor",
        description="Run health checks on remote servers over ssh and report to Slack",
    )
    parser.add_argument("config", type=Path, help="path to the YAML configuration")
    parser.add_argument("-f", "--full", action="store_true", help="post the report even when every check passes")
    parser.add_argument("-p", "--print", dest="print_report", action="store_true", help="print the report to stdout")
    parser.add_argument("-w", "--workers", type=int, default=1, help="servers evaluated in parallel (default 1)")
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV, "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_app_version()}")
    return parser


def run(config_path: Path, full: bool = False, print_report: bool = False, workers: int = 1,
        runner: SSHRunner | None = None, webhook_url: str | None = None) -> int:
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    logger.info("loaded %d servers from %s", len(config.servers), config_path)

    reports = evaluate_all(runner or SSHRunner(), config.servers, workers=workers)
    summary = aggregate(reports)

    if print_report:
        print(summary.body)

    if not should_post(summary.failed, full):
        print("No failures found in checks, not posting. Use --full to post anyway and --help for more options.")
        return EXIT_OK

    if not webhook_url:
        if print_report:
            logger.warning("%s is not set, report not posted", WEBHOOK_ENV)
            return EXIT_OK
        print(f"{WEBHOOK_ENV} environment variable not set", file=sys.stderr)
        return EXIT_DELIVERY

    try:
        SlackNotifier(webhook_url).send(summary.body)
    except DeliveryError as exc:
        if print_report:
            logger.error("could not post report: %s", exc)
            return EXIT_OK
        print(f"could not post report: {exc}", file=sys.stderr)
        return EXIT_DELIVERY
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    return run(
        args.config,
        full=args.full,
        print_report=args.print_report,
        workers=args.workers,
        webhook_url=os.environ.get(WEBHOOK_ENV),
    )


if __name__ == "__main__":
    sys.exit(main())
