#!/usr/bin/env python3
"""Main entry point for volley."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import DEFAULT_CONFIG_PATH, HostRecord, load_config, template
from .errors import TaskSubstrateError, VolleyError
from .executor import Executor, HostStatus
from .operations import Exec, Get, Operation, Put
from .selector import compile_pattern, select_hosts

COMMANDS = ("exec", "get", "put")

EPILOG = """\
operations:
  [pattern] exec <command...>             run a command on every host
  [pattern] get <remote_file> <local_dir>  download one file from every host
  [pattern] put <local_file> <remote_dir>  upload one file to every host

The pattern is a regular expression searched in each host's hostname, ip
and group name. It defaults to every host; "all" is an alias for that.

examples:
  volley exec ls perf/
  volley all exec ls perf/
  volley 'web[0-9]+' get perf/res.nmon ./
  volley db put nmon_rhel7 oss/bin
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="volley",
        description="Run one command, or transfer one file, on many SSH hosts in parallel",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the host configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "-l",
        "--logfile",
        type=Path,
        help="Also append log output to this file",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-p",
        "--print-config",
        action="store_true",
        help="Print a configuration template and exit",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Run with the TUI dashboard",
    )
    parser.add_argument(
        "args",
        nargs=argparse.REMAINDER,
        metavar="[pattern] {exec,get,put} ...",
    )
    return parser


def parse_operation(
    parser: argparse.ArgumentParser, args: list[str]
) -> tuple[str | None, Operation]:
    """Split the positional words into a pattern and an operation."""
    args = list(args)
    pattern = None
    if args and args[0] not in COMMANDS:
        pattern = args.pop(0)
    if not args or args[0] not in COMMANDS:
        parser.error(f"expected one of: {', '.join(COMMANDS)}")

    command, rest = args[0], args[1:]
    if command == "exec":
        if not rest:
            parser.error("exec: missing command")
        return pattern, Exec.from_words(rest)
    if len(rest) != 2:
        parser.error(f"{command}: expected exactly two paths")
    if command == "get":
        return pattern, Get(remote_file=rest[0], local_dir=Path(rest[1]))
    return pattern, Put(local_file=Path(rest[0]), remote_dir=rest[1])


def setup_logging(
    debug: bool = False, logfile: Path | None = None, console: bool = True
) -> logging.Logger:
    """Configure the volley logger once for the whole run."""
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s", datefmt="%m-%d %H:%M:%S"
    )
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if logfile:
        handlers.append(logging.FileHandler(logfile, mode="a"))
    if not handlers:
        handlers.append(logging.NullHandler())

    logger = logging.getLogger("volley")
    logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    return logger


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.print_config:
        print(template(), end="")
        return 0

    pattern_text, operation = parse_operation(parser, args.args)

    try:
        logger = setup_logging(args.debug, args.logfile)
    except OSError as e:
        print(f"Error: cannot open log file: {e}", file=sys.stderr)
        return 1

    # Everything that can be rejected is checked before any connection
    try:
        pattern = compile_pattern(pattern_text)
        config = load_config(args.config)
        hosts = select_hosts(pattern, config.host_directory())
    except VolleyError as e:
        logger.error("%s", e)
        return 1

    if args.dashboard and hosts:
        # The TUI owns the terminal; only the log file keeps records
        logger = setup_logging(args.debug, args.logfile, console=False)

    logger.debug("selected hosts: %s", ", ".join(h.label for h in hosts))
    if not hosts:
        logger.warning("No host matches pattern %r", pattern.pattern)
        return 0

    if not args.dashboard:
        return _run_headless(hosts, operation, logger)

    # Imported here so headless runs do not pay for textual
    from .dashboard import Dashboard

    app = Dashboard(hosts, operation, logger=logger)
    app.run()

    logger = setup_logging(args.debug, args.logfile)
    if app.error:
        logger.error("%s", app.error)
        return 1
    _report(app.executor, logger)
    return 0


def _run_headless(hosts: list[HostRecord], operation: Operation, logger: logging.Logger) -> int:
    """Run executor without TUI dashboard."""
    executor = Executor(hosts, operation, logger=logger)
    try:
        asyncio.run(executor.run_all())
    except TaskSubstrateError as e:
        logger.error("%s", e)
        return 1

    _report(executor, logger)
    return 0


def _report(executor: Executor, logger: logging.Logger) -> None:
    failed = [
        key for key, state in executor.states.items() if state.status == HostStatus.FAILED
    ]
    succeeded = len(executor.states) - len(failed)
    logger.info("%d/%d hosts succeeded", succeeded, len(executor.states))
    if failed:
        logger.warning("Failed hosts: %s", ", ".join(failed))


if __name__ == "__main__":
    sys.exit(main())
