#!/usr/bin/env python3
import argparse
import logging
from pathlib import Path

DEFAULT_LOG_FILE = Path("/tmp/demonax-tools.log")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO)


def level_for(verbose: int) -> int:
    if verbose < len(VERBOSITY_LEVELS):
        return VERBOSITY_LEVELS[max(0, verbose)]
    return logging.DEBUG


def add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Repeat for more output (-vv info, -vvv debug).")
    parser.add_argument("--log-file", type=Path, default=DEFAULT_LOG_FILE, help="Also append log records to this file.")


def setup_logging(verbose: int = 0, log_file: Path | None = DEFAULT_LOG_FILE) -> None:
    """Send log records to stderr and, when given, to ``log_file``."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level_for(verbose), format=LOG_FORMAT, handlers=handlers, force=True)
