import argparse
import logging
import sys
from functools import partial
from typing import List, Optional

from pydantic import ValidationError

from .errors import InvalidPathError
from .logger import RunLog
from .progress import TqdmProgress
from .report import print_error_report, print_summary
from .scheduler import Scheduler
from .settings import load_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uniquifier",
        description="Prefix every file in each folder (recursively) with a token unique to that folder.",
    )
    parser.add_argument("path", nargs="?", help="File or directory to process")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    if not args.path:
        print("You have to provide a location", file=sys.stderr)
        return 1

    try:
        settings = load_settings()
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        return 1

    run_log = RunLog.from_settings(settings)
    scheduler = Scheduler(
        settings,
        run_log,
        progress_factory=partial(TqdmProgress, file=sys.stderr),
        progress_stream=sys.stderr,
    )

    try:
        summary = scheduler.run(args.path)
    except InvalidPathError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print_error_report(summary.errors)
    print_summary(summary)
    return 0
