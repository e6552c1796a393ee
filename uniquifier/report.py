import sys
from collections import Counter
from typing import List

from .models import ErrorRecord, RunSummary
from .utils import ellipsize_start, first_line

MAX_LISTED = 60
MAX_PATH = 120


def print_error_report(errors: List[ErrorRecord], max_list: int = MAX_LISTED, file=None) -> None:
    """Grouped error report: counts per code, then the first `max_list` entries."""
    out = file or sys.stdout
    if not errors:
        return

    by_code = Counter(e.code or "UNKNOWN" for e in errors)
    summary = "  ".join(f"{code}:{n}" for code, n in by_code.most_common())

    print(f"\nErrors ({len(errors)})", file=out)
    print(summary, file=out)

    for i, e in enumerate(errors[:max_list], 1):
        print(f"{i:02d}. [{e.code or 'ERR'}] {ellipsize_start(e.file, MAX_PATH)}", file=out)
        print(f"    → {first_line(e.message)}", file=out)

    if len(errors) > max_list:
        print(f"...and {len(errors) - max_list} more", file=out)


def print_summary(summary: RunSummary, file=None) -> None:
    out = file or sys.stdout
    print("", file=out)
    for label, n in summary.counts.items():
        print(f"{label}: {n}", file=out)
    print(f"Total: {summary.total_processed}", file=out)

    if not summary.logging_enabled:
        print("Logging skipped (disabled)", file=out)
    elif summary.log_path is None:
        print("Logging skipped (nothing to record)", file=out)
    else:
        print(f"Log File: {summary.log_path}", file=out)
