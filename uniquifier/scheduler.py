import logging
import os
import sys
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .errors import InvalidPathError, ScanError
from .logger import RunLog
from .models import ErrorRecord, FolderResult, RenameResult, RunSummary
from .prefix import folder_prefix
from .progress import NullProgress, ProgressReporter
from .renamer import PrefixRenamer
from .scanner import FolderScanner
from .settings import Settings
from .utils import ensure_path, first_line

log = logging.getLogger(__name__)

PACKAGE_LOGGER = "uniquifier"
TERMINAL_MARGIN = 4

ProgressFactory = Callable[[int, int], ProgressReporter]


def cpu_count() -> int:
    if hasattr(os, "sched_getaffinity"):
        try:
            return max(1, len(os.sched_getaffinity(0)))
        except OSError:
            pass
    return os.cpu_count() or 1


def terminal_rows(stream) -> int:
    """Height of the terminal behind `stream`, or 0 if it isn't one."""
    try:
        if not stream.isatty():
            return 0
        return os.get_terminal_size(stream.fileno()).lines
    except (AttributeError, ValueError, OSError):
        return 0


def resolve_concurrency(jobs: int = 0, stream=None) -> int:
    """
    Number of folders processed at once: `jobs` if positive, else the CPU
    count, clamped so that N worker lines + the overall line fit on screen.
    """
    base = jobs if jobs and jobs > 0 else cpu_count()
    rows = terminal_rows(stream if stream is not None else sys.stderr)
    if rows > 0:
        base = min(base, max(1, rows - TERMINAL_MARGIN))
    return max(1, base)


def processed_label(label: str) -> str:
    return f"Processed From '{label}'"


class RunLogHandler(logging.Handler):
    """
    Attached to the package logger for the duration of a run. ERROR records
    become entries in the run's error list; anything lower goes through the
    progress display so it does not tear the live lines.
    """
    def __init__(self, run_log: RunLog, progress: ProgressReporter):
        super().__init__(level=logging.WARNING)
        self.run_log = run_log
        self.progress = progress
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.levelno >= logging.ERROR:
                self.run_log.record_error(ErrorRecord(
                    file=getattr(record, "file", f"({record.name})"),
                    code=getattr(record, "code", "LOG"),
                    message=first_line(record.getMessage()),
                ))
                self.progress.report_error(1)
            else:
                self.progress.log(self.format(record))
        except Exception:
            self.handleError(record)


class Scheduler:
    """Runs one Folder Task per folder under a bounded worker pool."""

    def __init__(self, settings: Settings, run_log: RunLog,
                 progress_factory: Optional[ProgressFactory] = None,
                 renamer: Optional[PrefixRenamer] = None,
                 scanner_cls=FolderScanner,
                 concurrency: Optional[int] = None,
                 progress_stream=None):
        self.settings = settings
        self.run_log = run_log
        self.progress_factory = progress_factory or NullProgress
        self.renamer = renamer or PrefixRenamer()
        self.scanner_cls = scanner_cls
        self.concurrency = concurrency
        self.progress_stream = progress_stream
        self.working_path: Optional[Path] = None

        self._flush_pool: Optional[ThreadPoolExecutor] = None
        self._flushes: List[Future] = []
        self._flush_guard = threading.Lock()

    # -- Folder Task ------------------------------------------------------

    def process_folder(self, folder: Path, label: str, progress: ProgressReporter) -> FolderResult:
        prefix = folder_prefix(folder)
        scanner = self.scanner_cls(folder, recursive=False, pattern=self.settings.file_pattern)
        try:
            files = scanner.list_files()
        except ScanError as exc:
            self.run_log.record_error(ErrorRecord(str(folder), exc.code, exc.message))
            progress.report_error(1)
            handle = progress.acquire_slot(label, 1)
            progress.release(handle)
            return FolderResult(folder, label, processed=0)

        handle = progress.acquire_slot(label, len(files) or 1)
        try:
            if files:
                workers = min(self.settings.file_jobs, len(files))
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rename") as pool:
                    list(pool.map(lambda f: self._rename(f, prefix.token, handle, progress), files))
        finally:
            progress.release(handle)

        if files and self.run_log.pending > self.settings.flush_every:
            self._schedule_flush()
        return FolderResult(folder, label, processed=len(files))

    def _rename(self, path: Path, token: str, handle: int, progress: ProgressReporter) -> RenameResult:
        result = self.renamer.rename_one(path, token)
        # Always advance the slot so it doesn't stall
        progress.advance(handle, 1, path.name)
        if result.performed:
            self.run_log.record(result.src, result.dst)
        elif not result.ok:
            self.run_log.record_error(result.to_error_record())
            progress.report_error(1)
        return result

    def _schedule_flush(self) -> None:
        with self._flush_guard:
            if self._flush_pool is None:
                return
            self._flushes.append(self._flush_pool.submit(self.run_log.flush, self.working_path))

    def _await_flushes(self) -> None:
        with self._flush_guard:
            pending, self._flushes = self._flushes, []
        for fut in pending:
            fut.result()

    # -- Run --------------------------------------------------------------

    def run(self, root) -> RunSummary:
        target = ensure_path(root)
        self.working_path = target
        self.run_log.cleanup_old_logs()

        if target.is_file():
            return self._run_single(target)
        if not target.is_dir():
            raise InvalidPathError(f"Provide either a file path or a directory path: {target}")

        try:
            folders = [target, *self.scanner_cls(target, recursive=True).list_folders()]
        except ScanError as exc:
            self.run_log.record_error(ErrorRecord(str(target), exc.code, exc.message))
            folders = [target]
        # never rename our own log files
        log_dir = self.run_log.log_dir.expanduser().resolve()
        folders = [f for f in folders if not f.is_relative_to(log_dir)]

        concurrency = self.concurrency or resolve_concurrency(self.settings.jobs, self.progress_stream)
        log.debug("%d folders under %s, concurrency=%d", len(folders), target, concurrency)
        progress = self.progress_factory(concurrency, len(folders))
        progress.log(f"Processing: {target} | workers={concurrency} | cpus={cpu_count()}")

        pkg_logger = logging.getLogger(PACKAGE_LOGGER)
        handler = RunLogHandler(self.run_log, progress)
        saved_propagate = pkg_logger.propagate
        pkg_logger.addHandler(handler)
        pkg_logger.propagate = False

        results: List[FolderResult] = []
        try:
            self._flush_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="log-flush")
            with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="folder") as pool:
                futures = [
                    pool.submit(self.process_folder, folder, self._label(target, folder), progress)
                    for folder in folders
                ]
                results = [f.result() for f in futures]
            self._await_flushes()
            log_path = self.run_log.finalize(target)
        finally:
            with self._flush_guard:
                flush_pool, self._flush_pool = self._flush_pool, None
            if flush_pool is not None:
                flush_pool.shutdown(wait=True)
            progress.stop()
            pkg_logger.removeHandler(handler)
            pkg_logger.propagate = saved_propagate

        return RunSummary(
            working_path=target,
            concurrency=concurrency,
            counts=self._counts(results),
            errors=self.run_log.errors,
            total_renamed=self.run_log.total_renamed,
            log_path=log_path,
            logging_enabled=self.run_log.enabled,
        )

    def _run_single(self, path: Path) -> RunSummary:
        prefix = folder_prefix(path.parent)
        result = self.renamer.rename_one(path, prefix.token)
        if result.performed:
            self.run_log.record(result.src, result.dst)
        elif not result.ok:
            self.run_log.record_error(result.to_error_record())
        log_path = self.run_log.finalize(path)
        return RunSummary(
            working_path=path,
            counts={processed_label(path.parent.name): 1},
            errors=self.run_log.errors,
            total_renamed=self.run_log.total_renamed,
            log_path=log_path,
            logging_enabled=self.run_log.enabled,
        )

    @staticmethod
    def _label(root: Path, folder: Path) -> str:
        rel = folder.relative_to(root)
        return rel.as_posix() if rel.parts else (root.name or str(root))

    @staticmethod
    def _counts(results: List[FolderResult]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for r in results:
            if r.processed > 0:
                key = processed_label(r.label)
                counts[key] = counts.get(key, 0) + r.processed
        return counts
