import json
import logging
import os
import threading
import time
import uuid
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional

from .errors import errno_code
from .models import ErrorRecord, RenameRecord

log = logging.getLogger(__name__)

LOG_MODES = ("full", "summary")


class RunLog:
    """
    In-memory record of one run (rename mapping + errors), flushed to a
    single JSON file under `log_dir`. Every flush overwrites the same file.
    """
    def __init__(self, log_dir: Path, enabled: bool = True, mode: str = "full",
                 keep: int = 50, max_age_days: float = 30.0, max_bytes: int = 100 * 1024 * 1024):
        if mode not in LOG_MODES:
            raise ValueError(f"Unknown log mode: {mode!r}")
        self.log_dir = log_dir
        self.enabled = enabled
        self.mode = mode
        self.keep = keep
        self.max_age_days = max_age_days
        self.max_bytes = max_bytes

        self.started_at = datetime.now()
        self.finished_at: Optional[datetime] = None
        self.path: Optional[Path] = None

        self._renamed: Dict[str, RenameRecord] = {}
        self._errors: List[ErrorRecord] = []
        self._pending = 0
        self._dirty = False
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "RunLog":
        return cls(
            settings.log_dir,
            enabled=settings.log_enabled,
            mode=settings.log_mode,
            keep=settings.log_keep,
            max_age_days=settings.log_max_age_days,
            max_bytes=settings.log_max_bytes,
        )

    # -- accumulation -----------------------------------------------------

    def record(self, original: Path, new: Path) -> None:
        with self._lock:
            self._renamed[str(original)] = RenameRecord(Path(original), Path(new))
            self._pending += 1
            self._dirty = True

    def record_error(self, entry: ErrorRecord) -> None:
        with self._lock:
            self._errors.append(entry)
            self._dirty = True

    @property
    def records(self) -> List[RenameRecord]:
        with self._lock:
            return list(self._renamed.values())

    @property
    def renamed(self) -> Dict[str, str]:
        with self._lock:
            return {key: str(rec.new) for key, rec in self._renamed.items()}

    @property
    def errors(self) -> List[ErrorRecord]:
        with self._lock:
            return list(self._errors)

    @property
    def total_renamed(self) -> int:
        with self._lock:
            return len(self._renamed)

    @property
    def pending(self) -> int:
        """Successful renames recorded since the last flush."""
        with self._lock:
            return self._pending

    # -- persistence ------------------------------------------------------

    def _document(self, working_path: Path) -> dict:
        doc = {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "working_path": str(working_path),
            "total_renamed": len(self._renamed),
            "errors_count": len(self._errors),
            "errors": [e.to_dict() for e in self._errors],
        }
        if self.mode == "full":
            doc["renamed"] = {key: str(rec.new) for key, rec in self._renamed.items()}
        return doc

    def _new_path(self) -> Path:
        stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        return self.log_dir / f"{stamp}~{uuid.uuid4().hex[:8]}.json"

    def flush(self, working_path: Path) -> Optional[Path]:
        """Write the current state if anything changed. Returns the log path."""
        if not self.enabled:
            return None
        with self._flush_lock:
            with self._lock:
                if not self._dirty:
                    return self.path
                data = self._document(working_path)
                self._dirty = False
                self._pending = 0

            if self.path is None:
                self.path = self._new_path()
            tmp = self.path.with_name(self.path.name + ".tmp")
            try:
                self.log_dir.mkdir(parents=True, exist_ok=True)
                tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
                os.replace(tmp, self.path)
            except OSError as exc:
                with self._lock:
                    self._dirty = True
                log.error("could not write run log: %s", exc,
                          extra={"file": str(self.path), "code": errno_code(exc)})
            return self.path

    def finalize(self, working_path: Path) -> Optional[Path]:
        """Stamp the finish time and write the final document."""
        with self._lock:
            self.finished_at = datetime.now()
            if self._renamed or self._errors:
                self._dirty = True
        if self.path is None and not self._dirty:
            return None
        return self.flush(working_path)

    # -- retention --------------------------------------------------------

    def list_logs(self) -> List[Path]:
        """Return log files sorted newest -> oldest by modification time."""
        if not self.log_dir.is_dir():
            return []
        logs = [p for p in self.log_dir.glob("*.json") if p.is_file()]
        return sorted(logs, key=lambda p: p.stat().st_mtime, reverse=True)

    def _delete(self, path: Path) -> bool:
        try:
            path.unlink()
        except OSError as exc:
            log.warning("could not delete old log %s: %s", path, exc)
            return False
        return True

    def cleanup_old_logs(self) -> List[Path]:
        """Apply age, count and total-size retention. Returns deleted paths."""
        try:
            entries = [(p, p.stat()) for p in self.list_logs()]
        except OSError as exc:
            log.warning("could not list logs in %s: %s", self.log_dir, exc)
            return []

        deleted: List[Path] = []
        survivors = []

        # Age
        cutoff = time.time() - self.max_age_days * 86400 if self.max_age_days > 0 else None
        for p, st in entries:
            if cutoff is not None and st.st_mtime < cutoff and self._delete(p):
                deleted.append(p)
            else:
                survivors.append((p, st))

        # Count (survivors are newest first)
        if self.keep > 0 and len(survivors) > self.keep:
            kept = survivors[:self.keep]
            for p, st in survivors[self.keep:]:
                if self._delete(p):
                    deleted.append(p)
                else:
                    kept.append((p, st))
            survivors = kept

        # Size, oldest first
        if self.max_bytes > 0:
            total = sum(st.st_size for _, st in survivors)
            for p, st in sorted(survivors, key=lambda e: e[1].st_mtime):
                if total <= self.max_bytes:
                    break
                if self._delete(p):
                    deleted.append(p)
                    total -= st.st_size

        if deleted:
            log.info("removed %d old log file(s) from %s", len(deleted), self.log_dir)
        return deleted
