import logging
import sys
import threading
from typing import List, Protocol

from tqdm import tqdm

from .models import ProgressSlot
from .utils import ellipsize_middle, ellipsize_start

log = logging.getLogger(__name__)

MAX_NAME = 38
MAX_FILE = 46
BAR_FORMAT = "{bar:22} {desc} {n_fmt}/{total_fmt}{postfix}"


class ProgressReporter(Protocol):
    def acquire_slot(self, label: str, total: int) -> int: ...
    def advance(self, handle: int, n: int = 1, item: str = "") -> None: ...
    def release(self, handle: int) -> None: ...
    def report_error(self, n: int = 1) -> None: ...
    def log(self, message: str) -> None: ...
    def stop(self) -> None: ...


def idle_label(idx: int) -> str:
    return f"Idle {idx + 1}"


class NullProgress:
    """Slot bookkeeping without any output."""

    def __init__(self, concurrency: int = 1, overall_total: int = 1):
        self.concurrency = max(1, concurrency)
        self.slots: List[ProgressSlot] = [
            ProgressSlot(label=idle_label(i)) for i in range(self.concurrency)
        ]
        self.overall_total = max(1, overall_total)
        self.overall_done = 0
        self.error_count = 0
        self._lock = threading.RLock()

    @property
    def overall_label(self) -> str:
        return f"Overall (E:{self.error_count})" if self.error_count > 0 else "Overall"

    def acquire_slot(self, label: str, total: int) -> int:
        with self._lock:
            idx = next((i for i, s in enumerate(self.slots) if not s.busy), 0)
            slot = self.slots[idx]
            slot.busy = True
            slot.label = ellipsize_middle(label, MAX_NAME)
            slot.current = 0
            slot.total = max(1, total or 1)
            self._render(self._draw_slot, idx, "")
        return idx

    def advance(self, handle: int, n: int = 1, item: str = "") -> None:
        with self._lock:
            if not 0 <= handle < len(self.slots):
                return
            self.slots[handle].current += n
            self._render(self._draw_advance, handle, n, ellipsize_start(item, MAX_FILE))

    def release(self, handle: int) -> None:
        with self._lock:
            if not 0 <= handle < len(self.slots):
                return
            slot = self.slots[handle]
            slot.busy = False
            slot.label = idle_label(handle)
            slot.current = 0
            slot.total = 1
            self.overall_done += 1
            self._render(self._draw_slot, handle, "")
            self._render(self._draw_overall, 1)

    def report_error(self, n: int = 1) -> None:
        with self._lock:
            self.error_count += n
            self._render(self._draw_overall, 0)

    def log(self, message: str) -> None:
        pass

    def stop(self) -> None:
        pass

    def _render(self, fn, *args) -> None:
        # rendering is best-effort; never let it abort the run
        try:
            fn(*args)
        except Exception:
            log.debug("progress rendering failed", exc_info=True)

    def _draw_slot(self, idx: int, item: str) -> None:
        pass

    def _draw_advance(self, idx: int, n: int, item: str) -> None:
        pass

    def _draw_overall(self, n: int) -> None:
        pass


class TqdmProgress(NullProgress):
    """One tqdm line per worker slot, plus an overall line at the bottom."""

    def __init__(self, concurrency: int = 1, overall_total: int = 1, file=None):
        super().__init__(concurrency, overall_total)
        self.file = file if file is not None else sys.stderr
        # Worker lines first, overall last
        self.bars = [
            tqdm(total=1, desc=idle_label(i), position=i, file=self.file, leave=True,
                 bar_format=BAR_FORMAT, dynamic_ncols=True, mininterval=0.08)
            for i in range(self.concurrency)
        ]
        self.overall = tqdm(total=self.overall_total, desc=self.overall_label,
                            position=self.concurrency, file=self.file, leave=True,
                            bar_format=BAR_FORMAT, dynamic_ncols=True, mininterval=0.08)

    def _draw_slot(self, idx: int, item: str) -> None:
        slot = self.slots[idx]
        bar = self.bars[idx]
        bar.reset(total=slot.total)
        bar.set_description_str(slot.label, refresh=False)
        bar.set_postfix_str(item, refresh=False)
        bar.refresh()

    def _draw_advance(self, idx: int, n: int, item: str) -> None:
        bar = self.bars[idx]
        bar.set_postfix_str(item, refresh=False)
        bar.update(n)

    def _draw_overall(self, n: int) -> None:
        self.overall.set_description_str(self.overall_label, refresh=False)
        if n:
            self.overall.update(n)
        else:
            self.overall.refresh()

    def log(self, message: str) -> None:
        try:
            tqdm.write(message, file=self.file)
        except Exception:
            print(message, file=self.file)

    def stop(self) -> None:
        for bar in [*self.bars, self.overall]:
            self._render(bar.close)
