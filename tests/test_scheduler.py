import errno
import json
import logging
import re
import shutil
import threading
import time
from pathlib import Path

import pytest

from uniquifier import renamer as renamer_mod
from uniquifier.errors import InvalidPathError, ScanError
from uniquifier.logger import RunLog
from uniquifier.progress import NullProgress
from uniquifier.scanner import FolderScanner
from uniquifier.scheduler import Scheduler, resolve_concurrency
from uniquifier.settings import Settings

PREFIXED = re.compile(r"^(\[[A-Za-z0-9]{5}-[0-9a-f]{6}~\])(.+)$")


def _prefix_of(path: Path) -> str:
    m = PREFIXED.match(path.name)
    assert m, path.name
    return m.group(1)


def test_two_folder_scenario(tree, settings, run_log):
    summary = Scheduler(settings, run_log).run(tree)

    assert summary.total_renamed == 3
    assert summary.errors == []
    assert summary.counts == {"Processed From 'A'": 2, "Processed From 'B'": 1}

    doc = json.loads(summary.log_path.read_text(encoding="utf-8"))
    assert doc["total_renamed"] == 3 == len(doc["renamed"])
    originals = {str(tree / "A" / "a1.txt"), str(tree / "A" / "a2.txt"), str(tree / "B" / "b1.txt")}
    assert set(doc["renamed"]) == originals
    for original, new in doc["renamed"].items():
        m = PREFIXED.match(Path(new).name)
        assert m and m.group(2) == Path(original).name
        assert Path(new).parent == Path(original).parent
        assert Path(new).exists()
    assert doc["finished_at"] is not None


def test_same_prefix_within_folder_different_across(tree, settings, run_log):
    (tree / "A" / "sub").mkdir()
    (tree / "A" / "sub" / "s1.txt").write_text("s1")
    (tree / "A" / "sub" / "s2.txt").write_text("s2")

    Scheduler(settings, run_log).run(tree)

    by_folder = {}
    for folder in ("A", "B", "A/sub"):
        files = [p for p in (tree / folder).iterdir() if p.is_file()]
        by_folder[folder] = {_prefix_of(p) for p in files}
    assert all(len(tokens) == 1 for tokens in by_folder.values())
    tokens = [next(iter(t)) for t in by_folder.values()]
    assert len(set(tokens)) == 3
    assert run_log.total_renamed == 5


def test_root_files_counted_under_root_name(tree, settings, run_log):
    (tree / "top.txt").write_text("t")
    summary = Scheduler(settings, run_log).run(tree)
    assert summary.counts[f"Processed From '{tree.name}'"] == 1
    assert summary.total_processed == 4


def test_hidden_files_and_folders_are_left_alone(tree, settings, run_log):
    (tree / ".git").mkdir()
    (tree / ".git" / "HEAD").write_text("ref")
    (tree / "A" / ".keep").write_text("")

    Scheduler(settings, run_log).run(tree)

    assert (tree / ".git" / "HEAD").exists()
    assert (tree / "A" / ".keep").exists()
    assert run_log.total_renamed == 3


def test_locked_file_is_reported_and_skipped(tree, settings, run_log, monkeypatch):
    locked = tree / "A" / "a2.txt"
    real = renamer_mod.rename_path

    def rename_path(src, dst):
        if src == locked:
            raise PermissionError(errno.EACCES, "The process cannot access the file")
        real(src, dst)

    monkeypatch.setattr(renamer_mod, "rename_path", rename_path)
    progress = NullProgress(2, 3)
    summary = Scheduler(settings, run_log, progress_factory=lambda c, t: progress).run(tree)

    assert summary.total_renamed == 2
    assert len(summary.errors) == 1
    assert summary.errors[0].code == "EACCES"
    assert summary.errors[0].file == str(locked)
    assert str(locked) not in run_log.renamed
    assert locked.exists()
    assert summary.counts["Processed From 'A'"] == 2
    assert progress.error_count == 1
    assert progress.overall_done == 3


def test_logging_disabled_creates_no_file(tree, log_dir):
    settings = Settings(log_dir=log_dir, log_enabled=False, jobs=1)
    run_log = RunLog.from_settings(settings)
    summary = Scheduler(settings, run_log).run(tree)

    assert summary.total_renamed == 3
    assert summary.log_path is None
    assert summary.logging_enabled is False
    assert not log_dir.exists()


def test_empty_tree_writes_no_log(tmp_path, settings, run_log, log_dir):
    empty = tmp_path / "empty"
    empty.mkdir()
    summary = Scheduler(settings, run_log).run(empty)
    assert summary.counts == {}
    assert summary.log_path is None
    assert not log_dir.exists()


def test_single_file_target(tmp_path, settings, run_log):
    folder = tmp_path / "docs"
    folder.mkdir()
    target = folder / "report.pdf"
    target.write_text("pdf")

    summary = Scheduler(settings, run_log).run(target)

    assert summary.total_renamed == 1
    renamed = [p for p in folder.iterdir()]
    assert len(renamed) == 1
    assert renamed[0].name.endswith("report.pdf")
    assert _prefix_of(renamed[0])
    assert summary.log_path is not None


def test_missing_root_is_a_validation_error(tmp_path, settings, run_log):
    with pytest.raises(InvalidPathError):
        Scheduler(settings, run_log).run(tmp_path / "nope")


def test_outer_concurrency_cap_is_respected(tmp_path, settings, run_log):
    root = tmp_path / "many"
    for i in range(8):
        (root / f"f{i}").mkdir(parents=True)
        (root / f"f{i}" / "x.txt").write_text(str(i))

    class Tracking(Scheduler):
        active = peak = 0
        gate = threading.Lock()

        def process_folder(self, folder, label, progress):
            with self.gate:
                Tracking.active += 1
                Tracking.peak = max(Tracking.peak, Tracking.active)
            try:
                time.sleep(0.02)
                return super().process_folder(folder, label, progress)
            finally:
                with self.gate:
                    Tracking.active -= 1

    summary = Tracking(settings, run_log, concurrency=3).run(root)

    assert summary.concurrency == 3
    assert 1 <= Tracking.peak <= 3
    assert summary.total_renamed == 8


def test_periodic_flush_persists_progress(tmp_path, log_dir):
    settings = Settings(log_dir=log_dir, flush_every=2, jobs=1)
    run_log = RunLog.from_settings(settings)
    root = tmp_path / "big"
    for name in ("one", "two"):
        (root / name).mkdir(parents=True)
        for i in range(4):
            (root / name / f"{i}.txt").write_text("x")

    flushed = []
    original = run_log.flush

    def spy(working_path):
        flushed.append(run_log.pending)
        return original(working_path)

    run_log.flush = spy
    summary = Scheduler(settings, run_log, concurrency=1).run(root)

    assert len(flushed) >= 2
    assert any(n > 2 for n in flushed)
    doc = json.loads(summary.log_path.read_text(encoding="utf-8"))
    assert doc["total_renamed"] == 8 == len(doc["renamed"])
    assert list(log_dir.iterdir()) == [summary.log_path]


def test_enumeration_error_does_not_stop_siblings(tree, settings, run_log):
    class BrokenA(FolderScanner):
        def list_files(self):
            if self.root.name == "A":
                raise ScanError(self.root, "EACCES", "Permission denied")
            return super().list_files()

    summary = Scheduler(settings, run_log, scanner_cls=BrokenA).run(tree)

    assert summary.total_renamed == 1
    assert [(e.file, e.code) for e in summary.errors] == [(str(tree / "A"), "EACCES")]
    assert summary.counts == {"Processed From 'B'": 1}


def test_folder_removed_after_enumeration_is_recorded(tree, settings, run_log):
    class VanishingA(FolderScanner):
        def list_folders(self):
            folders = super().list_folders()
            shutil.rmtree(self.root / "A")
            return folders

    summary = Scheduler(settings, run_log, scanner_cls=VanishingA).run(tree)

    assert [(e.file, e.code) for e in summary.errors] == [(str(tree / "A"), "ENOENT")]
    assert summary.total_renamed == 1
    assert summary.counts == {"Processed From 'B'": 1}


def test_stray_error_logs_are_folded_into_errors(tree, settings, run_log):
    class Chatty(FolderScanner):
        def list_files(self):
            if self.root.name == "B":
                logging.getLogger("uniquifier.scanner").error("disk hiccup\nsecond line")
            return super().list_files()

    pkg = logging.getLogger("uniquifier")
    handlers_before = list(pkg.handlers)
    propagate_before = pkg.propagate

    summary = Scheduler(settings, run_log, scanner_cls=Chatty).run(tree)

    assert summary.total_renamed == 3
    assert len(summary.errors) == 1
    err = summary.errors[0]
    assert (err.code, err.message) == ("LOG", "disk hiccup")
    assert pkg.handlers == handlers_before
    assert pkg.propagate == propagate_before


def test_resolve_concurrency_prefers_positive_override(monkeypatch):
    monkeypatch.setattr("uniquifier.scheduler.cpu_count", lambda: 8)
    monkeypatch.setattr("uniquifier.scheduler.terminal_rows", lambda stream: 0)
    assert resolve_concurrency(3) == 3
    assert resolve_concurrency(0) == 8
    assert resolve_concurrency(-2) == 8


def test_resolve_concurrency_clamps_to_terminal(monkeypatch):
    monkeypatch.setattr("uniquifier.scheduler.cpu_count", lambda: 32)
    monkeypatch.setattr("uniquifier.scheduler.terminal_rows", lambda stream: 10)
    assert resolve_concurrency(0) == 6
    monkeypatch.setattr("uniquifier.scheduler.terminal_rows", lambda stream: 3)
    assert resolve_concurrency(0) == 1


def test_log_dir_inside_tree_is_skipped(tree):
    log_dir = tree / "logs"
    settings = Settings(log_dir=log_dir, jobs=2)
    run_log = RunLog.from_settings(settings)
    log_dir.mkdir()
    (log_dir / "old.json").write_text("{}")

    summary = Scheduler(settings, run_log).run(tree)

    assert (log_dir / "old.json").exists()
    assert summary.log_path.parent == log_dir
    assert summary.total_renamed == 3
