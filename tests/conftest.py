import os
from pathlib import Path

import pytest

from uniquifier.logger import RunLog
from uniquifier.settings import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in list(os.environ):
        if name.upper().startswith("UNIQUIFIER_") or name.upper() == "JOBS":
            monkeypatch.delenv(name, raising=False)
    # keep a stray .env in the caller's cwd out of the picture
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def log_dir(tmp_path) -> Path:
    return tmp_path / "logs"


@pytest.fixture
def settings(log_dir) -> Settings:
    return Settings(log_dir=log_dir, jobs=2)


@pytest.fixture
def run_log(settings) -> RunLog:
    return RunLog.from_settings(settings)


@pytest.fixture
def tree(tmp_path) -> Path:
    """root/A/{a1,a2}.txt and root/B/b1.txt"""
    root = tmp_path / "root"
    (root / "A").mkdir(parents=True)
    (root / "B").mkdir()
    (root / "A" / "a1.txt").write_text("a1")
    (root / "A" / "a2.txt").write_text("a2")
    (root / "B" / "b1.txt").write_text("b1")
    return root.resolve()
