import logging
import os
from pathlib import Path
from typing import Iterable, List

from .errors import ScanError, errno_code

log = logging.getLogger(__name__)


class FolderScanner:
    """Lists files and sub-folders under a root (optionally recursively)."""

    def __init__(self, root: Path, recursive: bool = True, ignore_hidden: bool = True,
                 pattern: str = "*"):
        self.root = root
        self.recursive = recursive
        self.ignore_hidden = ignore_hidden
        self.pattern = pattern

    def _walk(self, pattern: str) -> Iterable[Path]:
        if self.recursive:
            return self.root.rglob(pattern)
        return self.root.glob(pattern)

    def _hidden(self, p: Path) -> bool:
        if not self.ignore_hidden:
            return False
        rel = p.relative_to(self.root)
        return any(part.startswith(".") for part in rel.parts)

    def _open_root(self) -> None:
        # glob swallows scandir errors; surface them for the root itself
        with os.scandir(self.root):
            pass

    def list_files(self) -> List[Path]:
        try:
            self._open_root()
            files = [p for p in self._walk(self.pattern) if p.is_file() and not self._hidden(p)]
        except OSError as exc:
            raise ScanError(self.root, errno_code(exc, "ESCAN"), exc.strerror or str(exc)) from exc
        files.sort()
        log.debug("%s: %d files", self.root, len(files))
        return files

    def list_folders(self) -> List[Path]:
        try:
            self._open_root()
            folders = [p for p in self._walk("*") if p.is_dir() and not self._hidden(p)]
        except OSError as exc:
            raise ScanError(self.root, errno_code(exc, "ESCAN"), exc.strerror or str(exc)) from exc
        folders.sort()
        return folders
