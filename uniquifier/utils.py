import errno
import os
from pathlib import Path

from .errors import InvalidPathError

ELLIPSIS = "…"


def ensure_path(path_str) -> Path:
    """Return a resolved Path object and ensure it exists."""
    p = Path(path_str).expanduser().resolve()
    if not p.exists():
        raise InvalidPathError(f"You have to provide a valid location: {p}")
    return p


def rename_path(src: Path, dst: Path) -> None:
    """
    Atomically rename `src` to `dst` within the same filesystem.
    An existing `dst` is never overwritten.
    """
    if dst.exists():
        raise FileExistsError(errno.EEXIST, "Target already exists", str(dst))
    os.rename(src, dst)


def ellipsize_start(text: str, width: int) -> str:
    """Keep the tail of `text` behind an ellipsis marker."""
    if not text:
        return ""
    if len(text) <= width:
        return text
    return ELLIPSIS + text[len(text) - (width - 1):]


def ellipsize_middle(text: str, width: int) -> str:
    if not text:
        return ""
    if len(text) <= width:
        return text
    left = (width - 1) // 2
    right = width - 1 - left
    return text[:left] + ELLIPSIS + text[len(text) - right:]


def first_line(message) -> str:
    if not message:
        return ""
    lines = str(message).splitlines()
    return lines[0] if lines else ""
