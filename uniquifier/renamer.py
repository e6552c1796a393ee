import logging
from pathlib import Path

from .errors import RenameError
from .models import RenameResult
from .utils import rename_path

log = logging.getLogger(__name__)


def target_path(path: Path, prefix: str) -> Path:
    return path.with_name(prefix + path.name)


class PrefixRenamer:
    """Renames files in place by prepending a prefix token."""

    def rename_one(self, path: Path, prefix: str) -> RenameResult:
        try:
            dest = target_path(path, prefix)
        except ValueError as exc:
            return RenameResult(path, path, performed=False, error=RenameError("EINVAL", str(exc)))

        # Skip if source and destination are same
        if path == dest:
            return RenameResult(path, dest, performed=False, reason="same location")

        try:
            rename_path(path, dest)
        except OSError as exc:
            err = RenameError.from_os_error(exc)
            log.debug("rename failed %s -> %s: [%s] %s", path, dest, err.code, err.message)
            return RenameResult(path, dest, performed=False, error=err)
        return RenameResult(path, dest, performed=True)

