from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .errors import RenameError

@dataclass(frozen=True)
class RenameRecord:
    original: Path
    new: Path

@dataclass(frozen=True)
class ErrorRecord:
    file: str
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"file": self.file, "code": self.code, "message": self.message}

@dataclass(frozen=True)
class FolderPrefix:
    folder: Path
    token: str

@dataclass
class ProgressSlot:
    busy: bool = False
    label: str = ""
    current: int = 0
    total: int = 1

@dataclass(frozen=True)
class RenameResult:
    src: Path
    dst: Path
    performed: bool  # False for no-op and failures
    reason: str = ""  # e.g. "same location"
    error: Optional[RenameError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_error_record(self) -> Optional[ErrorRecord]:
        if self.error is None:
            return None
        return ErrorRecord(str(self.src), self.error.code, self.error.message)


@dataclass(frozen=True)
class FolderResult:
    folder: Path
    label: str
    processed: int


@dataclass
class RunSummary:
    working_path: Path
    concurrency: int = 1
    counts: Dict[str, int] = field(default_factory=dict)
    errors: List[ErrorRecord] = field(default_factory=list)
    total_renamed: int = 0
    log_path: Optional[Path] = None
    logging_enabled: bool = True

    @property
    def total_processed(self) -> int:
        return sum(self.counts.values())
