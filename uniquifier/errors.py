import errno


def errno_code(exc: BaseException, default: str = "ERR") -> str:
    """Symbolic errno name for an OSError (e.g. 'EACCES'), else `default`."""
    num = getattr(exc, "errno", None)
    if num is None:
        return default
    return errno.errorcode.get(num, default)


class UniquifierError(Exception):
    """Base error for the project."""

class InvalidPathError(UniquifierError):
    pass

class ScanError(UniquifierError):
    def __init__(self, path, code: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.code = code
        self.message = message

class RenameError(UniquifierError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @classmethod
    def from_os_error(cls, exc: BaseException) -> "RenameError":
        message = getattr(exc, "strerror", None) or str(exc) or type(exc).__name__
        return cls(errno_code(exc), message)
