import hashlib
import random
import string
from pathlib import Path
from typing import Optional

from .models import FolderPrefix

ALPHABET = string.ascii_letters + string.digits
RANDOM_LENGTH = 5
HASH_LENGTH = 6


def random_characters(length: int = RANDOM_LENGTH) -> str:
    # not cryptographically secure
    return "".join(random.choice(ALPHABET) for _ in range(length))


def generate_prefix(seed: Optional[str] = None) -> str:
    """
    Build a prefix token like '[aZ3k9-1f2e3d~]'.

    The five random characters differ on every call. The '-xxxxxx' part is
    the start of md5(seed) and is left out when no seed is given.
    """
    suffix = ""
    if seed:
        digest = hashlib.md5(seed.encode("utf-8")).hexdigest()
        suffix = f"-{digest[:HASH_LENGTH]}"
    return f"[{random_characters()}{suffix}~]"


def folder_prefix(folder: Path) -> FolderPrefix:
    return FolderPrefix(folder, generate_prefix(folder.name))
