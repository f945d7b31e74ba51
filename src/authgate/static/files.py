"""Path resolution and file metadata for the static server.

Lookups return a tagged `Lookup` instead of raising for missing files, so
the middleware decides fallbacks by matching on `LookupKind`. Any other
`OSError` propagates.
"""

from __future__ import annotations

import os
import posixpath
import stat
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote

BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


class LookupKind(str, Enum):
    """What a resolved path points at."""

    FILE = "file"
    DIRECTORY = "directory"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Lookup:
    kind: LookupKind
    path: str
    stat_result: os.stat_result | None = None


def clean_path(request_path: str) -> str:
    """URL-decode and clean a request path, anchored at `/`.

    `..` can never climb above the root: "/a/../../etc" cleans to "/etc".
    """
    cleaned = posixpath.normpath("/" + unquote(request_path))
    # normpath keeps a leading "//"
    return "/" + cleaned.lstrip("/")


def resolve_path(root: str, cleaned_path: str) -> str:
    """Join a path from `clean_path` onto the content root.

    The path is normalized again but not unquoted, so a percent sign that
    survived cleaning stays literal.
    """
    return os.path.join(root, posixpath.normpath("/" + cleaned_path).lstrip("/"))


def lookup(path: str) -> Lookup:
    """Stat a path.

    Raises:
        OSError: For any failure other than the path not existing
    """
    try:
        st = os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        return Lookup(LookupKind.NOT_FOUND, path)
    except ValueError:
        # embedded NUL byte; no such file can exist
        return Lookup(LookupKind.NOT_FOUND, path)

    kind = LookupKind.DIRECTORY if stat.S_ISDIR(st.st_mode) else LookupKind.FILE
    return Lookup(kind, path, st)


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    sign = "-" if n < 0 else ""
    n = abs(n)
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(BASE36_DIGITS[r])
    return sign + "".join(reversed(digits))


def calculate_etag(st: os.stat_result) -> str | None:
    """Strong ETag from modification time and size.

    The file contents are not hashed. Returns None when the modification
    time carries no information (0 or 1 seconds after the epoch).
    """
    mtime = int(st.st_mtime)
    if mtime in (0, 1):
        return None
    return f'"{_base36(mtime)}{_base36(st.st_size)}"'
