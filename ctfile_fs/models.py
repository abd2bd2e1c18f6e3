"""
Value types shared across ctfile_fs.

CTFile identifies every object by a kind-prefixed string: "f" followed by
digits for a file, "d" followed by digits for a folder. The account root is
always "d0".
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime

from .exceptions import ProtocolError

ROOT_ID = "d0"

FILE_PREFIX = "f"
DIRECTORY_PREFIX = "d"


class EntryKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"


def kind_of(remote_id: str) -> EntryKind:
    """
    Return the kind encoded in a remote identifier.

    Raises:
        ProtocolError: If the identifier has no recognizable prefix.
    """
    if remote_id and remote_id[1:].isdigit():
        if remote_id[0] == FILE_PREFIX:
            return EntryKind.FILE
        if remote_id[0] == DIRECTORY_PREFIX:
            return EntryKind.DIRECTORY
    raise ProtocolError(f"Malformed remote id: {remote_id!r}")


def numeric_id(remote_id: str) -> int:
    """Return the numeric part of a remote identifier ("d42" -> 42)."""
    kind_of(remote_id)
    return int(remote_id[1:])


def make_id(kind: EntryKind, number: int | str) -> str:
    """Build a remote identifier from a kind and a number."""
    prefix = FILE_PREFIX if kind is EntryKind.FILE else DIRECTORY_PREFIX
    return f"{prefix}{int(number)}"


@dataclass
class ListingEntry:
    """One child returned by a directory listing."""

    remote_id: str | None
    name: str
    kind: EntryKind
    size: int | None = None
    mtime: datetime | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass
class ListingPage:
    """One page of a paginated directory listing.

    ``increment`` is how far the cursor advances for the next request;
    zero means there are no more pages.
    """

    entries: list[ListingEntry] = field(default_factory=list)
    increment: int = 0


@dataclass
class FileStats:
    """Path-facing metadata for a file or directory."""

    name: str
    path: str
    remote_id: str
    kind: EntryKind
    size: int = 0
    mtime: datetime | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY
