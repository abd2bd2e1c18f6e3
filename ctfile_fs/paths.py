"""
Path helpers for the CTFile filesystem.

All paths handled by the package are absolute, slash-separated strings.
These helpers turn arbitrary user input into that canonical form and split
or join canonical paths without touching the remote store.
"""

import re

SEPARATOR = "/"
ROOT_PATH = "/"

_REPEATED_SEPARATORS = re.compile(r"/{2,}")


def normalize_path(raw: str | None) -> str:
    """
    Canonicalize a path string.

    Backslashes are treated as separators, repeated separators collapse into
    one, a single leading slash is guaranteed and a trailing slash is removed
    unless the result is the root.

    Args:
        raw: Path as given by the caller. Empty or None maps to the root.

    Returns:
        The normalized path, e.g. "docs//a/" -> "/docs/a".
    """
    if not raw:
        return ROOT_PATH

    path = raw.replace("\\", SEPARATOR)
    path = _REPEATED_SEPARATORS.sub(SEPARATOR, path)

    if not path.startswith(SEPARATOR):
        path = SEPARATOR + path

    if path != ROOT_PATH and path.endswith(SEPARATOR):
        path = path.rstrip(SEPARATOR) or ROOT_PATH

    return path


def path_segments(path: str) -> list[str]:
    """Return the non-empty segments of a path ("/a/b" -> ["a", "b"])."""
    return [s for s in normalize_path(path).split(SEPARATOR) if s]


def split_path(path: str) -> tuple[str, str]:
    """
    Split a path into (parent, name).

    The root has no name: split_path("/") == ("/", "").
    """
    path = normalize_path(path)
    if path == ROOT_PATH:
        return ROOT_PATH, ""

    parent, name = path.rsplit(SEPARATOR, 1)
    return parent or ROOT_PATH, name


def join_path(parent: str, name: str) -> str:
    """Join a parent path and a child name into a normalized path."""
    parent = normalize_path(parent)
    if parent == ROOT_PATH:
        return normalize_path(SEPARATOR + name)
    return normalize_path(parent + SEPARATOR + name)


def is_same_or_child(path: str, ancestor: str) -> bool:
    """True if path equals ancestor or lies somewhere beneath it."""
    path = normalize_path(path)
    ancestor = normalize_path(ancestor)
    if ancestor == ROOT_PATH:
        return True
    return path == ancestor or path.startswith(ancestor + SEPARATOR)
