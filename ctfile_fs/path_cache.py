"""
Bidirectional path <-> remote-id cache for CTFile.

CTFile is ID-based, not path-based. This module remembers which identifier a
path resolved to (and the reverse), plus a per-folder memo of the
name -> id pairs seen in directory listings. Path entries expire after a TTL;
the root entry never expires and is never invalidated.
"""

import logging
import threading
import time
from dataclasses import dataclass

from .models import ROOT_ID
from .paths import ROOT_PATH, SEPARATOR, join_path, normalize_path, path_segments, split_path

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    remote_id: str
    expires_at: float | None  # None = never expires (root only)

    def is_live(self, now: float) -> bool:
        return self.expires_at is None or now < self.expires_at


class PathIdCache:
    """
    Thread-safe path/id cache with TTL expiration and subtree invalidation.

    All public methods take and release a single lock; none of them raise.
    A missing or expired entry is reported as None.
    """

    def __init__(self, ttl_seconds: int = 3600, root_id: str = ROOT_ID):
        """
        Args:
            ttl_seconds: How long a path entry stays valid after being written.
            root_id: Identifier the root path maps to.
        """
        self._ttl = ttl_seconds
        self._root_id = root_id
        self._lock = threading.Lock()
        # path -> CacheEntry
        self._paths: dict[str, CacheEntry] = {}
        # remote_id -> path
        self._ids: dict[str, str] = {}
        # parent_id -> {child_name -> child_id}
        self._children: dict[str, dict[str, str]] = {}
        self._reset()

    @property
    def root_id(self) -> str:
        return self._root_id

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _reset(self) -> None:
        """Drop everything and re-seed the root. Caller must hold the lock."""
        self._paths.clear()
        self._ids.clear()
        self._children.clear()
        self._paths[ROOT_PATH] = CacheEntry(self._root_id, None)
        self._ids[self._root_id] = ROOT_PATH

    def _get_live(self, path: str) -> CacheEntry | None:
        """Return the live entry for path, evicting it if expired. Caller holds the lock."""
        entry = self._paths.get(path)
        if entry is None:
            return None
        if not entry.is_live(time.time()):
            self._remove(path)
            return None
        return entry

    def _remove(self, path: str) -> str | None:
        """Remove one path entry from both maps. Caller holds the lock."""
        entry = self._paths.pop(path, None)
        if entry is None:
            return None
        if self._ids.get(entry.remote_id) == path:
            del self._ids[entry.remote_id]
        return entry.remote_id

    def _known_id(self, path: str) -> str | None:
        """
        Last id recorded for path, live or not. Caller holds the lock.

        Falls back to walking the adjacency memo from the root when the path
        entry is gone (expired and evicted, or never kept with a zero TTL).
        Nothing is evicted.
        """
        entry = self._paths.get(path)
        if entry is not None:
            return entry.remote_id

        current_id = self._root_id
        current_path = ROOT_PATH
        for segment in path_segments(path):
            current_path = join_path(current_path, segment)
            entry = self._paths.get(current_path)
            if entry is not None:
                current_id = entry.remote_id
                continue
            child_id = self._children.get(current_id, {}).get(segment)
            if child_id is None:
                return None
            current_id = child_id
        return current_id

    def _drop_memos(self, remote_id: str) -> None:
        """Forget the memo of a folder and of every folder memoized beneath it."""
        pending = [remote_id]
        while pending:
            children = self._children.pop(pending.pop(), None)
            if children:
                pending.extend(children.values())

    def last_known_id(self, path: str) -> str | None:
        """
        Return the id path was last seen with, even if its entry has expired.

        Unlike lookup() this never evicts anything, so callers can find the
        ids they need to clean up before invalidating.
        """
        path = normalize_path(path)
        with self._lock:
            return self._known_id(path)

    def lookup(self, path: str) -> str | None:
        """Return the cached id for path, or None if absent or expired."""
        path = normalize_path(path)
        with self._lock:
            entry = self._get_live(path)
            return entry.remote_id if entry else None

    def reverse_lookup(self, remote_id: str) -> str | None:
        """Return the cached path for an id, or None if absent or expired."""
        with self._lock:
            path = self._ids.get(remote_id)
            if path is None:
                return None
            return path if self._get_live(path) else None

    def contains(self, path: str) -> bool:
        return self.lookup(path) is not None

    def put(self, path: str, remote_id: str, ttl_seconds: int | None = None) -> None:
        """
        Record path <-> remote_id.

        Any previous mapping of either the path or the id is dropped first so
        both directions stay consistent. If the parent path is cached, the
        parent's adjacency memo learns the new child too.
        """
        path = normalize_path(path)
        if path == ROOT_PATH:
            return

        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            old_path = self._ids.get(remote_id)
            if old_path == ROOT_PATH:
                logger.warning("Refusing to remap root id %s to %s", remote_id, path)
                return
            if old_path is not None:
                self._remove(old_path)
            self._remove(path)

            self._paths[path] = CacheEntry(remote_id, time.time() + ttl)
            self._ids[remote_id] = path

            parent, name = split_path(path)
            parent_entry = self._get_live(parent)
            if parent_entry is not None:
                self._children.setdefault(parent_entry.remote_id, {})[name] = remote_id

    def invalidate(self, path: str | None = None) -> None:
        """
        Forget cached mappings.

        Args:
            path: None (or the root) resets everything except the root
                mapping. Otherwise the path and every path beneath it are
                removed, together with the adjacency memos of the removed
                folders, of the path's own id and the parent's memo entry
                for the path's name. Expired entries count: ids are taken
                from stale entries or the memo when no live entry is left.

        Note:
            This scans every cached key, so it is O(n) in cache size.
        """
        if path is None or normalize_path(path) == ROOT_PATH:
            with self._lock:
                self._reset()
            logger.debug("Path cache reset")
            return

        path = normalize_path(path)
        prefix = path + SEPARATOR
        parent, name = split_path(path)
        with self._lock:
            target_id = self._known_id(path)
            parent_id = self._known_id(parent)

            doomed = [p for p in self._paths if p == path or p.startswith(prefix)]
            for p in doomed:
                removed_id = self._remove(p)
                if removed_id is not None:
                    self._drop_memos(removed_id)
            if target_id is not None:
                self._drop_memos(target_id)

            # The parent's memo still names the removed child
            if parent_id is not None:
                siblings = self._children.get(parent_id)
                if siblings is not None:
                    siblings.pop(name, None)

        logger.debug("Invalidated %d cached path(s) under %s", len(doomed), path)

    def lookup_adjacency(self, parent_id: str, name: str) -> str | None:
        """Return the memoized id of child ``name`` inside folder ``parent_id``."""
        with self._lock:
            children = self._children.get(parent_id)
            if children is None:
                return None
            return children.get(name)

    def has_adjacency(self, parent_id: str) -> bool:
        """True if at least one child of parent_id has been memoized."""
        with self._lock:
            return parent_id in self._children

    def put_adjacency(self, parent_id: str, name: str, child_id: str) -> None:
        with self._lock:
            self._children.setdefault(parent_id, {})[name] = child_id

    def evict_adjacency(self, parent_id: str) -> None:
        """Forget the memoized listing of one folder."""
        with self._lock:
            self._children.pop(parent_id, None)

    def __len__(self) -> int:
        now = time.time()
        with self._lock:
            return sum(1 for entry in self._paths.values() if entry.is_live(now))
