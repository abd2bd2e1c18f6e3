"""
Path-to-ID resolver for CTFile.

CTFile only offers "list this folder" as a way to find objects by name. This
module resolves filesystem paths (e.g. "/docs/report.txt") to remote ids by
walking the folder hierarchy one level at a time, using PathIdCache for
full-path hits and for the per-folder name memo.
"""

import logging

from .exceptions import CTFileError, KindMismatchError, NotFoundError
from .listing import ListingAggregator
from .models import EntryKind, ListingEntry, kind_of
from .path_cache import PathIdCache
from .paths import ROOT_PATH, join_path, normalize_path, path_segments

logger = logging.getLogger(__name__)


class TreeResolver:
    """Turns normalized paths into remote ids, populating the cache as it walks."""

    def __init__(self, cache: PathIdCache, aggregator: ListingAggregator):
        self._cache = cache
        self._aggregator = aggregator

    def resolve(self, path: str, expected_kind: EntryKind | None = None) -> str:
        """
        Resolve a path to a remote id.

        Args:
            path: Filesystem path; normalized before use.
            expected_kind: Kind the caller needs, or None to accept either.

        Returns:
            The remote id of the object at path.

        Raises:
            NotFoundError: If any segment does not exist remotely.
            KindMismatchError: If the object exists but has the wrong kind.
        """
        path = normalize_path(path)

        remote_id = self._cache.lookup(path)
        if remote_id is None:
            remote_id = self._walk(path)

        actual = kind_of(remote_id)
        if expected_kind is not None and actual is not expected_kind:
            raise KindMismatchError(
                f"Expected a {expected_kind.value} at {path}, found a {actual.value}",
                path=path,
                expected=expected_kind,
                actual=actual,
            )
        return remote_id

    def exists(self, path: str, expected_kind: EntryKind | None = None) -> bool:
        """True if path resolves to an object of the expected kind."""
        try:
            self.resolve(path, expected_kind)
        except (NotFoundError, KindMismatchError):
            return False
        return True

    def _walk(self, path: str) -> str:
        current_id = self._cache.root_id
        current_path = ROOT_PATH

        for segment in path_segments(path):
            if kind_of(current_id) is not EntryKind.DIRECTORY:
                # A file has no children
                raise NotFoundError(f"No such file or directory: {path}", path=path)

            sub_path = join_path(current_path, segment)

            cached = self._cache.lookup(sub_path)
            if cached is not None:
                current_id, current_path = cached, sub_path
                continue

            child_id = self._cache.lookup_adjacency(current_id, segment)
            if child_id is None:
                child_id = self._list_and_find(current_path, current_id, segment, path)

            self._cache.put(sub_path, child_id)
            current_id, current_path = child_id, sub_path

        return current_id

    def _list_and_find(self, parent_path: str, parent_id: str, name: str, full_path: str) -> str:
        logger.debug("Cache miss for %s in %s (%s), listing", name, parent_path, parent_id)
        try:
            entries = self._aggregator.list_all(parent_id)
        except CTFileError as e:
            e.with_context(path=full_path, operation="resolve")
            raise

        self.record_listing(parent_path, parent_id, entries)

        child_id = self._cache.lookup_adjacency(parent_id, name)
        if child_id is None:
            logger.debug("Path segment not found: %s in %s", name, parent_id)
            raise NotFoundError(f"No such file or directory: {full_path}", path=full_path)
        return child_id

    def record_listing(self, parent_path: str, parent_id: str, entries: list[ListingEntry]) -> None:
        """
        Memoize every child of a freshly listed folder.

        The memo for parent_id is replaced wholesale so names that disappeared
        remotely are forgotten.
        """
        self._cache.evict_adjacency(parent_id)
        for entry in entries:
            if entry.remote_id:
                self._cache.put_adjacency(parent_id, entry.name, entry.remote_id)
        logger.debug("Recorded %d children of %s (%s)", len(entries), parent_path, parent_id)
