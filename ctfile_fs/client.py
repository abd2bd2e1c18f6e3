"""
Path-based CTFile client.

CTFileClient is the surface the rest of an application talks to: it takes
filesystem paths, resolves them to CTFile ids through the cached tree walk,
performs the identifier-based remote call (with retries) and keeps the caches
consistent afterwards.
"""

import logging

from .api import CTFileAPI
from .cache import ListingCache
from .config import AppConfig
from .exceptions import (
    CTFileError,
    NotFoundError,
    PermissionDeniedError,
    TargetExistsError,
)
from .listing import ListingAggregator
from .models import EntryKind, FileStats, ListingEntry
from .path_cache import PathIdCache
from .paths import (
    ROOT_PATH,
    SEPARATOR,
    is_same_or_child,
    join_path,
    normalize_path,
    split_path,
)
from .remote_api import RemoteAPI
from .resolver import TreeResolver
from .retry import RetryExecutor
from .writer import WriteCoordinator

logger = logging.getLogger(__name__)


class CTFileClient:
    """
    Filesystem-style client over the CTFile API.

    Not safe for concurrent mutation of the same paths from several threads;
    the caches themselves are locked, whole operations are not.
    """

    def __init__(self, config: AppConfig, api: RemoteAPI | None = None):
        self.config = config
        self._owns_api = api is None
        self._api = api if api is not None else CTFileAPI(config.ctfile, config.connection)

        if config.cache.enabled:
            path_ttl = config.cache.path_ttl_seconds
            listing_ttl = config.cache.listing_ttl_seconds
        else:
            path_ttl = listing_ttl = 0

        self.retry = RetryExecutor.from_config(config.connection)
        self.cache = PathIdCache(ttl_seconds=path_ttl, root_id=config.ctfile.root_folder_id)
        self.listings = ListingCache(listing_ttl, maxsize=config.cache.listing_max_entries)
        self._aggregator = ListingAggregator(self._api, self.retry)
        self.resolver = TreeResolver(self.cache, self._aggregator)
        self.writer = WriteCoordinator(
            self._api,
            self.resolver,
            self.cache,
            self.retry,
            auto_create_dirs=config.upload.auto_create_dirs,
            if_exists=config.upload.if_exists,
        )

    def __enter__(self) -> "CTFileClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Drop all cached state and release the HTTP session if we own it."""
        self.cache.invalidate(None)
        self.listings.clear()
        if self._owns_api:
            self._api.close()
        logger.debug("CTFile client closed")

    # Resolution and cache control

    def resolve(self, path: str, expected_kind: EntryKind | None = None) -> str:
        """Resolve a path to its CTFile id. See TreeResolver.resolve."""
        return self.resolver.resolve(path, expected_kind)

    def invalidate(self, path: str | None = None) -> None:
        """Forget cached state for path and everything beneath it (None = all)."""
        if path is None:
            self.cache.invalidate(None)
            self.listings.clear()
            return
        self._forget(normalize_path(path))

    def file_exists(self, path: str) -> bool:
        return self.resolver.exists(path, EntryKind.FILE)

    def directory_exists(self, path: str) -> bool:
        return self.resolver.exists(path, EntryKind.DIRECTORY)

    def _forget(self, path: str) -> None:
        """Invalidate path (subtree) plus the cached listings of path and its parent."""
        parent, _ = split_path(path)
        for p in {path, parent}:
            remote_id = self.cache.last_known_id(p)
            if remote_id is not None:
                self.listings.invalidate(remote_id)
        self.cache.invalidate(path)

    def _forget_listings_above(self, path: str) -> None:
        """Drop the cached listings of every ancestor folder of path."""
        while path != ROOT_PATH:
            path, _ = split_path(path)
            remote_id = self.cache.last_known_id(path)
            if remote_id is not None:
                self.listings.invalidate(remote_id)

    # Reading

    def _listing(self, path: str, folder_id: str, refresh: bool = False) -> list[ListingEntry]:
        entries = None if refresh else self.listings.get(folder_id)
        if entries is None:
            entries = self._aggregator.list_all(folder_id)
            self.listings.put(folder_id, entries)
            self.resolver.record_listing(path, folder_id, entries)
        return entries

    def _stats(self, parent: str, entry: ListingEntry, prefix: str = "") -> FileStats:
        return FileStats(
            name=prefix + entry.name,
            path=join_path(parent, entry.name),
            remote_id=entry.remote_id or "",
            kind=entry.kind,
            size=entry.size or 0,
            mtime=entry.mtime,
        )

    def _list_tree(
        self, path: str, folder_id: str, prefix: str, seen: set[str]
    ) -> list[FileStats]:
        """Depth-first listing: each folder's contents follow its own entry."""
        result = []
        for entry in self._listing(path, folder_id):
            stats = self._stats(path, entry, prefix)
            result.append(stats)
            if entry.kind is EntryKind.DIRECTORY and entry.remote_id and entry.remote_id not in seen:
                seen.add(entry.remote_id)
                result.extend(
                    self._list_tree(stats.path, entry.remote_id, stats.name + SEPARATOR, seen)
                )
        return result

    def list_dir(self, path: str, recursive: bool = False) -> list[FileStats]:
        """
        List the contents of a directory.

        Args:
            path: Remote directory.
            recursive: Also list every subdirectory, depth first. Each entry's
                name is then relative to path (e.g. "drafts/notes.txt");
                ``FileStats.path`` is always absolute.
        """
        path = normalize_path(path)
        logger.debug("Listing directory: %s (recursive=%s)", path, recursive)

        folder_id = self.resolve(path, EntryKind.DIRECTORY)
        if recursive:
            result = self._list_tree(path, folder_id, "", {folder_id})
        else:
            result = [self._stats(path, entry) for entry in self._listing(path, folder_id)]

        logger.debug("Listed %d entries in %s", len(result), path)
        return result

    def get_file_info(self, path: str) -> FileStats:
        """Get metadata for a single file or directory."""
        path = normalize_path(path)
        logger.debug("Getting file info: %s", path)

        if path == ROOT_PATH:
            return FileStats(
                name="",
                path=ROOT_PATH,
                remote_id=self.cache.root_id,
                kind=EntryKind.DIRECTORY,
            )

        remote_id = self.resolve(path)
        parent, name = split_path(path)
        parent_id = self.resolve(parent, EntryKind.DIRECTORY)

        for refresh in (False, True):
            for entry in self._listing(parent, parent_id, refresh=refresh):
                if entry.remote_id == remote_id:
                    return self._stats(parent, entry)

        # The id we had cached is gone from the folder
        self._forget(path)
        raise NotFoundError(f"No such file or directory: {path}", path=path)

    def get_download_url(self, path: str) -> str:
        """Return a direct download link for a file."""
        remote_id = self.resolve(path, EntryKind.FILE)
        return self.retry.run(
            lambda: self._api.get_download_url(remote_id), f"get_download_url({path})"
        )

    def read(self, path: str) -> bytes:
        """Read the full content of a file."""
        path = normalize_path(path)
        logger.debug("Reading file: %s", path)

        url = self.get_download_url(path)
        data = self.retry.run(lambda: self._api.download(url), f"download({path})")

        logger.debug("Read %d bytes from %s", len(data), path)
        return data

    # Mutations

    def write(self, path: str, data: bytes) -> str | None:
        """Upload data to path. See WriteCoordinator.write."""
        path = normalize_path(path)
        remote_id = self.writer.write(path, data)
        self._forget_listings_above(path)
        return remote_id

    def create_directory(self, path: str) -> str:
        """Create a directory and any missing parents; returns its id."""
        path = normalize_path(path)
        logger.debug("Creating directory: %s", path)
        if path == ROOT_PATH:
            return self.cache.root_id

        try:
            remote_id = self.writer.ensure_directory(path)
        except CTFileError as e:
            e.with_context(path=path, operation="create_directory")
            raise

        self._forget_listings_above(path)
        return remote_id

    def delete(self, path: str) -> None:
        """Delete a file (CTFile moves it to the recycle bin)."""
        path = normalize_path(path)
        logger.debug("Deleting file: %s", path)
        self._delete(path, EntryKind.FILE)

    def delete_dir(self, path: str) -> None:
        """Delete a directory and everything in it."""
        path = normalize_path(path)
        logger.debug("Deleting directory: %s", path)
        if path == ROOT_PATH:
            raise PermissionDeniedError("Cannot delete the root directory", path=path)
        self._delete(path, EntryKind.DIRECTORY)

    def _delete(self, path: str, kind: EntryKind) -> None:
        remote_id = self.resolve(path, kind)
        try:
            self.retry.run(lambda: self._api.delete_object(remote_id), f"delete({path})")
        except CTFileError as e:
            e.with_context(path=path, operation="delete")
            raise
        self._forget(path)

    def _prepare_destination(self, source: str, destination: str) -> str:
        """Check the destination is free and return the id of its parent folder."""
        if self.resolver.exists(destination):
            raise TargetExistsError(f"Destination already exists: {destination}", path=destination)
        parent, _ = split_path(destination)
        return self.writer.resolve_parent(parent, destination)

    def move(self, source: str, destination: str) -> None:
        """Move and/or rename a file or directory."""
        source = normalize_path(source)
        destination = normalize_path(destination)
        logger.debug("Moving: %s -> %s", source, destination)

        if source == destination:
            return
        if source == ROOT_PATH:
            raise PermissionDeniedError("Cannot move the root directory", path=source)
        if is_same_or_child(destination, source):
            raise ValueError(f"Cannot move {source} into itself ({destination})")

        remote_id = self.resolve(source)
        source_parent, source_name = split_path(source)
        dest_parent, dest_name = split_path(destination)
        dest_parent_id = self._prepare_destination(source, destination)

        moved = False
        try:
            if source_parent != dest_parent:
                self.retry.run(
                    lambda: self._api.move_object(remote_id, dest_parent_id),
                    f"move({source}, {destination})",
                )
                moved = True
            if source_name != dest_name:
                self.retry.run(
                    lambda: self._api.rename_object(remote_id, dest_name),
                    f"rename({source}, {destination})",
                )
        except CTFileError as e:
            if moved:
                # The object already sits under the new parent with its old name
                self._forget(source)
                self._forget(join_path(dest_parent, source_name))
            e.with_context(path=source, operation="move")
            raise

        self._forget(source)
        self._forget(destination)
        self._forget_listings_above(destination)
        self.cache.put(destination, remote_id)
        logger.debug("Moved: %s -> %s", source, destination)

    def copy(self, source: str, destination: str) -> str | None:
        """Copy a file; returns the new file's id when the server reveals it."""
        source = normalize_path(source)
        destination = normalize_path(destination)
        logger.debug("Copying: %s -> %s", source, destination)

        remote_id = self.resolve(source, EntryKind.FILE)
        _, source_name = split_path(source)
        _, dest_name = split_path(destination)
        dest_parent_id = self._prepare_destination(source, destination)
        new_name = dest_name if dest_name != source_name else None

        try:
            new_id = self.retry.run(
                lambda: self._api.copy_object(remote_id, dest_parent_id, new_name),
                f"copy({source}, {destination})",
            )
        except CTFileError as e:
            e.with_context(path=source, operation="copy")
            raise

        self._forget(destination)
        self._forget_listings_above(destination)
        if new_id:
            self.cache.put(destination, new_id)
        return new_id
