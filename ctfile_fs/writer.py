"""
Two-phase upload of file content to a CTFile path.

CTFile uploads happen in two requests: an "upload init" call against the API
that returns a short-lived upload URL for a given folder, then a multipart POST
of the bytes to that URL. WriteCoordinator adds the path side: finding (or
creating) the destination folder and keeping the path cache in step.
"""

import hashlib
import logging

from .exceptions import (
    CTFileError,
    KindMismatchError,
    NotFoundError,
    ParentNotFoundError,
    TargetExistsError,
)
from .models import EntryKind, kind_of
from .path_cache import PathIdCache
from .paths import ROOT_PATH, join_path, normalize_path, path_segments, split_path
from .remote_api import RemoteAPI
from .resolver import TreeResolver
from .retry import RetryExecutor

logger = logging.getLogger(__name__)

INVALID_NAMES = ("", ".", "..")


class WriteCoordinator:
    """Resolve parent -> init upload -> transfer bytes -> update cache."""

    def __init__(
        self,
        api: RemoteAPI,
        resolver: TreeResolver,
        cache: PathIdCache,
        retry: RetryExecutor,
        auto_create_dirs: bool = True,
        if_exists: str = "skip",
    ):
        self._api = api
        self._resolver = resolver
        self._cache = cache
        self._retry = retry
        self.auto_create_dirs = auto_create_dirs
        self.if_exists = if_exists

    def write(self, path: str, data: bytes) -> str | None:
        """
        Upload data to path.

        Args:
            path: Destination file path.
            data: Full file content.

        Returns:
            The id of the written file if the server revealed it (or of the
            existing file when if_exists is "skip"), else None.

        Raises:
            ValueError: If path does not name a file.
            ParentNotFoundError: If the parent folder is missing and
                auto_create_dirs is off.
            TargetExistsError: If the file exists and if_exists is "error".
            KindMismatchError: If a folder already sits at path.
            CTFileError: Any remote failure, after retries.
        """
        path = normalize_path(path)
        parent, name = split_path(path)
        if name in INVALID_NAMES:
            raise ValueError(f"Invalid file name in path: {path!r}")

        logger.debug("Writing %d bytes to %s", len(data), path)

        try:
            folder_id = self.resolve_parent(parent, path)

            existing_id = self._existing_target(path)
            if existing_id is not None:
                if self.if_exists == "skip":
                    logger.info("File already exists, skipping upload: %s", path)
                    return existing_id
                if self.if_exists == "error":
                    raise TargetExistsError(f"File already exists: {path}", path=path)

            checksum = hashlib.md5(data).hexdigest()
            upload_target = self._retry.run(
                lambda: self._api.init_upload(folder_id, name, len(data), checksum),
                f"init_upload({path})",
            )
            new_id = self._retry.run(
                lambda: self._api.transfer_bytes(upload_target, name, data),
                f"transfer_bytes({path})",
            )
        except CTFileError as e:
            e.with_context(path=path, operation="write")
            raise

        # Commit: the folder's contents changed
        self._cache.evict_adjacency(folder_id)
        if new_id:
            self._cache.put(path, new_id)
        else:
            self._cache.invalidate(path)

        logger.debug("Wrote %d bytes to %s (id=%s)", len(data), path, new_id)
        return new_id

    def ensure_directory(self, path: str) -> str:
        """
        Return the id of the folder at path, creating missing folders.

        Each created folder is registered in the path cache right away.

        Raises:
            KindMismatchError: If a file sits where a folder is needed.
        """
        path = normalize_path(path)
        current_id = self._cache.root_id
        current_path = ROOT_PATH
        creating = False

        for segment in path_segments(path):
            sub_path = join_path(current_path, segment)

            if not creating:
                try:
                    current_id = self._resolver.resolve(sub_path, EntryKind.DIRECTORY)
                    current_path = sub_path
                    continue
                except NotFoundError:
                    # Everything below a missing folder is missing as well
                    creating = True

            parent_id = current_id
            current_id = self._retry.run(
                lambda: self._api.create_directory(parent_id, segment),
                f"create_directory({sub_path})",
            )
            if kind_of(current_id) is not EntryKind.DIRECTORY:
                raise KindMismatchError(
                    f"Server returned non-folder id {current_id} for {sub_path}",
                    path=sub_path,
                    expected=EntryKind.DIRECTORY,
                    actual=EntryKind.FILE,
                )
            self._cache.put(sub_path, current_id)
            logger.info("Created folder %s (id=%s)", sub_path, current_id)
            current_path = sub_path

        return current_id

    def resolve_parent(self, parent: str, path: str) -> str:
        """Id of the folder that will hold path, created if allowed."""
        try:
            return self._resolver.resolve(parent, EntryKind.DIRECTORY)
        except NotFoundError as e:
            if not self.auto_create_dirs:
                raise ParentNotFoundError(
                    f"Parent folder does not exist: {parent}", path=path
                ) from e
        logger.debug("Parent %s missing, creating it", parent)
        return self.ensure_directory(parent)

    def _existing_target(self, path: str) -> str | None:
        """Id of a file already at path, None if nothing is there."""
        try:
            return self._resolver.resolve(path, EntryKind.FILE)
        except NotFoundError:
            return None
        except KindMismatchError as e:
            raise KindMismatchError(
                f"A folder already exists at {path}",
                path=path,
                expected=EntryKind.FILE,
                actual=EntryKind.DIRECTORY,
            ) from e
