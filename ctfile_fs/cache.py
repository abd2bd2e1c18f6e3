import threading

from cachetools import TTLCache

from .models import ListingEntry


class ListingCache:
    """
    Cache for folder listings, keyed by folder id.

    Thread-safe wrapper around cachetools.TTLCache. Used by the client to
    answer list_dir/get_file_info without re-listing the same folder.
    """

    def __init__(self, ttl_seconds: int, maxsize: int = 1024):
        self.ttl_seconds = ttl_seconds
        self._cache: TTLCache = TTLCache(maxsize=max(1, maxsize), ttl=ttl_seconds)
        self._lock = threading.Lock()

    def get(self, folder_id: str) -> list[ListingEntry] | None:
        """
        Retrieve a folder listing if cached and not expired.

        Args:
            folder_id: The folder id to look up.

        Returns:
            A copy of the cached listing, or None.
        """
        with self._lock:
            entries = self._cache.get(folder_id)
            return list(entries) if entries is not None else None

    def put(self, folder_id: str, entries: list[ListingEntry]) -> None:
        """
        Cache a folder listing.

        Args:
            folder_id: The folder id.
            entries: The complete listing of that folder.
        """
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._cache[folder_id] = list(entries)

    def invalidate(self, folder_id: str) -> None:
        """
        Invalidate the listing of one folder.

        Args:
            folder_id: The folder id to invalidate.
        """
        with self._lock:
            self._cache.pop(folder_id, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
