"""
Paginated directory listing for CTFile folders.

CTFile pages listings with a numeric cursor: each response carries the number
of positions to advance ("num"); zero means the listing is complete. Servers
have been seen to re-send overlapping windows, so pages are de-duplicated.
"""

import hashlib
import json
import logging

from .exceptions import ProtocolError
from .models import ListingEntry, ListingPage
from .remote_api import RemoteAPI
from .retry import RetryExecutor

logger = logging.getLogger(__name__)

# Hard ceiling on page requests for one folder
MAX_PAGES = 1000


def entry_signature(entry: ListingEntry) -> str:
    """
    Stable de-duplication key for a listing entry.

    Uses the remote id when the server provided one, otherwise a digest of
    name, kind, size and modification time.
    """
    if entry.remote_id:
        return "k:" + entry.remote_id

    mtime = entry.mtime.isoformat() if entry.mtime else ""
    size = "" if entry.size is None else str(entry.size)
    payload = json.dumps([entry.name, entry.kind.value, size, mtime], ensure_ascii=False)
    return "s:" + hashlib.md5(payload.encode("utf-8")).hexdigest()


class ListingAggregator:
    """Fetches every page of a folder listing and flattens the result."""

    def __init__(self, api: RemoteAPI, retry: RetryExecutor, max_pages: int = MAX_PAGES):
        self._api = api
        self._retry = retry
        self._max_pages = max_pages

    def list_all(self, parent_id: str) -> list[ListingEntry]:
        """
        Return all children of a folder, without duplicates.

        Args:
            parent_id: Remote id of the folder to list.

        Returns:
            Entries in server order, first occurrence wins.

        Raises:
            ProtocolError: On a malformed page, or if the page ceiling is hit.
            CTFileError: Any page failure left after retries, unchanged.
        """
        entries: list[ListingEntry] = []
        seen: set[str] = set()
        cursor = 0

        for page_number in range(self._max_pages):
            page = self._retry.run(
                lambda: self._api.list_directory(parent_id, cursor),
                f"list_directory({parent_id}, start={cursor})",
            )
            if not isinstance(page, ListingPage) or page.entries is None:
                raise ProtocolError(
                    f"Malformed listing page for {parent_id}: {page!r}",
                    operation="list_directory",
                )

            if not page.entries:
                break

            added = 0
            for entry in page.entries:
                signature = entry_signature(entry)
                if signature in seen:
                    continue
                seen.add(signature)
                entries.append(entry)
                added += 1

            logger.debug(
                "Listing %s page %d: %d entries, %d new, increment %d",
                parent_id,
                page_number + 1,
                len(page.entries),
                added,
                page.increment,
            )

            if page.increment <= 0:
                break
            # Server repeated a window we already have
            if added == 0:
                break
            cursor += page.increment
        else:
            logger.error(
                "Listing %s did not terminate after %d pages", parent_id, self._max_pages
            )
            raise ProtocolError(
                f"Listing of {parent_id} exceeded {self._max_pages} pages",
                operation="list_directory",
            )

        return entries
