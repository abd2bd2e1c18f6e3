"""
Remote API protocol definition.

Defines the flat, identifier-based surface the core needs from CTFile.
CTFileAPI implements it over HTTP; tests use an in-memory fake.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import ListingPage


@runtime_checkable
class RemoteAPI(Protocol):
    """Protocol for the identifier-based CTFile operations.

    Every method performs exactly one remote request and raises a
    ctfile_fs.exceptions.CTFileError subclass on failure. None of them retry;
    retrying is the caller's business.
    """

    def list_directory(self, parent_id: str, cursor: int) -> ListingPage:
        """List one page of a folder starting at ``cursor``."""
        ...

    def create_directory(self, parent_id: str, name: str) -> str:
        """Create folder ``name`` inside ``parent_id`` and return its id."""
        ...

    def init_upload(self, folder_id: str, file_name: str, size: int, checksum: str) -> str:
        """Ask for an upload target; returns the URL to send the bytes to."""
        ...

    def transfer_bytes(self, upload_target: str, file_name: str, data: bytes) -> str | None:
        """Send file content to an upload target.

        Returns:
            The new file id when the server reveals it, else None.
        """
        ...

    def delete_object(self, remote_id: str) -> None:
        """Delete (move to recycle bin) a file or folder."""
        ...

    def move_object(self, remote_id: str, target_parent_id: str) -> None:
        """Move a file or folder into another folder."""
        ...

    def copy_object(
        self, remote_id: str, target_parent_id: str, new_name: str | None = None
    ) -> str | None:
        """Copy a file into another folder, optionally renaming the copy."""
        ...

    def rename_object(self, remote_id: str, new_name: str) -> None:
        """Rename a file or folder in place."""
        ...

    def get_download_url(self, remote_id: str) -> str:
        """Return a short-lived direct download link for a file."""
        ...

    def download(self, url: str) -> bytes:
        """Fetch the full content behind a download link."""
        ...
