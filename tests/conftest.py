"""
Shared pytest fixtures for ctfile-fs tests.
"""

import itertools
from collections.abc import Generator
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ctfile_fs.client import CTFileClient
from ctfile_fs.config import (
    AppConfig,
    CacheConfig,
    ConnectionConfig,
    CTFileConfig,
    LogConfig,
    UploadConfig,
)
from ctfile_fs.exceptions import NotFoundError, ProtocolError
from ctfile_fs.listing import ListingAggregator
from ctfile_fs.models import ROOT_ID, EntryKind, ListingEntry, ListingPage
from ctfile_fs.path_cache import PathIdCache
from ctfile_fs.resolver import TreeResolver
from ctfile_fs.retry import RetryExecutor
from ctfile_fs.writer import WriteCoordinator


class FakeRemote:
    """
    In-memory CTFile store implementing the RemoteAPI protocol.

    Objects live in a flat dict keyed by id, like the real service. Every call
    is recorded in ``calls``; exceptions queued with ``fail_next`` are raised
    (in order) by the next calls to that method before it does any work.
    """

    UPLOAD_HOST = "https://upload.test/"
    DOWNLOAD_HOST = "https://download.test/"

    def __init__(self, page_size: int = 100, reveal_ids: bool = True):
        self.page_size = page_size
        self.reveal_ids = reveal_ids
        self.calls: list[tuple] = []
        self.objects: dict[str, dict] = {
            ROOT_ID: {"name": "", "kind": EntryKind.DIRECTORY, "parent": None}
        }
        self._failures: dict[str, list[Exception]] = {}
        self._uploads: dict[str, dict] = {}
        self._counter = itertools.count(1)

    # Test helpers

    def fail_next(self, method: str, *errors: Exception) -> None:
        self._failures.setdefault(method, []).extend(errors)

    def _enter(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def _new_id(self, kind: EntryKind) -> str:
        prefix = "f" if kind is EntryKind.FILE else "d"
        return f"{prefix}{next(self._counter)}"

    def add_folder(self, parent_id: str, name: str) -> str:
        folder_id = self._new_id(EntryKind.DIRECTORY)
        self.objects[folder_id] = {"name": name, "kind": EntryKind.DIRECTORY, "parent": parent_id}
        return folder_id

    def add_file(self, parent_id: str, name: str, data: bytes = b"") -> str:
        file_id = self._new_id(EntryKind.FILE)
        self.objects[file_id] = {
            "name": name,
            "kind": EntryKind.FILE,
            "parent": parent_id,
            "data": data,
            "mtime": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        return file_id

    def children(self, parent_id: str) -> list[str]:
        return [oid for oid, obj in self.objects.items() if obj["parent"] == parent_id]

    def find(self, parent_id: str, name: str) -> str | None:
        for oid in self.children(parent_id):
            if self.objects[oid]["name"] == name:
                return oid
        return None

    def _require(self, remote_id: str) -> dict:
        obj = self.objects.get(remote_id)
        if obj is None:
            raise NotFoundError(f"Object {remote_id} not found (code 404)")
        return obj

    # RemoteAPI

    def list_directory(self, parent_id: str, cursor: int) -> ListingPage:
        self._enter("list_directory", parent_id, cursor)
        if self._require(parent_id)["kind"] is not EntryKind.DIRECTORY:
            raise ProtocolError(f"{parent_id} is not a folder")

        children = self.children(parent_id)
        window = children[cursor : cursor + self.page_size]
        entries = []
        for oid in window:
            obj = self.objects[oid]
            is_file = obj["kind"] is EntryKind.FILE
            entries.append(
                ListingEntry(
                    remote_id=oid,
                    name=obj["name"],
                    kind=obj["kind"],
                    size=len(obj["data"]) if is_file else None,
                    mtime=obj.get("mtime"),
                )
            )
        # Like the real service, the last page reports no further increment
        more = cursor + len(window) < len(children)
        return ListingPage(entries=entries, increment=len(entries) if more else 0)

    def create_directory(self, parent_id: str, name: str) -> str:
        self._enter("create_directory", parent_id, name)
        self._require(parent_id)
        return self.add_folder(parent_id, name)

    def init_upload(self, folder_id: str, file_name: str, size: int, checksum: str) -> str:
        self._enter("init_upload", folder_id, file_name, size, checksum)
        self._require(folder_id)
        token = f"u{len(self._uploads) + 1}"
        self._uploads[token] = {"folder_id": folder_id, "name": file_name, "size": size}
        return self.UPLOAD_HOST + token

    def transfer_bytes(self, upload_target: str, file_name: str, data: bytes) -> str | None:
        self._enter("transfer_bytes", upload_target, file_name, len(data))
        upload = self._uploads.pop(upload_target.removeprefix(self.UPLOAD_HOST))
        file_id = self.add_file(upload["folder_id"], file_name, data)
        return file_id if self.reveal_ids else None

    def delete_object(self, remote_id: str) -> None:
        self._enter("delete_object", remote_id)
        self._require(remote_id)
        doomed = [remote_id]
        while doomed:
            oid = doomed.pop()
            doomed.extend(self.children(oid))
            del self.objects[oid]

    def move_object(self, remote_id: str, target_parent_id: str) -> None:
        self._enter("move_object", remote_id, target_parent_id)
        self._require(target_parent_id)
        self._require(remote_id)["parent"] = target_parent_id

    def copy_object(
        self, remote_id: str, target_parent_id: str, new_name: str | None = None
    ) -> str | None:
        self._enter("copy_object", remote_id, target_parent_id, new_name)
        source = self._require(remote_id)
        new_id = self.add_file(target_parent_id, new_name or source["name"], source["data"])
        return new_id if self.reveal_ids else None

    def rename_object(self, remote_id: str, new_name: str) -> None:
        self._enter("rename_object", remote_id, new_name)
        self._require(remote_id)["name"] = new_name

    def get_download_url(self, remote_id: str) -> str:
        self._enter("get_download_url", remote_id)
        self._require(remote_id)
        return self.DOWNLOAD_HOST + remote_id

    def download(self, url: str) -> bytes:
        self._enter("download", url)
        return self._require(url.removeprefix(self.DOWNLOAD_HOST))["data"]


@pytest.fixture
def fake_remote() -> FakeRemote:
    """Creates an empty in-memory CTFile store."""
    return FakeRemote()


@pytest.fixture
def populated_remote(fake_remote: FakeRemote) -> FakeRemote:
    """
    Creates a store with this tree:

        /docs/report.txt
        /docs/drafts/
        /a/x.txt
        /a2/y.txt
    """
    docs = fake_remote.add_folder(ROOT_ID, "docs")
    fake_remote.add_file(docs, "report.txt", b"quarterly numbers")
    fake_remote.add_folder(docs, "drafts")
    a = fake_remote.add_folder(ROOT_ID, "a")
    fake_remote.add_file(a, "x.txt", b"x")
    a2 = fake_remote.add_folder(ROOT_ID, "a2")
    fake_remote.add_file(a2, "y.txt", b"y")
    fake_remote.calls.clear()
    return fake_remote


@pytest.fixture
def retry() -> RetryExecutor:
    """Creates a RetryExecutor that never actually sleeps."""
    return RetryExecutor(max_retries=3, base_delay_ms=10, sleep=lambda seconds: None)


@pytest.fixture
def path_cache() -> PathIdCache:
    """Creates a PathIdCache with a one-hour TTL."""
    return PathIdCache(ttl_seconds=3600)


@pytest.fixture
def resolver(populated_remote: FakeRemote, retry: RetryExecutor, path_cache: PathIdCache):
    """Creates a TreeResolver over the populated fake store."""
    return TreeResolver(path_cache, ListingAggregator(populated_remote, retry))


@pytest.fixture
def writer(populated_remote, resolver, path_cache, retry) -> WriteCoordinator:
    """Creates a WriteCoordinator with default settings (auto-create, skip)."""
    return WriteCoordinator(populated_remote, resolver, path_cache, retry)


@pytest.fixture
def conn_config() -> ConnectionConfig:
    """Creates a ConnectionConfig whose retries do not wait."""
    return ConnectionConfig(
        timeout_seconds=30,
        connect_timeout_seconds=10,
        retry_attempts=3,
        retry_base_delay_ms=0,
        retry_backoff_multiplier=2.0,
        retry_max_delay_ms=0,
    )


@pytest.fixture
def ctfile_config() -> CTFileConfig:
    """Creates a standard CTFileConfig for testing."""
    return CTFileConfig(session="test-session", api_base_url="https://rest.ctfile.test")


@pytest.fixture
def app_config(ctfile_config: CTFileConfig, conn_config: ConnectionConfig) -> AppConfig:
    """Creates a complete AppConfig for testing."""
    return AppConfig(
        ctfile=ctfile_config,
        cache=CacheConfig(enabled=True, path_ttl_seconds=3600, listing_ttl_seconds=60),
        connection=conn_config,
        upload=UploadConfig(auto_create_dirs=True, if_exists="skip"),
        logging=LogConfig(level="INFO", file="", console=False),
    )


@pytest.fixture
def client(app_config: AppConfig, populated_remote: FakeRemote) -> Generator[CTFileClient, None, None]:
    """Creates a CTFileClient backed by the populated fake store."""
    ctfile_client = CTFileClient(app_config, api=populated_remote)
    yield ctfile_client
    ctfile_client.close()


@pytest.fixture
def tmp_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Creates a temporary INI configuration file for config tests.

    Returns:
        Path to the temporary config file.
    """
    config_content = """[ctfile]
session = ini-session
app_id = app-123
api_base_url = https://api.example.test/
root_folder_id = d42

[cache]
enabled = true
path_ttl_seconds = 120
listing_ttl_seconds = 15
listing_max_entries = 64

[connection]
timeout_seconds = 45
connect_timeout_seconds = 5
retry_attempts = 5
retry_base_delay_ms = 200
retry_backoff_multiplier = 3.0
retry_max_delay_ms = 5000

[upload]
auto_create_dirs = false
if_exists = error

[logging]
level = DEBUG
file = test.log
console = false
"""
    config_path = tmp_path / "test_config.ini"
    config_path.write_text(config_content, encoding="utf-8")
    yield config_path


@pytest.fixture
def minimal_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Creates a minimal INI configuration file with only required fields.

    Returns:
        Path to the temporary config file.
    """
    config_path = tmp_path / "minimal_config.ini"
    config_path.write_text("[ctfile]\nsession = minimal-session\n", encoding="utf-8")
    yield config_path
