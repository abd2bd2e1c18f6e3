"""
HTTP transport for the CTFile public API.

Implements the RemoteAPI protocol with requests. Every call is a single JSON
POST carrying the session token; responses are JSON objects with a numeric
"code" (200 on success) and a "message". Failures are translated into the
ctfile_fs.exceptions taxonomy here, so the rest of the package never sees a
requests exception.
"""

import logging
from datetime import datetime, timezone
from urllib.parse import urlencode

import requests

from .config import ConnectionConfig, CTFileConfig
from .exceptions import (
    AuthFailureError,
    NotFoundError,
    PermissionDeniedError,
    ProtocolError,
    RateLimitedError,
    RemoteAPIError,
    TransientNetworkError,
)
from .models import (
    DIRECTORY_PREFIX,
    FILE_PREFIX,
    EntryKind,
    ListingEntry,
    ListingPage,
    kind_of,
    make_id,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/v1/public"
DEFAULT_UPLOAD_URL = "https://upload.ctfile.com/web/upload.do"

FOLDER_ICON = "folder"

# Keys that may carry the upload URL in an upload-init response
UPLOAD_URL_KEYS = ("upload_url", "url")
UPLOAD_URL_CONTAINERS = ("data", "result", "upload")
UPLOAD_QUERY_KEYS = ("userid", "maxsize", "folderid", "ctt", "limit", "spd", "key")

ID_KEYS = {
    EntryKind.FILE: ("key", "id", "file_id"),
    EntryKind.DIRECTORY: ("key", "id", "folder_id"),
}


def error_for_status(
    status: int,
    message: str,
    operation: str,
    retry_after: float | None = None,
):
    """Map an HTTP status (or an API "code" using HTTP numbering) to an exception."""
    text = f"{operation}: {message} (code {status})"
    if status == 401:
        return AuthFailureError(text, operation=operation)
    if status == 403:
        return PermissionDeniedError(text, operation=operation)
    if status == 404:
        return NotFoundError(text, operation=operation)
    if status == 429:
        return RateLimitedError(text, retry_after=retry_after, operation=operation)
    if status == 408 or 500 <= status < 600:
        return TransientNetworkError(text, operation=operation)
    return RemoteAPIError(text, code=status, operation=operation)


def _normalize_id(value, kind: EntryKind) -> str | None:
    """Accept "d12", "f12", "12" or 12 and return a prefixed id."""
    if value is None or value == "":
        return None
    text = str(value)
    if text[:1] in (FILE_PREFIX, DIRECTORY_PREFIX) and text[1:].isdigit():
        return text
    if text.isdigit():
        return make_id(kind, text)
    return None


def extract_id(data: dict, kind: EntryKind) -> str | None:
    """Find an object id in a response body, looking one level into "data"/"result"."""
    for key in ID_KEYS[kind]:
        remote_id = _normalize_id(data.get(key), kind)
        if remote_id and kind_of(remote_id) is kind:
            return remote_id
    for container in ("data", "result"):
        nested = data.get(container)
        if isinstance(nested, dict):
            remote_id = extract_id(nested, kind)
            if remote_id:
                return remote_id
    return None


def extract_upload_url(data: dict) -> str | None:
    """
    Find the upload target in an upload-init response.

    Servers answer with a plain "upload_url"/"url", the same keys nested in a
    container, a host + path (+ query) triplet, or bare query parameters for
    the default upload endpoint.
    """
    for key in UPLOAD_URL_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value

    for container in UPLOAD_URL_CONTAINERS:
        nested = data.get(container)
        if isinstance(nested, dict):
            url = extract_upload_url(nested)
            if url:
                return url

    host = data.get("host")
    path = data.get("path") or data.get("endpoint")
    if isinstance(host, str) and host and isinstance(path, str) and path:
        query = data.get("query")
        if isinstance(query, dict):
            qs = urlencode(query)
        elif isinstance(query, str):
            qs = query.lstrip("?")
        else:
            qs = urlencode({k: data[k] for k in UPLOAD_QUERY_KEYS if k in data})
        scheme = "" if host.startswith("http") else "https://"
        return scheme + host.rstrip("/") + path + (f"?{qs}" if qs else "")

    if "userid" in data and "key" in data:
        qs = urlencode({k: data[k] for k in UPLOAD_QUERY_KEYS if data.get(k) is not None})
        return f"{DEFAULT_UPLOAD_URL}?{qs}"

    return None


def parse_listing_entry(item) -> ListingEntry | None:
    """Convert one "results" element of file/list into a ListingEntry."""
    if not isinstance(item, dict) or not item.get("name"):
        return None

    key = str(item.get("key") or "")
    if key[:1] == DIRECTORY_PREFIX or item.get("icon") == FOLDER_ICON:
        kind = EntryKind.DIRECTORY
    else:
        kind = EntryKind.FILE

    size = item.get("size")
    try:
        size = int(size) if size not in (None, "") else None
    except (TypeError, ValueError):
        size = None

    mtime = None
    date = item.get("date")
    if date not in (None, ""):
        try:
            mtime = datetime.fromtimestamp(int(date), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            mtime = None

    return ListingEntry(
        remote_id=_normalize_id(key, kind),
        name=str(item["name"]),
        kind=kind,
        size=None if kind is EntryKind.DIRECTORY else size,
        mtime=mtime,
    )


class CTFileAPI:
    """
    CTFile public API client implementing the RemoteAPI interface.

    Does no retrying and no caching; one method call is one HTTP request.
    """

    def __init__(
        self,
        ctfile_config: CTFileConfig,
        conn_config: ConnectionConfig,
        http_session: requests.Session | None = None,
    ):
        self.ctfile_config = ctfile_config
        self.conn_config = conn_config
        self._http = http_session or requests.Session()
        self._timeout = (conn_config.connect_timeout_seconds, conn_config.timeout_seconds)

    def close(self) -> None:
        self._http.close()

    def _url(self, endpoint: str) -> str:
        return f"{self.ctfile_config.api_base_url}{API_PREFIX}/{endpoint}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.ctfile_config.app_id:
            headers["myapp-id"] = self.ctfile_config.app_id
        return headers

    def _send(self, operation: str, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self._http.request(method, url, timeout=self._timeout, **kwargs)
        except requests.Timeout as e:
            raise TransientNetworkError(
                f"{operation}: request timeout ({url})", operation=operation
            ) from e
        except requests.ConnectionError as e:
            raise TransientNetworkError(
                f"{operation}: connection failed ({url}): {e}", operation=operation
            ) from e
        except requests.RequestException as e:
            raise RemoteAPIError(f"{operation}: request failed: {e}", operation=operation) from e

    def _check_status(self, response: requests.Response, operation: str) -> None:
        if response.status_code < 400:
            return
        message = response.reason or "HTTP error"
        retry_after = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error") or message
            retry_after = body.get("retry_after")
        header = response.headers.get("Retry-After")
        if header:
            try:
                retry_after = float(header)
            except ValueError:
                pass
        raise error_for_status(response.status_code, message, operation, retry_after)

    def _decode(self, response: requests.Response, operation: str) -> dict:
        self._check_status(response, operation)
        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(
                f"{operation}: invalid JSON response (HTTP {response.status_code})",
                operation=operation,
            ) from e

        if not isinstance(data, dict) or "code" not in data:
            raise ProtocolError(f"{operation}: invalid response schema", operation=operation)
        try:
            code = int(data["code"])
        except (TypeError, ValueError) as e:
            raise ProtocolError(
                f"{operation}: non-numeric response code {data['code']!r}", operation=operation
            ) from e

        if code != 200:
            message = str(data.get("message") or "unknown error")
            raise error_for_status(code, message, operation, data.get("retry_after"))
        return data

    def _post(self, endpoint: str, payload: dict, operation: str) -> dict:
        body = {"session": self.ctfile_config.session, **payload}
        logger.debug("POST %s %s", endpoint, payload)
        response = self._send(
            operation, "POST", self._url(endpoint), json=body, headers=self._headers()
        )
        return self._decode(response, operation)

    def list_directory(self, parent_id: str, cursor: int) -> ListingPage:
        data = self._post(
            "file/list",
            {
                "filter": "null",
                "folder_id": parent_id,
                "orderby": "old",
                "start": str(cursor),
                "reload": 0,
            },
            "list_directory",
        )

        if "results" not in data:
            raise ProtocolError(
                f"list_directory: response for {parent_id} has no results field",
                operation="list_directory",
            )
        results = data["results"] or []
        if not isinstance(results, list):
            raise ProtocolError(
                f"list_directory: results for {parent_id} is not a list",
                operation="list_directory",
            )

        entries = []
        for item in results:
            entry = parse_listing_entry(item)
            if entry is None:
                logger.debug("Skipping malformed listing item in %s: %r", parent_id, item)
                continue
            entries.append(entry)

        try:
            increment = int(data.get("num") or 0)
        except (TypeError, ValueError) as e:
            raise ProtocolError(
                f"list_directory: invalid num {data.get('num')!r}", operation="list_directory"
            ) from e

        return ListingPage(entries=entries, increment=increment)

    def create_directory(self, parent_id: str, name: str) -> str:
        data = self._post(
            "folder/create", {"folder_id": parent_id, "name": name}, "create_directory"
        )
        remote_id = extract_id(data, EntryKind.DIRECTORY)
        if remote_id is None:
            raise ProtocolError(
                "create_directory: response has no folder id", operation="create_directory"
            )
        return remote_id

    def init_upload(self, folder_id: str, file_name: str, size: int, checksum: str) -> str:
        data = self._post(
            "file/upload",
            {
                "folder_id": folder_id,
                "file_name": file_name,
                "size": str(size),
                "hash": checksum,
            },
            "init_upload",
        )
        url = extract_upload_url(data)
        if url is None:
            raise ProtocolError(
                "init_upload: upload URL not found in response", operation="init_upload"
            )
        return url

    def transfer_bytes(self, upload_target: str, file_name: str, data: bytes) -> str | None:
        response = self._send(
            "transfer_bytes",
            "POST",
            upload_target,
            data={"name": file_name, "filesize": str(len(data))},
            files={"file": (file_name, data, "application/octet-stream")},
            headers={"Accept": "application/json"},
        )
        body = self._decode(response, "transfer_bytes")
        return extract_id(body, EntryKind.FILE)

    def delete_object(self, remote_id: str) -> None:
        self._post("file/delete", {"ids": [remote_id]}, "delete_object")

    def move_object(self, remote_id: str, target_parent_id: str) -> None:
        self._post(
            "file/move", {"ids": [remote_id], "folder_id": target_parent_id}, "move_object"
        )

    def copy_object(
        self, remote_id: str, target_parent_id: str, new_name: str | None = None
    ) -> str | None:
        payload = {"ids": [remote_id], "folder_id": target_parent_id}
        if new_name is not None:
            payload["name"] = new_name
        data = self._post("file/copy", payload, "copy_object")
        return extract_id(data, EntryKind.FILE)

    def rename_object(self, remote_id: str, new_name: str) -> None:
        self._post("file/rename", {"id": remote_id, "name": new_name}, "rename_object")

    def get_download_url(self, remote_id: str) -> str:
        data = self._post("file/fetch_url", {"file_id": remote_id}, "get_download_url")
        for container in (data, data.get("data"), data.get("result")):
            if isinstance(container, dict):
                for key in ("download_url", "downurl", "url"):
                    value = container.get(key)
                    if isinstance(value, str) and value:
                        return value
        raise ProtocolError(
            "get_download_url: response has no download URL", operation="get_download_url"
        )

    def download(self, url: str) -> bytes:
        response = self._send("download", "GET", url, allow_redirects=True)
        self._check_status(response, "download")
        return response.content
