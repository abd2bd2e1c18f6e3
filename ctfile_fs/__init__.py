__version__ = "0.1.0"

# Public API exports
from .api import CTFileAPI
from .cache import ListingCache
from .client import CTFileClient
from .config import (
    AppConfig,
    CacheConfig,
    ConnectionConfig,
    CTFileConfig,
    LogConfig,
    UploadConfig,
    load_config,
)
from .exceptions import (
    AuthFailureError,
    CTFileError,
    KindMismatchError,
    NotFoundError,
    ParentNotFoundError,
    PermissionDeniedError,
    ProtocolError,
    RateLimitedError,
    RemoteAPIError,
    TargetExistsError,
    TransientNetworkError,
)
from .listing import ListingAggregator
from .models import ROOT_ID, EntryKind, FileStats, ListingEntry, ListingPage
from .path_cache import PathIdCache
from .paths import normalize_path
from .remote_api import RemoteAPI
from .resolver import TreeResolver
from .retry import RetryExecutor
from .writer import WriteCoordinator

__all__ = [
    "__version__",
    # Configuration
    "AppConfig",
    "CTFileConfig",
    "CacheConfig",
    "ConnectionConfig",
    "UploadConfig",
    "LogConfig",
    "load_config",
    # Clients
    "CTFileClient",
    "CTFileAPI",
    "RemoteAPI",
    # Core
    "normalize_path",
    "PathIdCache",
    "ListingCache",
    "ListingAggregator",
    "TreeResolver",
    "RetryExecutor",
    "WriteCoordinator",
    # Models
    "ROOT_ID",
    "EntryKind",
    "FileStats",
    "ListingEntry",
    "ListingPage",
    # Errors
    "CTFileError",
    "NotFoundError",
    "ParentNotFoundError",
    "KindMismatchError",
    "TargetExistsError",
    "ProtocolError",
    "RemoteAPIError",
    "TransientNetworkError",
    "RateLimitedError",
    "AuthFailureError",
    "PermissionDeniedError",
]
