"""
Vertex Client - Access the Vertex torrent management server's HTTP API.

Provides session handling with cookie reuse and login fallback, uniform
timeout/retry/cancellation for every call, and typed records for servers,
downloaders, RSS tasks, rules, torrents and history.
"""

from .auth import AuthState, digest_password
from .client import VertexClient
from .config import Config, TransportConfig
from .errors import (
    APIError,
    AuthenticationError,
    CancelledError,
    ConfigurationError,
    HTTPError,
    MalformedResponseError,
    SessionParseError,
    TransportError,
    VertexError,
)
from .models import (
    DeleteRule,
    DownloaderConfig,
    DownloaderInfo,
    HistoryPage,
    RssConfig,
    RssRule,
    Server,
    Torrent,
    TorrentHistory,
    TorrentListOptions,
    TorrentPage,
    VnstatInfo,
)
from .options import with_auth, with_debug, with_retry, with_timeout

__version__ = "0.1.0"
__all__ = [
    "VertexClient",
    "Config",
    "TransportConfig",
    "AuthState",
    "digest_password",
    "with_auth",
    "with_debug",
    "with_retry",
    "with_timeout",
    "VertexError",
    "ConfigurationError",
    "SessionParseError",
    "TransportError",
    "CancelledError",
    "HTTPError",
    "MalformedResponseError",
    "APIError",
    "AuthenticationError",
    "Server",
    "VnstatInfo",
    "DownloaderConfig",
    "DownloaderInfo",
    "RssConfig",
    "RssRule",
    "DeleteRule",
    "TorrentHistory",
    "HistoryPage",
    "Torrent",
    "TorrentPage",
    "TorrentListOptions",
]
