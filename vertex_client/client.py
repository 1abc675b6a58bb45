"""
Python client for the Vertex torrent management API.

Provides programmatic access to:
- Session handling (reuse of a saved session, falling back to login)
- Server monitoring (CPU, memory, disk, network speed, vnstat)
- Downloader, RSS task, RSS rule and delete rule management
- Torrent listing, details, linking and deletion
- RSS push history

Usage:
    from vertex_client import VertexClient, with_auth, with_timeout

    client = VertexClient.connect(
        "http://127.0.0.1:3000",
        with_auth("admin", "password", cookies=saved_session),
        with_timeout(15),
    )
    for downloader in client.list_downloaders():
        print(downloader.alias, downloader.status)

    saved_session = client.export_session()

Every operation accepts keyword-only `cancel` (a threading.Event) and
`timeout` (seconds) arguments that apply to each request it makes.
"""

import threading
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from .auth import AuthState, Authenticator, PROBE_PATH
from .dispatcher import Dispatcher
from .errors import AuthenticationError, MalformedResponseError
from .logger import logger
from .models import (
    DeleteRule,
    DownloaderConfig,
    DownloaderInfo,
    HistoryPage,
    RssConfig,
    RssRule,
    Server,
    Torrent,
    TorrentListOptions,
    TorrentPage,
    VnstatInfo,
)
from .options import ClientOption, ClientOptions
from .session import SessionStore


def _as_dict(data: Any, what: str) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected an object for {what}, got {type(data).__name__}")
    return data


def _as_list(data: Any, what: str) -> List[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise MalformedResponseError(f"Expected a list for {what}, got {type(data).__name__}")
    return data


class VertexClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *options: ClientOption,
        session: Optional[requests.Session] = None,
    ):
        opts = ClientOptions.from_env(base_url).apply(*options)
        self.config = opts.freeze()
        self.store = SessionStore(self.config.base_url)
        if opts.cookies:
            self.store.import_(opts.cookies)
        self.dispatcher = Dispatcher(self.config, self.store, session=session)
        self.authenticator = Authenticator(self.dispatcher, self.store, opts.username, opts.password)

    @classmethod
    def connect(cls, base_url: Optional[str] = None, *options: ClientOption, **kwargs) -> "VertexClient":
        """Create a client and establish an authenticated session."""
        client = cls(base_url, *options, **kwargs)
        try:
            client.authenticate()
        except Exception:
            client.close()
            raise
        return client

    def close(self) -> None:
        self.dispatcher.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def base_url(self) -> str:
        return self.config.base_url

    # -------------------------------------------------------------------------
    # Session and Auth Methods
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return self.authenticator.state

    def authenticate(self, *, cancel: Optional[threading.Event] = None, timeout: Optional[float] = None) -> AuthState:
        """Reuse the current session if the server accepts it, otherwise log in."""
        return self.authenticator.authenticate(cancel=cancel, timeout=timeout)

    def login(
        self,
        username: str,
        password: str,
        *,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Log in with a username and cleartext password (sent as an MD5 digest)."""
        self.authenticator.login(username, password, cancel=cancel, timeout=timeout)

    def export_session(self) -> str:
        """The current session as a Cookie header string, or "" if there is none."""
        return self.store.export()

    def import_session(self, blob: str) -> None:
        """
        Replace the current session. The client must authenticate() again
        before resource operations are allowed.
        """
        self.store.import_(blob)
        self.authenticator.reset()

    def has_session(self) -> bool:
        return self.store.has_session()

    def get_user(self, **kwargs) -> Any:
        """Current user info; this is also the session probe."""
        return self._get(PROBE_PATH, **kwargs)

    # -------------------------------------------------------------------------
    # Dispatch helpers
    # -------------------------------------------------------------------------

    def _require_auth(self) -> None:
        if not self.authenticator.is_authenticated:
            raise AuthenticationError(
                f"Client is not authenticated (state: {self.authenticator.state.value}); call authenticate() first"
            )

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        self._require_auth()
        return self.dispatcher.get(path, params, **kwargs)

    def _post(self, path: str, body: Any = None, **kwargs) -> Any:
        self._require_auth()
        return self.dispatcher.post(path, body, **kwargs)

    # -------------------------------------------------------------------------
    # Server Methods
    # -------------------------------------------------------------------------

    def list_servers(self, **kwargs) -> List[Server]:
        """List all servers managed by Vertex."""
        return Server.from_list(self._get("/api/server/list", **kwargs))

    def get_server_net_speed(self, **kwargs) -> Dict[str, Any]:
        """Real-time network speed of each server."""
        return _as_dict(self._get("/api/server/netSpeed", **kwargs), "net speed")

    def get_server_cpu_use(self, **kwargs) -> Dict[str, Any]:
        return _as_dict(self._get("/api/server/cpuUse", **kwargs), "CPU use")

    def get_server_memory_use(self, **kwargs) -> Dict[str, Any]:
        return _as_dict(self._get("/api/server/memoryUse", **kwargs), "memory use")

    def get_server_disk_use(self, **kwargs) -> Dict[str, Any]:
        return _as_dict(self._get("/api/server/diskUse", **kwargs), "disk use")

    def get_server_vnstat(self, server_id: str, **kwargs) -> VnstatInfo:
        """vnstat traffic statistics for one server."""
        return VnstatInfo.from_dict(self._get("/api/server/vnstat", {"id": server_id}, **kwargs))

    # -------------------------------------------------------------------------
    # Downloader Methods
    # -------------------------------------------------------------------------

    def list_downloaders(self, **kwargs) -> List[DownloaderInfo]:
        """List all downloaders with their live status."""
        return DownloaderInfo.from_list(self._get("/api/downloader/list", **kwargs))

    def find_downloader_by_ip(self, ip: str, **kwargs) -> Optional[DownloaderInfo]:
        """
        Find the downloader whose client URL points at the given host.

        Args:
            ip: IP address or hostname, without port

        Returns:
            The first matching downloader, or None
        """
        for downloader in self.list_downloaders(**kwargs):
            try:
                host = urlparse(downloader.client_url or "").hostname
            except ValueError:
                continue
            if host == ip:
                return downloader
        return None

    def find_downloaders_by_alias(self, search_key: str, **kwargs) -> List[DownloaderInfo]:
        """Downloaders whose alias contains search_key."""
        return [d for d in self.list_downloaders(**kwargs) if search_key in (d.alias or "")]

    def add_downloader(self, config: DownloaderConfig, **kwargs) -> None:
        self._post("/api/downloader/add", config, **kwargs)

    def modify_downloader(self, config: DownloaderConfig, **kwargs) -> None:
        self._post("/api/downloader/modify", config, **kwargs)

    def delete_downloader(self, downloader_id: str, **kwargs) -> None:
        self._post("/api/downloader/delete", {"id": downloader_id}, **kwargs)

    # -------------------------------------------------------------------------
    # RSS Methods
    # -------------------------------------------------------------------------

    def list_rss(self, **kwargs) -> List[RssConfig]:
        """List all RSS tasks."""
        return RssConfig.from_list(self._get("/api/rss/list", **kwargs))

    def find_rss_by_alias(self, search_key: str, **kwargs) -> List[RssConfig]:
        """RSS tasks whose alias contains search_key."""
        return [r for r in self.list_rss(**kwargs) if search_key in (r.alias or "")]

    def add_rss(self, config: RssConfig, **kwargs) -> None:
        self._post("/api/rss/add", config, **kwargs)

    def modify_rss(self, config: RssConfig, **kwargs) -> None:
        self._post("/api/rss/modify", config, **kwargs)

    def delete_rss(self, rss_id: str, **kwargs) -> None:
        self._post("/api/rss/delete", {"id": rss_id}, **kwargs)

    def dry_run_rss(self, config: RssConfig, **kwargs) -> List[Any]:
        """Run an RSS task without adding anything; returns the torrents it would pick."""
        return _as_list(self._post("/api/rss/dryrun", config, **kwargs), "dry run")

    # -------------------------------------------------------------------------
    # RSS Rule Methods
    # -------------------------------------------------------------------------

    def list_rss_rules(self, **kwargs) -> List[RssRule]:
        return RssRule.from_list(self._get("/api/rssRule/list", **kwargs))

    def add_rss_rule(self, rule: RssRule, **kwargs) -> None:
        self._post("/api/rssRule/add", rule, **kwargs)

    def modify_rss_rule(self, rule: RssRule, **kwargs) -> None:
        self._post("/api/rssRule/modify", rule, **kwargs)

    def delete_rss_rule(self, rule_id: str, **kwargs) -> None:
        self._post("/api/rssRule/delete", {"id": rule_id}, **kwargs)

    # -------------------------------------------------------------------------
    # Delete Rule Methods
    # -------------------------------------------------------------------------

    def list_delete_rules(self, **kwargs) -> List[DeleteRule]:
        return DeleteRule.from_list(self._get("/api/deleteRule/list", **kwargs))

    def add_delete_rule(self, rule: DeleteRule, **kwargs) -> None:
        self._post("/api/deleteRule/add", rule, **kwargs)

    def modify_delete_rule(self, rule: DeleteRule, **kwargs) -> None:
        self._post("/api/deleteRule/modify", rule, **kwargs)

    def delete_delete_rule(self, rule_id: str, **kwargs) -> None:
        self._post("/api/deleteRule/delete", {"id": rule_id}, **kwargs)

    # -------------------------------------------------------------------------
    # History Methods
    # -------------------------------------------------------------------------

    def list_rss_history(self, page: int = 1, length: int = 10, rss_id: Optional[str] = None, **kwargs) -> HistoryPage:
        """
        List torrents pushed by RSS tasks.

        Args:
            page: 1-based page number
            length: Page size
            rss_id: Only history of this RSS task (optional)
        """
        if page < 1 or length < 1:
            raise ValueError("page and length must be >= 1")
        params = {
            "page": page,
            "length": length,
            "type": "rss",
            "rss": rss_id or None,
        }
        return HistoryPage.from_dict(self._get("/api/torrent/listHistory", params, **kwargs))

    # -------------------------------------------------------------------------
    # Torrent Methods
    # -------------------------------------------------------------------------

    def list_torrents(self, options: Optional[TorrentListOptions] = None, **kwargs) -> TorrentPage:
        """
        List torrents across downloaders with paging, search and sorting.

        When options.client_list is empty every downloader is queried.
        """
        options = options or TorrentListOptions()
        client_ids = list(options.client_list)
        if not client_ids:
            client_ids = [d.id for d in self.list_downloaders(**kwargs)]
            logger.debug(f"Listing torrents of all {len(client_ids)} downloaders")
        return TorrentPage.from_dict(self._get("/api/torrent/list", options.to_params(client_ids), **kwargs))

    def get_torrent_info(self, info_hash: str, **kwargs) -> Torrent:
        return Torrent.from_dict(self._get("/api/torrent/info", {"hash": info_hash}, **kwargs))

    def link_torrent(self, payload: Any, **kwargs) -> None:
        """Create soft/hard links for a torrent's files. The payload is passed through as-is."""
        self._post("/api/torrent/link", payload, **kwargs)

    def delete_torrent(self, info_hash: str, client_id: str, files: Optional[List[Any]] = None, **kwargs) -> None:
        """
        Remove a torrent from a downloader.

        Args:
            info_hash: Torrent hash
            client_id: Downloader id
            files: Files to delete along with the torrent; empty keeps the data
        """
        payload = {
            "hash": info_hash,
            "clientId": client_id,
            "files": list(files or []),
        }
        self._post("/api/torrent/deleteTorrent", payload, **kwargs)
