"""
Function options for building a VertexClient.

Each option is a callable that mutates a ClientOptions before the client
freezes it into a TransportConfig:

    client = VertexClient(
        "http://127.0.0.1:3000",
        with_auth("admin", "password", cookies=saved_blob),
        with_timeout(15),
        with_debug(),
    )
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .config import Config, TransportConfig
from .errors import ConfigurationError


@dataclass
class ClientOptions:
    base_url: str = Config.VERTEX_HOST
    timeout: float = Config.TIMEOUT
    retry_count: int = Config.RETRY_COUNT
    retry_min_wait: float = Config.RETRY_MIN_WAIT
    retry_max_wait: float = Config.RETRY_MAX_WAIT
    debug: bool = Config.VERTEX_DEBUG
    username: str = ""
    password: str = ""
    cookies: str = ""

    def apply(self, *options: "ClientOption") -> "ClientOptions":
        for option in options:
            option(self)
        return self

    def freeze(self) -> TransportConfig:
        return TransportConfig(
            base_url=self.base_url,
            timeout=self.timeout,
            retry_count=self.retry_count,
            retry_min_wait=self.retry_min_wait,
            retry_max_wait=self.retry_max_wait,
            debug=self.debug,
        )

    @classmethod
    def from_env(cls, base_url: Optional[str] = None) -> "ClientOptions":
        """Options seeded from Config, including any credentials it carries."""
        return cls(
            base_url=base_url or Config.VERTEX_HOST,
            username=Config.VERTEX_USER,
            password=Config.VERTEX_PASS,
            cookies=Config.VERTEX_COOKIES,
        )


ClientOption = Callable[[ClientOptions], None]


def with_auth(username: str, password: str, cookies: str = "") -> ClientOption:
    """
    Supply credentials and an optional session blob to reuse.

    When cookies are given the client first tries to reuse them and only
    logs in with the credentials if the server rejects the session.
    """
    def option(opts: ClientOptions) -> None:
        opts.username = username or ""
        opts.password = password or ""
        opts.cookies = cookies or ""
    return option


def with_timeout(seconds: float) -> ClientOption:
    """Set the deadline for each call."""
    def option(opts: ClientOptions) -> None:
        if seconds is None or seconds <= 0:
            raise ConfigurationError("timeout must be > 0")
        opts.timeout = float(seconds)
    return option


def with_debug(enabled: bool = True) -> ClientOption:
    """Enable or disable request/response tracing."""
    def option(opts: ClientOptions) -> None:
        opts.debug = bool(enabled)
    return option


def with_retry(count: int, min_wait: Optional[float] = None, max_wait: Optional[float] = None) -> ClientOption:
    """Set the retry count and the backoff bounds for transient failures."""
    def option(opts: ClientOptions) -> None:
        if count < 0:
            raise ConfigurationError("retry count must be >= 0")
        opts.retry_count = int(count)
        if min_wait is not None:
            opts.retry_min_wait = float(min_wait)
        if max_wait is not None:
            opts.retry_max_wait = float(max_wait)
    return option
