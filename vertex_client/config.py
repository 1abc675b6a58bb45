import os
from dataclasses import dataclass
from urllib.parse import urlparse

import dotenv

from .errors import ConfigurationError


dotenv.load_dotenv()


# Defaults
DEBUG = False
VERBOSE = False
LOG_PATH = ""
LOG_LEVEL = "DEBUG" if DEBUG else "INFO"
LOG_ROTATION = "1 week"
LOG_RETENTION = "1 month"

VERTEX_HOST = "http://127.0.0.1:3000"
VERTEX_USER = ""
VERTEX_PASS = ""
VERTEX_COOKIES = ""

# Transport defaults (seconds)
TIMEOUT = 10.0
RETRY_COUNT = 3
RETRY_MIN_WAIT = 0.2
RETRY_MAX_WAIT = 3.0

SESSION_FILE = os.path.expanduser("~/.vertex_client_session")


def _flag(value) -> bool:
    return str(value).lower() in ("1", "true", "yes", "on")


class Config:
    DEBUG = _flag(os.getenv("DEBUG", DEBUG))
    VERBOSE = _flag(os.getenv("VERBOSE", VERBOSE))

    LOG_PATH = os.getenv("LOG_PATH", LOG_PATH)
    LOG_LEVEL = os.getenv("LOG_LEVEL", LOG_LEVEL)
    LOG_ROTATION = os.getenv("LOG_ROTATION", LOG_ROTATION)
    LOG_RETENTION = os.getenv("LOG_RETENTION", LOG_RETENTION)

    # Vertex server and credentials
    VERTEX_HOST = os.getenv("VERTEX_HOST", VERTEX_HOST)
    VERTEX_USER = os.getenv("VERTEX_USER", VERTEX_USER)
    VERTEX_PASS = os.getenv("VERTEX_PASS", VERTEX_PASS)
    VERTEX_COOKIES = os.getenv("VERTEX_COOKIES", VERTEX_COOKIES)
    VERTEX_DEBUG = _flag(os.getenv("VERTEX_DEBUG", DEBUG))

    # Transport
    TIMEOUT = float(os.getenv("VERTEX_TIMEOUT", TIMEOUT))
    RETRY_COUNT = int(os.getenv("VERTEX_RETRY_COUNT", RETRY_COUNT))
    RETRY_MIN_WAIT = float(os.getenv("VERTEX_RETRY_MIN_WAIT", RETRY_MIN_WAIT))
    RETRY_MAX_WAIT = float(os.getenv("VERTEX_RETRY_MAX_WAIT", RETRY_MAX_WAIT))

    SESSION_FILE = os.getenv("VERTEX_SESSION_FILE", SESSION_FILE)


@dataclass(frozen=True)
class TransportConfig:
    """
    Immutable transport settings for one client.

    Attributes:
        base_url: Absolute http(s) URL of the Vertex server
        timeout: Deadline in seconds for a whole call (connect + send + receive)
        retry_count: Extra attempts allowed after a transient failure
        retry_min_wait: Lower bound of the backoff between attempts
        retry_max_wait: Upper bound of the backoff between attempts
        debug: Trace every request and response at DEBUG level
    """

    base_url: str
    timeout: float = TIMEOUT
    retry_count: int = RETRY_COUNT
    retry_min_wait: float = RETRY_MIN_WAIT
    retry_max_wait: float = RETRY_MAX_WAIT
    debug: bool = False

    def __post_init__(self) -> None:
        parsed = urlparse(self.base_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"base_url must be an absolute http(s) URL, got {self.base_url!r}")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

        if self.timeout is None or self.timeout <= 0:
            raise ConfigurationError("timeout must be > 0")
        if self.retry_count < 0:
            raise ConfigurationError("retry_count must be >= 0")
        if self.retry_min_wait < 0 or self.retry_max_wait < 0:
            raise ConfigurationError("retry waits must be >= 0")
        if self.retry_min_wait > self.retry_max_wait:
            raise ConfigurationError("retry_min_wait must not exceed retry_max_wait")

    @property
    def host(self) -> str:
        return urlparse(self.base_url).hostname or ""
