"""
Cookie-based session state shared by every call of one client.

The store keeps its own RequestsCookieJar behind a lock. Readers get a
copy, writers build a complete replacement or merge under the lock, so a
concurrent request never sees a half-applied session.

A session is exported as a raw Cookie header value ("name=val; name2=val2"),
the same form the server expects, which callers can persist and import
again later.
"""

import re
import threading
from typing import Dict, List, Tuple

import requests
from requests.cookies import RequestsCookieJar, get_cookie_header

from .errors import SessionParseError


# RFC 6265 cookie-name token characters
_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def parse_cookie_string(blob: str) -> List[Tuple[str, str]]:
    """
    Parse a Cookie header value into (name, value) pairs.

    Raises:
        SessionParseError: If any segment is not a valid name=value token
    """
    pairs = []
    for segment in blob.split(";"):
        segment = segment.strip()
        if not segment:
            continue
        if "=" not in segment:
            raise SessionParseError(f"Invalid cookie segment: {segment!r}")
        name, value = segment.split("=", 1)
        name = name.strip()
        value = value.strip()
        if not _TOKEN.match(name):
            raise SessionParseError(f"Invalid cookie name: {name!r}")
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        if any(c in value for c in '";\\') or any(ord(c) < 0x21 or ord(c) == 0x7f for c in value):
            raise SessionParseError(f"Invalid value for cookie {name!r}")
        pairs.append((name, value))
    return pairs


class SessionStore:
    def __init__(self, base_url: str):
        self.base_url = base_url
        self._jar = RequestsCookieJar()
        self._lock = threading.Lock()

    def _header_for(self, jar: RequestsCookieJar) -> str:
        request = requests.Request("GET", self.base_url + "/").prepare()
        return get_cookie_header(jar, request) or ""

    def export(self) -> str:
        """Return the current session blob, or "" when there is none."""
        with self._lock:
            return self._header_for(self._jar)

    def import_(self, blob: str) -> None:
        """
        Replace the current session with the one in blob.

        An empty blob clears the session. On a parse error the current
        session is left untouched.
        """
        pairs = parse_cookie_string(blob or "")
        jar = RequestsCookieJar()
        for name, value in pairs:
            jar.set(name, value, path="/")
        with self._lock:
            self._jar = jar

    def has_session(self) -> bool:
        return bool(self.export())

    def clear(self) -> None:
        with self._lock:
            self._jar = RequestsCookieJar()

    def snapshot(self) -> RequestsCookieJar:
        """A private copy of the jar to attach to one outgoing request."""
        with self._lock:
            return self._jar.copy()

    def absorb(self, cookies: RequestsCookieJar) -> None:
        """
        Merge cookies the server set on a response.

        The store holds one cookie per name: a new value replaces the old
        one whatever domain or path either was recorded under, so a renewed
        session never travels next to the stale one.
        """
        if not cookies:
            return
        with self._lock:
            jar = self._jar.copy()
            for cookie in cookies:
                for stale in [c for c in jar if c.name == cookie.name]:
                    jar.clear(stale.domain, stale.path, stale.name)
                jar.set(cookie.name, cookie.value, path="/")
            self._jar = jar

    def as_dict(self) -> Dict[str, str]:
        with self._lock:
            return self._jar.get_dict()
