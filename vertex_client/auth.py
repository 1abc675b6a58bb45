"""
Session bootstrap for the Vertex API.

Authenticator.authenticate() walks a small state machine:

    START ──(session present)──> probe /api/user/get
      │                            ├─ ok ──────────────────────> AUTHENTICATED
      │                            ├─ rejected + credentials ──> LOGGING_IN
      │                            └─ rejected, no credentials > FAILED
      ├──(no session, credentials)──────────────────────────> LOGGING_IN
      └──(no session, no credentials)───────────────────────> FAILED

    LOGGING_IN ── login ok ──> AUTHENTICATED
               └─ login err ─> FAILED (the error is raised as-is)

A reused session that still works never causes a login, so the server-side
session is not rotated needlessly.
"""

import hashlib
import threading
from enum import Enum
from typing import Optional

from .dispatcher import Dispatcher
from .errors import APIError, AuthenticationError, HTTPError, VertexError
from .logger import logger
from .session import SessionStore


LOGIN_PATH = "/api/user/login"
PROBE_PATH = "/api/user/get"

# HTTP statuses that mean "this session is not accepted"
AUTH_REJECT_STATUSES = (401, 403)


def digest_password(password: str) -> str:
    """The 32-character lowercase hex MD5 digest the login endpoint expects."""
    return hashlib.md5(password.encode("utf-8")).hexdigest()


def is_auth_rejection(error: VertexError) -> bool:
    """Whether a probe failure means the session was refused."""
    if isinstance(error, APIError):
        return True
    if isinstance(error, HTTPError):
        return error.status in AUTH_REJECT_STATUSES
    return False


class AuthState(Enum):
    START = "start"
    LOGGING_IN = "logging_in"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class Authenticator:
    def __init__(
        self,
        dispatcher: Dispatcher,
        store: SessionStore,
        username: str = "",
        password: str = "",
    ):
        self.dispatcher = dispatcher
        self.store = store
        self.username = username or ""
        self.password = password or ""
        self.state = AuthState.START
        self.login_attempts = 0
        self._lock = threading.Lock()

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    def reset(self) -> None:
        """Forget the verified state, e.g. after a new session was imported."""
        with self._lock:
            self.state = AuthState.START

    def authenticate(self, cancel: Optional[threading.Event] = None, timeout: Optional[float] = None) -> AuthState:
        """
        Establish a valid session, reusing the stored one when possible.

        Returns:
            AuthState.AUTHENTICATED

        Raises:
            AuthenticationError: No usable session and no credentials
            TransportError, HTTPError, APIError: The login call failed
        """
        with self._lock:
            self.state = AuthState.START

            if self.store.has_session():
                try:
                    self.dispatcher.get(PROBE_PATH, cancel=cancel, timeout=timeout)
                    self.state = AuthState.AUTHENTICATED
                    logger.info("Reused session accepted by Vertex server")
                    return self.state
                except (APIError, HTTPError) as e:
                    if not is_auth_rejection(e):
                        self.state = AuthState.FAILED
                        raise
                    logger.warning(f"Reused session rejected: {e}")
                    if not self.has_credentials:
                        self.state = AuthState.FAILED
                        raise AuthenticationError(
                            "Stored session was rejected and no credentials are configured", cause=e
                        ) from e
                except VertexError:
                    self.state = AuthState.FAILED
                    raise
            elif not self.has_credentials:
                self.state = AuthState.FAILED
                raise AuthenticationError("No session to reuse and no credentials are configured")

            self._login(self.username, self.password, cancel, timeout)
            return self.state

    def login(
        self,
        username: str,
        password: str,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Log in explicitly with the given credentials and remember them."""
        with self._lock:
            self.username = username
            self.password = password
            self._login(username, password, cancel, timeout)

    def _login(self, username, password, cancel, timeout) -> None:
        self.state = AuthState.LOGGING_IN
        self.login_attempts += 1
        payload = {
            "username": username,
            "password": digest_password(password),
        }
        try:
            self.dispatcher.post(LOGIN_PATH, payload, cancel=cancel, timeout=timeout)
        except VertexError:
            self.state = AuthState.FAILED
            raise
        self.state = AuthState.AUTHENTICATED
        logger.info(f"Logged in to Vertex as {username}")
