"""
Request execution for the Vertex HTTP API.

Every remote call goes through Dispatcher.execute(), which:
- builds the request (query encoding, JSON body, session cookies)
- enforces a deadline on the whole call, independent of cancellation
- honours a caller cancellation signal (a threading.Event)
- retries transient transport failures with bounded exponential backoff
- merges cookies the server sets into the SessionStore
- decodes the response envelope and returns its raw data

HTTP error statuses and success=false envelopes are final answers from the
server and are never retried.
"""

import json
import random
import threading
import time
from concurrent.futures import Future, wait
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Dict, Mapping, Optional

import requests

from . import envelope
from .config import TransportConfig
from .errors import CancelledError, TransportError
from .logger import logger
from .session import SessionStore


# How often an in-flight attempt checks the cancellation signal (seconds)
CANCEL_POLL_INTERVAL = 0.05

MASKED_FIELDS = ("password",)


def encode_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Render query values as strings; lists and dicts become JSON."""
    encoded = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple, dict)):
            encoded[key] = json.dumps(list(value) if isinstance(value, tuple) else value, separators=(",", ":"))
        else:
            encoded[key] = str(value)
    return encoded


def is_transient(error: BaseException) -> bool:
    """Whether a requests failure may succeed if the call is repeated."""
    if isinstance(error, requests.exceptions.SSLError):
        return False
    return isinstance(error, (
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        requests.exceptions.ChunkedEncodingError,
    ))


def _masked(body: Any) -> Any:
    if isinstance(body, dict):
        return {k: ("***" if k in MASKED_FIELDS else v) for k, v in body.items()}
    return body


class Dispatcher:
    def __init__(
        self,
        config: TransportConfig,
        store: SessionStore,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.store = store
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        # Cookies live in the SessionStore; the Session must not keep its own copy
        self.session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

    def close(self) -> None:
        self.session.close()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def execute(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Run one API call and return the envelope's data field.

        Args:
            method: HTTP verb
            path: Path relative to the base URL (e.g. "/api/server/list")
            params: Query parameters
            body: JSON-serialisable payload, or a record with to_dict()
            cancel: Event that aborts the call when set
            timeout: Deadline in seconds for this call, overriding the config

        Raises:
            CancelledError: cancel was set before the call completed
            TransportError: no response after all attempts
            HTTPError, MalformedResponseError, APIError: see envelope.decode
        """
        if hasattr(body, "to_dict"):
            body = body.to_dict()
        timeout = timeout or self.config.timeout
        attempts = self.config.retry_count + 1

        for attempt in range(1, attempts + 1):
            if cancel is not None and cancel.is_set():
                raise CancelledError()

            prepared = self._prepare(method, path, params, body)
            self._trace_request(prepared, body, attempt)
            started = time.monotonic()
            try:
                response = self._attempt(prepared, timeout, cancel)
            except CancelledError:
                raise
            except TransportError as e:
                if not e.transient or attempt == attempts:
                    raise
                delay = self.backoff(attempt)
                logger.warning(
                    f"{method} {path} failed ({e}); retry {attempt}/{self.config.retry_count} in {delay:.2f}s"
                )
                self._sleep(delay, cancel)
                continue

            for earlier in response.history:
                self.store.absorb(earlier.cookies)
            self.store.absorb(response.cookies)
            self._trace_response(response, time.monotonic() - started)
            return envelope.decode(response.status_code, response.content, response.reason or "").data

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None, **kwargs) -> Any:
        return self.execute("GET", path, params=params, **kwargs)

    def post(self, path: str, body: Any = None, **kwargs) -> Any:
        return self.execute("POST", path, body=body, **kwargs)

    def backoff(self, attempt: int) -> float:
        """Jittered delay before retry number `attempt` (1-based)."""
        low, high = self.config.retry_min_wait, self.config.retry_max_wait
        delay = min(high, low * (2 ** (attempt - 1)))
        return max(low, random.uniform(delay / 2, delay))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _prepare(self, method, path, params, body) -> requests.PreparedRequest:
        request = requests.Request(
            method=method.upper(),
            url=self.config.base_url + "/" + path.lstrip("/"),
            params=encode_params(params),
            json=body,
            cookies=self.store.snapshot(),
        )
        return self.session.prepare_request(request)

    def _send(self, prepared: requests.PreparedRequest, timeout: float) -> requests.Response:
        return self.session.send(prepared, timeout=timeout)

    def _start(self, prepared, timeout) -> Future:
        """Run one send on its own daemon thread; abandoned sends never block other calls."""
        future = Future()

        def run():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._send(prepared, timeout))
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=run, name="vertex-dispatch", daemon=True).start()
        return future

    def _attempt(self, prepared, timeout, cancel) -> requests.Response:
        deadline = time.monotonic() + timeout
        future = self._start(prepared, timeout)

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                raise TransportError(f"Request to {prepared.url} timed out after {timeout}s", transient=True)
            if cancel is None:
                done, _ = wait([future], timeout=remaining)
            else:
                done, _ = wait([future], timeout=min(remaining, CANCEL_POLL_INTERVAL))
                if not done and cancel.is_set():
                    future.cancel()
                    raise CancelledError()
            if done:
                break

        try:
            return future.result()
        except requests.exceptions.RequestException as e:
            raise TransportError(
                f"Could not reach {self.config.base_url}: {e}",
                cause=e,
                transient=is_transient(e),
            ) from e

    def _sleep(self, delay: float, cancel: Optional[threading.Event]) -> None:
        if cancel is None:
            time.sleep(delay)
        elif cancel.wait(delay):
            raise CancelledError()

    def _trace_request(self, prepared, body, attempt) -> None:
        if not self.config.debug:
            return
        logger.debug(f"--> {prepared.method} {prepared.url} (attempt {attempt}) body={_masked(body)}")

    def _trace_response(self, response, elapsed) -> None:
        if not self.config.debug:
            return
        excerpt = response.content[:512].decode("utf-8", errors="replace")
        logger.debug(f"<-- {response.status_code} {response.reason} in {elapsed:.3f}s body={excerpt}")
