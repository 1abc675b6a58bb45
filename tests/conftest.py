import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import pytest
from requests import Response
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from vertex_client import VertexClient, with_auth, with_retry
from vertex_client.config import TransportConfig
from vertex_client.dispatcher import Dispatcher
from vertex_client.session import SessionStore


BASE_URL = "http://vertex.test"


def envelope(data=None, success=True, message=""):
    return {"success": success, "message": message, "data": data}


@dataclass
class Step:
    status: int = 200
    body: bytes = b""
    reason: str = "OK"
    cookies: Dict[str, str] = field(default_factory=dict)
    error: Optional[BaseException] = None
    delay: float = 0.0


class FakeAdapter(BaseAdapter):
    """
    Scripted transport mounted on a requests.Session.

    Each (method, path) has a queue of steps; the last step repeats once the
    queue is down to one entry.
    """

    def __init__(self):
        super().__init__()
        self.routes: Dict[tuple, List[Step]] = {}
        self.requests = []
        self._lock = threading.Lock()

    def add(self, method, path, json_body: Any = None, *, status=200, body=None, reason="OK",
            cookies=None, error=None, delay=0.0):
        if body is None and json_body is not None:
            body = json.dumps(json_body).encode()
        step = Step(status=status, body=body or b"", reason=reason,
                    cookies=cookies or {}, error=error, delay=delay)
        self.routes.setdefault((method, path), []).append(step)
        return self

    def calls(self, method=None, path=None):
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or urlparse(r.url).path == path)
        ]

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        key = (request.method, urlparse(request.url).path)
        with self._lock:
            self.requests.append(request)
            steps = self.routes.get(key)
            if not steps:
                raise AssertionError(f"Unexpected request {key}")
            step = steps[0] if len(steps) == 1 else steps.pop(0)

        if step.delay:
            time.sleep(step.delay)
        if step.error is not None:
            raise step.error

        response = Response()
        response.status_code = step.status
        response.reason = step.reason
        response._content = step.body
        response.headers = CaseInsensitiveDict({"Content-Type": "application/json"})
        response.encoding = "utf-8"
        response.url = request.url
        response.request = request
        host = urlparse(request.url).hostname
        for name, value in step.cookies.items():
            response.cookies.set(name, value, domain=host, path="/")
        return response

    def close(self):
        pass


def query_of(request) -> Dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(request.url).query).items()}


def body_of(request) -> Any:
    return json.loads(request.body)


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def make_dispatcher(adapter):
    """Build a Dispatcher on the fake transport; retries do not sleep by default."""
    dispatchers = []

    def factory(**overrides):
        settings = {"retry_count": 3, "retry_min_wait": 0, "retry_max_wait": 0, "timeout": 5}
        settings.update(overrides)
        config = TransportConfig(BASE_URL, **settings)
        dispatcher = Dispatcher(config, SessionStore(config.base_url))
        dispatcher.session.mount(BASE_URL, adapter)
        dispatchers.append(dispatcher)
        return dispatcher

    yield factory
    for dispatcher in dispatchers:
        dispatcher.close()


@pytest.fixture
def make_client(adapter):
    """Build a VertexClient on the fake transport."""
    clients = []

    def factory(*options):
        client = VertexClient(BASE_URL, with_retry(0, 0, 0), *options)
        client.dispatcher.session.mount(BASE_URL, adapter)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def client(make_client, adapter):
    """An authenticated client; the login request is cleared from the log."""
    adapter.add("POST", "/api/user/login", envelope(), cookies={"connect.sid": "s%3Aabc"})
    client = make_client(with_auth("admin", "password"))
    client.authenticate()
    adapter.requests.clear()
    return client
