"""
Tests for session bootstrap: reuse, probe and login fallback.
"""

import pytest
import requests

from vertex_client import AuthState, digest_password, with_auth
from vertex_client.auth import LOGIN_PATH, PROBE_PATH
from vertex_client.errors import APIError, AuthenticationError, HTTPError, TransportError

from conftest import body_of, envelope


USER = {"username": "admin", "role": "admin"}


class TestDigest:
    def test_known_digest(self):
        """Test the MD5 digest of a known password."""
        assert digest_password("password") == "5f4dcc3b5aa765d61d8327deb882cf99"

    def test_digest_shape(self):
        """Test that digests are 32 lowercase hex characters."""
        digest = digest_password("Päss wörd!")
        assert len(digest) == 32
        assert digest == digest.lower()
        int(digest, 16)


class TestReusedSession:
    def test_valid_session_without_credentials(self, make_client, adapter):
        """Test that a working session authenticates with no login call."""
        adapter.add("GET", PROBE_PATH, envelope(USER))
        client = make_client(with_auth("", "", cookies="connect.sid=valid"))

        assert client.authenticate() is AuthState.AUTHENTICATED
        assert adapter.calls("POST", LOGIN_PATH) == []
        assert adapter.calls("GET", PROBE_PATH)[0].headers["Cookie"] == "connect.sid=valid"
        assert client.authenticator.login_attempts == 0

    def test_valid_session_with_credentials_skips_login(self, make_client, adapter):
        """Test that credentials are not sent when the session still works."""
        adapter.add("GET", PROBE_PATH, envelope(USER))
        client = make_client(with_auth("admin", "password", cookies="connect.sid=valid"))

        client.authenticate()

        assert adapter.calls("POST", LOGIN_PATH) == []
        assert client.export_session() == "connect.sid=valid"

    def test_rejected_session_falls_back_to_login(self, make_client, adapter):
        """Test that an expired session leads to exactly one login."""
        adapter.add("GET", PROBE_PATH, envelope(success=False, message="未登录"))
        adapter.add("POST", LOGIN_PATH, envelope(), cookies={"connect.sid": "renewed"})
        client = make_client(with_auth("admin", "password", cookies="connect.sid=expired"))

        assert client.authenticate() is AuthState.AUTHENTICATED
        assert len(adapter.calls("POST", LOGIN_PATH)) == 1
        assert client.export_session() == "connect.sid=renewed"

    def test_renewed_session_replaces_rejected_one(self, make_client, adapter):
        """Test that requests after a fallback login carry only the renewed session."""
        adapter.add("GET", PROBE_PATH, envelope(success=False, message="未登录"))
        adapter.add("POST", LOGIN_PATH, envelope(), cookies={"connect.sid": "renewed"})
        adapter.add("GET", "/api/server/list", envelope([]))
        client = make_client(with_auth("admin", "password", cookies="connect.sid=expired"))

        client.authenticate()
        client.list_servers()

        assert adapter.calls("GET", "/api/server/list")[0].headers["Cookie"] == "connect.sid=renewed"
        assert client.export_session() == "connect.sid=renewed"

    @pytest.mark.parametrize("status", [401, 403])
    def test_unauthorized_status_falls_back_to_login(self, make_client, adapter, status):
        """Test that 401/403 from the probe count as a rejected session."""
        adapter.add("GET", PROBE_PATH, status=status, body=b"Unauthorized", reason="Unauthorized")
        adapter.add("POST", LOGIN_PATH, envelope(), cookies={"connect.sid": "renewed"})
        client = make_client(with_auth("admin", "password", cookies="connect.sid=expired"))

        client.authenticate()

        assert client.state is AuthState.AUTHENTICATED
        assert len(adapter.calls("POST", LOGIN_PATH)) == 1

    def test_rejected_session_without_credentials(self, make_client, adapter):
        """Test that a rejected session with no credentials fails."""
        adapter.add("GET", PROBE_PATH, envelope(success=False, message="未登录"))
        client = make_client(with_auth("", "", cookies="connect.sid=expired"))

        with pytest.raises(AuthenticationError) as exc_info:
            client.authenticate()

        assert isinstance(exc_info.value.cause, APIError)
        assert client.state is AuthState.FAILED
        assert adapter.calls("POST", LOGIN_PATH) == []

    def test_server_error_during_probe_propagates(self, make_client, adapter):
        """Test that a probe failure unrelated to auth is not treated as expiry."""
        adapter.add("GET", PROBE_PATH, status=500, body=b"<html>oops</html>", reason="Internal Server Error")
        client = make_client(with_auth("admin", "password", cookies="connect.sid=valid"))

        with pytest.raises(HTTPError) as exc_info:
            client.authenticate()

        assert exc_info.value.status == 500
        assert client.state is AuthState.FAILED
        assert adapter.calls("POST", LOGIN_PATH) == []

    def test_unreachable_server_during_probe_propagates(self, make_client, adapter):
        """Test that transport failures during the probe are surfaced."""
        adapter.add("GET", PROBE_PATH, error=requests.exceptions.ConnectionError("refused"))
        client = make_client(with_auth("admin", "password", cookies="connect.sid=valid"))

        with pytest.raises(TransportError):
            client.authenticate()

        assert adapter.calls("POST", LOGIN_PATH) == []

    def test_reimported_export_probes_identically(self, make_client, adapter):
        """Test that an exported session re-imported elsewhere behaves the same."""
        adapter.add("GET", PROBE_PATH, envelope(USER))
        first = make_client(with_auth("", "", cookies="connect.sid=s%3Aabc.def; lang=zh"))
        first.authenticate()

        second = make_client()
        second.import_session(first.export_session())
        second.authenticate()

        probes = adapter.calls("GET", PROBE_PATH)
        assert len(probes) == 2
        assert probes[0].headers["Cookie"] == probes[1].headers["Cookie"]
        assert second.state is AuthState.AUTHENTICATED


class TestCredentialLogin:
    def test_login_without_session(self, make_client, adapter):
        """Test that with no session the client logs in directly."""
        adapter.add("POST", LOGIN_PATH, envelope(), cookies={"connect.sid": "new"})
        client = make_client(with_auth("admin", "password"))

        client.authenticate()

        assert adapter.calls("GET", PROBE_PATH) == []
        assert body_of(adapter.calls("POST", LOGIN_PATH)[0]) == {
            "username": "admin",
            "password": "5f4dcc3b5aa765d61d8327deb882cf99",
        }
        assert client.has_session() is True

    def test_nothing_configured(self, make_client, adapter):
        """Test that no session and no credentials is an authentication error."""
        client = make_client(with_auth("", ""))

        with pytest.raises(AuthenticationError):
            client.authenticate()

        assert client.state is AuthState.FAILED
        assert adapter.calls() == []

    def test_login_failure_surfaces_api_error(self, make_client, adapter):
        """Test that a refused login raises the server's error unchanged."""
        adapter.add("POST", LOGIN_PATH, envelope(success=False, message="用户名或密码错误"))
        client = make_client(with_auth("admin", "wrong"))

        with pytest.raises(APIError) as exc_info:
            client.authenticate()

        assert exc_info.value.message == "用户名或密码错误"
        assert client.state is AuthState.FAILED
        assert len(adapter.calls("POST", LOGIN_PATH)) == 1

    def test_explicit_login(self, make_client, adapter):
        """Test logging in explicitly on an unconfigured client."""
        adapter.add("POST", LOGIN_PATH, envelope(), cookies={"connect.sid": "new"})
        client = make_client()

        client.login("admin", "password")

        assert client.state is AuthState.AUTHENTICATED
        assert client.export_session() == "connect.sid=new"

    def test_import_resets_state(self, client):
        """Test that importing a session requires authenticating again."""
        assert client.state is AuthState.AUTHENTICATED
        client.import_session("connect.sid=other")
        assert client.state is AuthState.START
