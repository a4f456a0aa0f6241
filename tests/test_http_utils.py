"""Tests for the HTTP transport, using a stand-in scraper session."""

import logging

import pytest
import requests

from wattpad.config import ClientConfig, Credential
from wattpad.errors import (
    AuthRejected,
    ConnectionFailed,
    HttpStatus,
    InvalidEndpoint,
    Timeout,
    TransportError,
)
from wattpad.http_utils import HttpTransport, parse_api_error

STORY_URL = "https://www.wattpad.com/api/v3/stories/1234?fields=id%2Ctitle"


class _FakeResponse:
    def __init__(self, status_code, content=b""):
        self.status_code = status_code
        self.content = content


class _FakeScraper:
    def __init__(self, outcome):
        self.outcome = outcome
        self.requests = []
        self.closed = False

    def request(self, method, url, headers=None, timeout=None):
        self.requests.append({"method": method, "url": url, "headers": headers, "timeout": timeout})
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def close(self):
        self.closed = True


def _transport(outcome, **config_kwargs):
    scraper = _FakeScraper(outcome)
    return HttpTransport(ClientConfig(**config_kwargs), scraper=scraper), scraper


class TestSend:
    def test_success_returns_body(self):
        transport, scraper = _transport(_FakeResponse(200, b'{"id": "1"}'), timeout=7.5)
        assert transport.send(STORY_URL) == b'{"id": "1"}'
        assert scraper.requests == [
            {"method": "GET", "url": STORY_URL, "headers": None, "timeout": 7.5}
        ]

    def test_single_call_no_retry(self):
        transport, scraper = _transport(_FakeResponse(503))
        with pytest.raises(HttpStatus):
            transport.send(STORY_URL)
        assert len(scraper.requests) == 1

    def test_credential_attached_as_header(self):
        transport, scraper = _transport(_FakeResponse(200, b"{}"))
        transport.send(STORY_URL, auth=Credential.bearer("s3cret"))
        assert scraper.requests[0]["headers"] == {"Authorization": "Bearer s3cret"}

    def test_credential_never_logged(self, caplog):
        transport, _ = _transport(_FakeResponse(401, b""))
        with caplog.at_level(logging.DEBUG, logger="wattpad"):
            with pytest.raises(AuthRejected) as excinfo:
                transport.send(STORY_URL, auth=Credential.session("s3cret"))
        assert "s3cret" not in caplog.text
        assert "s3cret" not in str(excinfo.value)
        assert "s3cret" not in repr(Credential.session("s3cret"))

    @pytest.mark.parametrize(
        "endpoint",
        [
            "https://evil.example.com/api/v3/stories/1",
            "/api/v3/stories/1",
            "ftp://www.wattpad.com/api/v3/stories/1",
        ],
    )
    def test_foreign_endpoint_rejected_before_io(self, endpoint):
        transport, scraper = _transport(_FakeResponse(200, b"{}"))
        with pytest.raises(InvalidEndpoint):
            transport.send(endpoint)
        assert scraper.requests == []

    def test_close(self):
        transport, scraper = _transport(_FakeResponse(200))
        transport.close()
        assert scraper.closed


class TestErrorMapping:
    def test_timeout(self):
        transport, _ = _transport(requests.ReadTimeout("slow"), timeout=2)
        with pytest.raises(Timeout) as excinfo:
            transport.send(STORY_URL)
        assert excinfo.value.timeout == 2
        assert excinfo.value.endpoint == STORY_URL
        assert excinfo.value.retryable

    def test_connect_timeout_is_timeout(self):
        transport, _ = _transport(requests.ConnectTimeout("slow"))
        with pytest.raises(Timeout):
            transport.send(STORY_URL)

    def test_connection_failed(self):
        transport, _ = _transport(requests.ConnectionError("dns"))
        with pytest.raises(ConnectionFailed) as excinfo:
            transport.send(STORY_URL)
        assert excinfo.value.retryable
        assert "dns" in str(excinfo.value)

    def test_not_found(self):
        body = b'{"code": 1017, "error": "StoryNotFound", "message": "Story not found"}'
        transport, _ = _transport(_FakeResponse(404, body))
        with pytest.raises(HttpStatus) as excinfo:
            transport.send(STORY_URL)
        assert excinfo.value.status_code == 404
        assert excinfo.value.api_code == 1017
        assert excinfo.value.api_message == "Story not found"
        assert not excinfo.value.retryable
        assert STORY_URL in str(excinfo.value)

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_statuses(self, status):
        transport, _ = _transport(_FakeResponse(status, b"<html>denied</html>"))
        with pytest.raises(AuthRejected) as excinfo:
            transport.send(STORY_URL)
        assert excinfo.value.status_code == status
        assert not isinstance(excinfo.value, HttpStatus)

    def test_auth_api_code(self):
        body = b'{"code": 1018, "error": "PermissionDenied", "message": "Not logged in"}'
        transport, _ = _transport(_FakeResponse(400, body))
        with pytest.raises(AuthRejected) as excinfo:
            transport.send(STORY_URL)
        assert excinfo.value.api_code == 1018

    @pytest.mark.parametrize("status,retryable", [(429, True), (500, True), (502, True), (410, False)])
    def test_retryable_hint(self, status, retryable):
        transport, _ = _transport(_FakeResponse(status))
        with pytest.raises(TransportError) as excinfo:
            transport.send(STORY_URL)
        assert excinfo.value.retryable is retryable


class TestParseApiError:
    def test_wattpad_error_body(self):
        assert parse_api_error(b'{"code": "1014", "message": "User not found"}') == (1014, "User not found")

    @pytest.mark.parametrize("body", [b"", b"<html></html>", b"[]", b'{"code": "abc"}'])
    def test_other_bodies(self, body):
        assert parse_api_error(body)[0] is None
