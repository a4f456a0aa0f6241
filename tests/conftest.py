"""Shared pytest fixtures for the wattpad test suite."""

import json
import threading
import time
from pathlib import Path

import pytest

from wattpad.config import ClientConfig
from wattpad.errors import HttpStatus

FIXTURES = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def chapter_id_for(position):
    return str(5000 + position)


def story_payload(story_id="1234", chapter_count=3, **overrides):
    payload = {
        "id": story_id,
        "title": f"Story {story_id}",
        "description": "A test story.",
        "tags": ["Fantasy", "magic"],
        "voteCount": 10,
        "readCount": "1,250",
        "commentCount": 3,
        "completed": True,
        "mature": False,
        "language": {"id": 1, "name": "English"},
        "user": {"name": "someauthor"},
        "createDate": "2020-01-02T03:04:05Z",
        "modifyDate": "2021-06-07T08:09:10Z",
        "parts": [
            {
                "id": int(chapter_id_for(position)),
                "title": f"Chapter {position}",
                "url": f"https://www.wattpad.com/{chapter_id_for(position)}",
            }
            for position in range(1, chapter_count + 1)
        ],
    }
    payload.update(overrides)
    return payload


def chapter_html(position):
    return (
        f'<p data-p-id="a{position}">Opening line of chapter {position}.</p>'
        f'<p data-p-id="b{position}">Second<br>paragraph.</p>'
    )


def encode(payload):
    return json.dumps(payload).encode("utf-8")


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------

class FakeTransport:
    """Answers from a route table and records every call.

    A route value may be bytes, an exception instance (raised), or a
    callable returning either. Unknown endpoints answer HTTP 404.
    """

    def __init__(self, routes=None, delays=None):
        self.routes = dict(routes or {})
        self.delays = dict(delays or {})
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.on_send = None
        self._lock = threading.Lock()

    def send(self, endpoint, method="GET", auth=None, *, purpose="request"):
        with self._lock:
            self.calls.append((endpoint, method, auth))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            call_number = len(self.calls)
        try:
            if self.on_send is not None:
                self.on_send(endpoint, call_number)
            delay = self.delays.get(endpoint)
            if delay:
                time.sleep(delay)
            result = self.routes.get(endpoint)
            if callable(result):
                result = result()
            if result is None:
                raise HttpStatus(endpoint, 404)
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            with self._lock:
                self.in_flight -= 1

    def endpoints_called(self):
        return [endpoint for endpoint, _, _ in self.calls]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config():
    return ClientConfig(concurrency=3, timeout=5.0)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def story_routes(config):
    """Return a helper that registers a story and its chapter texts on a transport."""

    def register(transport, story_id="1234", chapter_count=3, **overrides):
        payload = story_payload(story_id, chapter_count, **overrides)
        transport.routes[config.story_url(story_id)] = encode(payload)
        for position in range(1, chapter_count + 1):
            url = config.chapter_text_url(chapter_id_for(position))
            transport.routes[url] = chapter_html(position).encode("utf-8")
        return payload

    return register


@pytest.fixture
def story_fixture_bytes():
    return (FIXTURES / "story_1234.json").read_bytes()
