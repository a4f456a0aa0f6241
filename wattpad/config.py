from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional
from urllib.parse import urlencode, urlparse

from .errors import InvalidConfig
from .fields import (
    CHAPTER_FIELDS,
    CHAPTER_REQUIRED_FIELDS,
    STORY_FIELDS,
    STORY_REQUIRED_FIELDS,
    USER_FIELDS,
    USER_REQUIRED_FIELDS,
    USER_STORIES_FIELDS,
    FieldSpec,
    format_fields,
    select_fields,
)

DEFAULT_BASE_URL = "https://www.wattpad.com"
DEFAULT_TIMEOUT = 30.0
DEFAULT_CONCURRENCY = 4


def build_url(base_url: str, path: str, query: Optional[dict[str, object]] = None) -> str:
    url = base_url.rstrip("/") + "/" + path.lstrip("/")
    if query:
        url += "?" + urlencode({key: str(value) for key, value in query.items()})
    return url


@dataclass(frozen=True)
class Credential:
    """An optional credential attached to requests as a single header.

    The value is kept out of ``repr`` so it does not end up in logs or
    tracebacks.
    """

    header: str
    value: str = field(repr=False)

    @classmethod
    def bearer(cls, token: str) -> "Credential":
        return cls(header="Authorization", value=f"Bearer {token}")

    @classmethod
    def session(cls, token: str) -> "Credential":
        # Wattpad's web session cookie
        return cls(header="Cookie", value=f"token={token}")

    def as_headers(self) -> dict[str, str]:
        return {self.header: self.value}


@dataclass(frozen=True)
class Endpoints:
    story: str = "/api/v3/stories/{story_id}"
    user: str = "/api/v3/users/{username}"
    user_stories: str = "/api/v3/users/{username}/stories"
    chapter: str = "/api/v3/story_parts/{chapter_id}"
    chapter_text: str = "/apiv2/"
    story_zip: str = "/apiv2/"


@dataclass(frozen=True)
class ClientConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY
    user_agent: Optional[str] = None
    credential: Optional[Credential] = None
    endpoints: Endpoints = field(default_factory=Endpoints)

    @property
    def host(self) -> str:
        return urlparse(self.base_url).netloc

    def story_url(self, story_id: str, fields: Optional[Iterable[FieldSpec]] = None) -> str:
        path = self.endpoints.story.format(story_id=story_id)
        selected = select_fields(fields, STORY_FIELDS, STORY_REQUIRED_FIELDS)
        return build_url(self.base_url, path, {"fields": selected})

    def user_url(self, username: str, fields: Optional[Iterable[FieldSpec]] = None) -> str:
        path = self.endpoints.user.format(username=username)
        selected = select_fields(fields, USER_FIELDS, USER_REQUIRED_FIELDS)
        return build_url(self.base_url, path, {"fields": selected})

    def user_stories_url(self, username: str) -> str:
        path = self.endpoints.user_stories.format(username=username)
        return build_url(self.base_url, path, {"fields": format_fields(USER_STORIES_FIELDS)})

    def chapter_url(self, chapter_id: str, fields: Optional[Iterable[FieldSpec]] = None) -> str:
        path = self.endpoints.chapter.format(chapter_id=chapter_id)
        selected = select_fields(fields, CHAPTER_FIELDS, CHAPTER_REQUIRED_FIELDS)
        return build_url(self.base_url, path, {"fields": selected})

    def chapter_text_url(self, chapter_id: str) -> str:
        return build_url(
            self.base_url,
            self.endpoints.chapter_text,
            {"m": "storytext", "id": chapter_id},
        )

    def story_zip_url(self, story_id: str) -> str:
        return build_url(
            self.base_url,
            self.endpoints.story_zip,
            {"m": "storytext", "group_id": story_id, "output": "zip"},
        )

    def validate(self) -> "ClientConfig":
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidConfig(f"Base URL must be an absolute http(s) URL: {self.base_url}")
        if self.timeout <= 0:
            raise InvalidConfig("Timeout must be a positive number.")
        if self.concurrency <= 0:
            raise InvalidConfig("Concurrency must be a positive integer.")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        env = os.environ if environ is None else environ
        kwargs: dict = {}
        if env.get("WATTPAD_BASE_URL"):
            kwargs["base_url"] = env["WATTPAD_BASE_URL"].rstrip("/")
        try:
            if env.get("WATTPAD_TIMEOUT"):
                kwargs["timeout"] = float(env["WATTPAD_TIMEOUT"])
            if env.get("WATTPAD_CONCURRENCY"):
                kwargs["concurrency"] = int(env["WATTPAD_CONCURRENCY"])
        except ValueError as exc:
            raise InvalidConfig(f"Bad numeric setting in environment: {exc}") from exc
        if env.get("WATTPAD_TOKEN"):
            kwargs["credential"] = Credential.session(env["WATTPAD_TOKEN"])
        return cls(**kwargs).validate()
