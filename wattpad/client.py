from __future__ import annotations

import logging
import re
import threading
from dataclasses import replace
from typing import Iterable, Optional, Union

from .assembler import StoryContentAssembler
from .config import ClientConfig, Credential
from .errors import EmptyPayload, InvalidIdentifier
from .fields import FieldSpec
from .http_utils import HttpTransport, Transport
from .models import Chapter, ChapterRef, Story, StoryContent, User
from .parsing import (
    decode_chapter,
    decode_chapter_text,
    decode_story,
    decode_story_ids,
    decode_user,
)

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

Identifier = Union[str, int]


def normalize_numeric_id(kind: str, value: Identifier) -> str:
    if isinstance(value, bool):
        raise InvalidIdentifier(kind, value)
    if isinstance(value, int):
        if value <= 0:
            raise InvalidIdentifier(kind, value)
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit() and int(text) > 0:
            return text
    raise InvalidIdentifier(kind, value)


def normalize_username(value: str) -> str:
    if not isinstance(value, str):
        raise InvalidIdentifier("user", value)
    text = value.strip()
    if not USERNAME_PATTERN.match(text):
        raise InvalidIdentifier("user", value)
    return text


class WattpadClient:
    """Entry point for story, user and story-content lookups.

    Every call takes an optional ``credential``; when it is omitted the one
    from ``config`` is used, and without either the request goes out
    anonymously.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Optional[Transport] = None,
    ) -> None:
        self.config = (config or ClientConfig()).validate()
        self._owns_transport = transport is None
        self.transport: Transport = transport or HttpTransport(self.config)
        self.assembler = StoryContentAssembler(self.transport, self.config)

    def __enter__(self) -> "WattpadClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_transport and isinstance(self.transport, HttpTransport):
            self.transport.close()

    def _credential(self, credential: Optional[Credential]) -> Optional[Credential]:
        return credential if credential is not None else self.config.credential

    def get_story(
        self,
        story_id: Identifier,
        *,
        credential: Optional[Credential] = None,
        fields: Optional[Iterable[FieldSpec]] = None,
    ) -> Story:
        """Fetch story metadata.

        ``fields`` narrows the ``fields=`` selection sent to the API; ``id``
        and ``title`` are always requested.
        """
        story_id = normalize_numeric_id("story", story_id)
        raw = self.transport.send(
            self.config.story_url(story_id, fields),
            "GET",
            self._credential(credential),
            purpose=f"Story {story_id} request",
        )
        return decode_story(raw)

    def get_user(
        self,
        username: str,
        *,
        credential: Optional[Credential] = None,
        include_stories: bool = False,
        fields: Optional[Iterable[FieldSpec]] = None,
    ) -> User:
        username = normalize_username(username)
        auth = self._credential(credential)
        raw = self.transport.send(
            self.config.user_url(username, fields),
            "GET",
            auth,
            purpose=f"User {username} request",
        )
        user = decode_user(raw)
        if not include_stories:
            return user

        stories_raw = self.transport.send(
            self.config.user_stories_url(username),
            "GET",
            auth,
            purpose=f"User {username} stories request",
        )
        story_ids = decode_story_ids(stories_raw)
        logger.debug("User %s: %d stories listed", username, len(story_ids))
        return replace(user, story_ids=story_ids)

    def get_story_content(
        self,
        story_id: Identifier,
        *,
        credential: Optional[Credential] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> StoryContent:
        story_id = normalize_numeric_id("story", story_id)
        return self.assembler.assemble(
            story_id,
            credential=self._credential(credential),
            cancel_event=cancel_event,
        )

    def get_chapter(
        self,
        chapter_id: Identifier,
        *,
        credential: Optional[Credential] = None,
        fields: Optional[Iterable[FieldSpec]] = None,
    ) -> Chapter:
        chapter_id = normalize_numeric_id("chapter", chapter_id)
        raw = self.transport.send(
            self.config.chapter_url(chapter_id, fields),
            "GET",
            self._credential(credential),
            purpose=f"Chapter {chapter_id} metadata request",
        )
        return decode_chapter(raw)

    def get_chapter_text(
        self, chapter_id: Identifier, *, credential: Optional[Credential] = None
    ) -> str:
        chapter_id = normalize_numeric_id("chapter", chapter_id)
        raw = self.transport.send(
            self.config.chapter_text_url(chapter_id),
            "GET",
            self._credential(credential),
            purpose=f"Chapter {chapter_id} text request",
        )
        ref = ChapterRef(id=chapter_id, title="", order_index=0)
        return decode_chapter_text(raw, ref, story_id="").body or ""

    def get_story_zip(
        self, story_id: Identifier, *, credential: Optional[Credential] = None
    ) -> bytes:
        """Download every chapter of a story as one ZIP archive, returned as raw bytes."""
        story_id = normalize_numeric_id("story", story_id)
        raw = self.transport.send(
            self.config.story_zip_url(story_id),
            "GET",
            self._credential(credential),
            purpose=f"Story {story_id} archive request",
        )
        if not raw:
            raise EmptyPayload("story archive")
        logger.debug("Story %s: archive of %d bytes", story_id, len(raw))
        return raw
