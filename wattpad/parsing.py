from __future__ import annotations

import enum
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional, Union

from bs4 import BeautifulSoup

from .errors import EmptyPayload, MalformedPayload
from .models import Chapter, ChapterRef, Story, User

logger = logging.getLogger(__name__)

BR_PLACEHOLDER = "__BR_BREAK__"

Payload = Union[bytes, str]


class Shape(enum.Enum):
    STORY = "story"
    USER = "user"
    CHAPTER = "chapter"


# ---- loose value coercion ----

def _as_str(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _as_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return default
    if isinstance(value, str):
        cleaned = value.strip().replace(",", "").replace("_", "")
        try:
            return int(cleaned)
        except ValueError:
            try:
                return int(float(cleaned))
            except (ValueError, OverflowError):
                return default
    return default


def _as_optional_int(value: Any) -> Optional[int]:
    return _as_int(value, default=None)


def _as_count(value: Any) -> int:
    return max(0, _as_int(value) or 0)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return False


def _as_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


# ---- required fields ----

def _required_id(payload: dict, shape: str, key: str = "id") -> str:
    value = payload.get(key)
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    raise MalformedPayload(shape, key)


def _required_title(payload: dict, shape: str, key: str = "title") -> str:
    value = payload.get(key)
    if isinstance(value, bool) or value is None:
        raise MalformedPayload(shape, key)
    if isinstance(value, (str, int, float)):
        return _as_str(value)
    raise MalformedPayload(shape, key)


def load_payload(raw: Payload, shape: str) -> dict:
    """Parse ``raw`` into a plain dict tree without interpreting any field."""
    if not raw:
        raise EmptyPayload(shape)
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise MalformedPayload(shape, "<root>", "is not UTF-8") from exc
    else:
        text = raw
    if not text.strip():
        raise EmptyPayload(shape)
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise MalformedPayload(shape, "<root>", "is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedPayload(shape, "<root>", "is not a JSON object")
    return payload


# ---- stories ----

def _parse_tags(value: Any) -> frozenset[str]:
    if isinstance(value, str):
        value = value.split(",")
    tags = (_as_str(tag).lower() for tag in _as_list(value))
    return frozenset(tag for tag in tags if tag)


def parse_chapter_refs(parts: Any) -> tuple[ChapterRef, ...]:
    refs: list[ChapterRef] = []
    seen_ids: set[str] = set()

    for position, entry in enumerate(_as_list(parts)):
        if not isinstance(entry, dict):
            continue
        try:
            chapter_id = _required_id(entry, "story", "id")
        except MalformedPayload:
            raise MalformedPayload("story", f"parts[{position}].id") from None
        if chapter_id in seen_ids:
            logger.debug("Dropping duplicate chapter %s at position %d", chapter_id, position)
            continue
        seen_ids.add(chapter_id)
        refs.append(
            ChapterRef(
                id=chapter_id,
                title=_as_str(entry.get("title")),
                order_index=len(refs) + 1,
                url=_as_str(entry.get("url")),
                draft=_as_bool(entry.get("draft")),
                deleted=_as_bool(entry.get("deleted")),
                created_at=_as_datetime(entry.get("createDate")),
                modified_at=_as_datetime(entry.get("modifyDate")),
            )
        )

    return tuple(refs)


def story_from_payload(payload: dict) -> Story:
    story_id = _required_id(payload, "story")
    title = _required_title(payload, "story")

    language = payload.get("language")
    if isinstance(language, dict):
        language_name = _as_str(language.get("name"))
        language_id = _as_optional_int(language.get("id"))
    else:
        language_name = ""
        language_id = _as_optional_int(language)

    user = payload.get("user")
    author = _as_str(user.get("name")) if isinstance(user, dict) else _as_str(user)

    categories = tuple(
        category
        for category in (_as_int(value) or 0 for value in _as_list(payload.get("categories")))
        if category > 0
    )

    return Story(
        id=story_id,
        title=title,
        description=_as_str(payload.get("description")),
        tags=_parse_tags(payload.get("tags")),
        chapters=parse_chapter_refs(payload.get("parts")),
        cover_url=_as_str(payload.get("cover")),
        language=language_name,
        completed=_as_bool(payload.get("completed")),
        mature=_as_bool(payload.get("mature")),
        vote_count=_as_count(payload.get("voteCount")),
        read_count=_as_count(payload.get("readCount")),
        comment_count=_as_count(payload.get("commentCount")),
        created_at=_as_datetime(payload.get("createDate")),
        modified_at=_as_datetime(payload.get("modifyDate")),
        author=author,
        url=_as_str(payload.get("url")),
        language_id=language_id,
        categories=categories,
        num_parts=_as_count(payload.get("numParts")),
        rating=_as_optional_int(payload.get("rating")),
        copyright=_as_optional_int(payload.get("copyright")),
        length=_as_count(payload.get("length")),
        deleted=_as_bool(payload.get("deleted")),
    )


def decode_story(raw: Payload) -> Story:
    return story_from_payload(load_payload(raw, "story"))


# ---- users ----

def _parse_story_ids(value: Any) -> tuple[str, ...]:
    ids: list[str] = []
    for entry in _as_list(value):
        if isinstance(entry, dict):
            entry = entry.get("id")
        story_id = _as_str(entry)
        if story_id and story_id not in ids:
            ids.append(story_id)
    return tuple(ids)


def user_from_payload(payload: dict) -> User:
    if "username" in payload:
        username = _required_id(payload, "user", "username")
    else:
        username = _required_id(payload, "user", "name")
    user_id = _as_str(payload.get("id")) or username
    display_name = (
        _as_str(payload.get("name"))
        or _as_str(payload.get("fullname"))
        or username
    )

    return User(
        id=user_id,
        username=username,
        display_name=display_name,
        avatar_url=_as_str(payload.get("avatar")),
        follower_count=_as_count(payload.get("numFollowers")),
        following_count=_as_count(payload.get("numFollowing")),
        story_ids=_parse_story_ids(payload.get("stories")),
        description=_as_str(payload.get("description")),
        background_url=_as_str(payload.get("backgroundUrl")),
        location=_as_str(payload.get("location")),
        verified=_as_bool(payload.get("verified")),
        is_private=_as_bool(payload.get("isPrivate")),
        votes_received=_as_count(payload.get("votesReceived")),
        num_stories_published=_as_count(payload.get("numStoriesPublished")),
        num_lists=_as_count(payload.get("numLists")),
        created_at=_as_datetime(payload.get("createDate")),
        modified_at=_as_datetime(payload.get("modifyDate")),
    )


def decode_user(raw: Payload) -> User:
    return user_from_payload(load_payload(raw, "user"))


def decode_story_ids(raw: Payload) -> tuple[str, ...]:
    return _parse_story_ids(load_payload(raw, "user stories").get("stories"))


# ---- chapters ----

def chapter_from_payload(payload: dict, *, order_index: int = 0) -> Chapter:
    chapter_id = _required_id(payload, "chapter")
    title = _required_title(payload, "chapter")

    story_id = _as_str(payload.get("groupId"))
    if not story_id:
        story_id = _as_str(_as_dict(payload.get("group")).get("id"))

    return Chapter(
        id=chapter_id,
        story_id=story_id,
        order_index=order_index,
        title=title,
        word_count=_as_count(payload.get("wordCount")),
        published_at=_as_datetime(payload.get("createDate")),
        url=_as_str(payload.get("url")),
        modified_at=_as_datetime(payload.get("modifyDate")),
        vote_count=_as_count(payload.get("voteCount")),
        read_count=_as_count(payload.get("readCount")),
        comment_count=_as_count(payload.get("commentCount")),
    )


def decode_chapter(raw: Payload, *, order_index: int = 0) -> Chapter:
    return chapter_from_payload(load_payload(raw, "chapter"), order_index=order_index)


def decode(raw: Payload, shape: Shape) -> Union[Story, User, Chapter]:
    if shape is Shape.STORY:
        return decode_story(raw)
    if shape is Shape.USER:
        return decode_user(raw)
    if shape is Shape.CHAPTER:
        return decode_chapter(raw)
    raise ValueError(f"Unknown shape: {shape!r}")


# ---- chapter text ----

def normalize_text(raw_text: str) -> str:
    cleaned = (
        raw_text.replace("\r\n", "\n")
        .replace("\r", "\n")
        .replace("\u00a0", " ")
    )
    placeholder_pattern = re.escape(BR_PLACEHOLDER)
    single_newline_pattern = re.compile(
        rf"(?<!\n)(?<!{placeholder_pattern})\n(?!\n|{placeholder_pattern})"
    )
    cleaned = single_newline_pattern.sub(" ", cleaned)
    cleaned = cleaned.replace(f"\n{BR_PLACEHOLDER}\n", "\n")
    cleaned = cleaned.replace(BR_PLACEHOLDER, "")
    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    cleaned = re.sub(r"\n[ \t]+", "\n", cleaned)
    cleaned = re.sub(r"[ \t]+\n", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    lines = [line.rstrip() for line in cleaned.split("\n")]
    return "\n".join(lines).strip()


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with(f"\n{BR_PLACEHOLDER}\n")

    paragraphs = soup.find_all("p")
    if not paragraphs:
        return normalize_text(soup.get_text("\n"))

    blocks = (normalize_text(paragraph.get_text()) for paragraph in paragraphs)
    return "\n\n".join(block for block in blocks if block)


def decode_chapter_text(raw: Payload, ref: ChapterRef, story_id: str) -> Chapter:
    """Build a fetched ``Chapter`` from a ``storytext`` response.

    The endpoint answers with an HTML fragment by default and with
    ``{"text": "<html>", "text_hash": ...}`` when JSON output is requested;
    both are accepted.
    """
    if not raw:
        raise EmptyPayload("chapter text")
    text = raw.decode("utf-8-sig", errors="replace") if isinstance(raw, bytes) else raw
    if not text.strip():
        raise EmptyPayload("chapter text")

    html = text
    if text.lstrip().startswith("{"):
        payload = load_payload(text, "chapter text")
        html = payload.get("text")
        if not isinstance(html, str):
            raise MalformedPayload("chapter text", "text")

    body = html_to_text(html)
    return Chapter(
        id=ref.id,
        story_id=story_id,
        order_index=ref.order_index,
        title=ref.title,
        body=body,
        word_count=len(body.split()),
        published_at=ref.created_at,
        html=html,
        url=ref.url,
        modified_at=ref.modified_at,
    )
