from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .errors import ChapterFetchError, InvalidIdentifier, InvalidOrdering


def _require_id(kind: str, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidIdentifier(kind, value)


@dataclass(frozen=True)
class ChapterRef:
    id: str
    title: str
    order_index: int
    url: str = ""
    draft: bool = False
    deleted: bool = False
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _require_id("chapter", self.id)


@dataclass(frozen=True)
class Story:
    id: str
    title: str
    description: str = ""
    tags: frozenset[str] = frozenset()
    chapters: tuple[ChapterRef, ...] = ()
    cover_url: str = ""
    language: str = ""
    completed: bool = False
    mature: bool = False
    vote_count: int = 0
    read_count: int = 0
    comment_count: int = 0
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    author: str = ""
    url: str = ""
    language_id: Optional[int] = None
    categories: tuple[int, ...] = ()
    num_parts: int = 0
    rating: Optional[int] = None
    copyright: Optional[int] = None
    length: int = 0
    deleted: bool = False

    def __post_init__(self) -> None:
        _require_id("story", self.id)
        indices = tuple(chapter.order_index for chapter in self.chapters)
        if any(later <= earlier for earlier, later in zip(indices, indices[1:])):
            raise InvalidOrdering(self.id, indices)

    def chapter(self, order_index: int) -> Optional[ChapterRef]:
        for ref in self.chapters:
            if ref.order_index == order_index:
                return ref
        return None


@dataclass(frozen=True)
class Chapter:
    id: str
    story_id: str
    order_index: int
    title: str
    body: Optional[str] = None
    word_count: int = 0
    published_at: Optional[datetime] = None
    html: Optional[str] = field(default=None, repr=False)
    url: str = ""
    modified_at: Optional[datetime] = None
    vote_count: int = 0
    read_count: int = 0
    comment_count: int = 0

    def __post_init__(self) -> None:
        _require_id("chapter", self.id)

    @property
    def fetched(self) -> bool:
        return self.body is not None


@dataclass(frozen=True)
class User:
    id: str
    username: str
    display_name: str = ""
    avatar_url: str = ""
    follower_count: int = 0
    following_count: int = 0
    story_ids: tuple[str, ...] = ()
    description: str = ""
    background_url: str = ""
    location: str = ""
    verified: bool = False
    is_private: bool = False
    votes_received: int = 0
    num_stories_published: int = 0
    num_lists: int = 0
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _require_id("user", self.id)
        _require_id("user", self.username)

    def resolve_stories(self, index: Mapping[str, Story]) -> tuple[Story, ...]:
        """Look up this user's stories in ``index``; unknown ids are left out."""
        return tuple(index[story_id] for story_id in self.story_ids if story_id in index)


def build_story_index(stories: Iterable[Story]) -> Mapping[str, Story]:
    return MappingProxyType({story.id: story for story in stories})


class FetchState(enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


# Reasons recorded on SKIPPED statuses
SKIP_DELETED = "deleted"
SKIP_CANCELLED = "cancelled"


@dataclass(frozen=True)
class ChapterStatus:
    chapter_id: str
    order_index: int
    state: FetchState
    error: Optional[ChapterFetchError] = None
    reason: str = ""

    @classmethod
    def success(cls, ref: ChapterRef) -> "ChapterStatus":
        return cls(chapter_id=ref.id, order_index=ref.order_index, state=FetchState.SUCCESS)

    @classmethod
    def failed(cls, ref: ChapterRef, error: ChapterFetchError) -> "ChapterStatus":
        return cls(
            chapter_id=ref.id,
            order_index=ref.order_index,
            state=FetchState.FAILED,
            error=error,
            reason=str(error.cause),
        )

    @classmethod
    def skipped(cls, ref: ChapterRef, reason: str) -> "ChapterStatus":
        return cls(
            chapter_id=ref.id,
            order_index=ref.order_index,
            state=FetchState.SKIPPED,
            reason=reason,
        )


@dataclass(frozen=True)
class StoryContent:
    story_id: str
    chapters: tuple[Chapter, ...]
    statuses: Mapping[int, ChapterStatus] = field(hash=False)

    def __post_init__(self) -> None:
        _require_id("story", self.story_id)
        indices = tuple(chapter.order_index for chapter in self.chapters)
        if any(later <= earlier for earlier, later in zip(indices, indices[1:])):
            raise InvalidOrdering(self.story_id, indices)
        if not isinstance(self.statuses, MappingProxyType):
            ordered = dict(sorted(self.statuses.items()))
            object.__setattr__(self, "statuses", MappingProxyType(ordered))

    def _indices(self, state: FetchState) -> tuple[int, ...]:
        return tuple(index for index, status in self.statuses.items() if status.state is state)

    @property
    def succeeded(self) -> tuple[int, ...]:
        return self._indices(FetchState.SUCCESS)

    @property
    def failed(self) -> tuple[int, ...]:
        return self._indices(FetchState.FAILED)

    @property
    def skipped(self) -> tuple[int, ...]:
        return self._indices(FetchState.SKIPPED)

    @property
    def cancelled(self) -> tuple[int, ...]:
        return tuple(
            index
            for index, status in self.statuses.items()
            if status.state is FetchState.SKIPPED and status.reason == SKIP_CANCELLED
        )

    @property
    def complete(self) -> bool:
        """True when every chapter was resolved, i.e. none was left out by cancellation.

        Failed chapters and deleted chapters both count as resolved.
        """
        return not self.cancelled

    def as_text(self) -> str:
        lines: list[str] = []
        total = len(self.chapters)
        for offset, chapter in enumerate(self.chapters):
            lines.append(f"Chapter {chapter.order_index}: {chapter.title}")
            if chapter.url:
                lines.append(f"URL: {chapter.url}")
            lines.append("")
            lines.append(chapter.body or "")
            if offset != total - 1:
                lines.append("")
                lines.append("-" * 80)
                lines.append("")

        return "\n".join(lines).strip() + "\n"
