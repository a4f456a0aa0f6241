"""Default ``fields=`` selections sent to the v3 API.

The v3 endpoints only return what is asked for, so each metadata request
names the fields its decoder reads. Nested objects use ``name(sub,fields)``.
"""

from __future__ import annotations

from typing import Iterable, Optional, Union

FieldSpec = Union[str, tuple[str, Iterable["FieldSpec"]]]

CHAPTER_REF_FIELDS: tuple[str, ...] = (
    "id",
    "title",
    "url",
    "draft",
    "deleted",
    "length",
    "createDate",
    "modifyDate",
)

STORY_FIELDS: tuple[FieldSpec, ...] = (
    "id",
    "title",
    "length",
    "createDate",
    "modifyDate",
    "voteCount",
    "readCount",
    "commentCount",
    ("language", ("id", "name")),
    ("user", ("name", "avatar", "fullname", "verified")),
    "description",
    "cover",
    "completed",
    "categories",
    "tags",
    "rating",
    "mature",
    "copyright",
    "url",
    "numParts",
    ("parts", CHAPTER_REF_FIELDS),
    "deleted",
)

USER_FIELDS: tuple[str, ...] = (
    "username",
    "avatar",
    "backgroundUrl",
    "name",
    "description",
    "location",
    "verified",
    "isPrivate",
    "createDate",
    "modifyDate",
    "votesReceived",
    "numStoriesPublished",
    "numFollowing",
    "numFollowers",
    "numLists",
)

USER_STORIES_FIELDS: tuple[FieldSpec, ...] = (("stories", ("id",)),)

CHAPTER_FIELDS: tuple[FieldSpec, ...] = (
    "id",
    "title",
    "url",
    "groupId",
    "createDate",
    "modifyDate",
    "wordCount",
    "length",
    "voteCount",
    "readCount",
    "commentCount",
)


# Names the decoders refuse to work without
STORY_REQUIRED_FIELDS: tuple[str, ...] = ("id", "title")
CHAPTER_REQUIRED_FIELDS: tuple[str, ...] = ("id", "title")
USER_REQUIRED_FIELDS: tuple[str, ...] = ("username",)


def format_fields(fields: Iterable[FieldSpec]) -> str:
    parts: list[str] = []
    for entry in fields:
        if isinstance(entry, str):
            parts.append(entry)
        else:
            name, sub_fields = entry
            parts.append(f"{name}({format_fields(sub_fields)})")
    return ",".join(parts)


def select_fields(
    requested: Optional[Iterable[FieldSpec]],
    defaults: Iterable[FieldSpec],
    required: Iterable[str] = (),
) -> str:
    """Build the ``fields=`` value for a request.

    ``requested`` replaces ``defaults`` when it is given and non-empty. The
    ``required`` names the decoder cannot do without are put in front when
    the caller left them out.
    """
    if isinstance(requested, str):
        requested = (requested,)
    chosen = list(requested or ())
    if not chosen:
        return format_fields(defaults)
    named = {entry if isinstance(entry, str) else entry[0] for entry in chosen}
    missing = [name for name in required if name not in named]
    return format_fields([*missing, *chosen])
