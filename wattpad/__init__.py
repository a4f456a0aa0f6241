import logging

from .assembler import StoryContentAssembler
from .client import WattpadClient
from .config import ClientConfig, Credential, Endpoints
from .errors import (
    AssemblerError,
    AuthRejected,
    ChapterFetchError,
    ConnectionFailed,
    DecodeError,
    EmptyPayload,
    HttpStatus,
    InvalidConfig,
    InvalidEndpoint,
    InvalidIdentifier,
    InvalidOrdering,
    MalformedPayload,
    NoChaptersFound,
    StoryNotFound,
    Timeout,
    TransportError,
    WattpadError,
)
from .http_utils import HttpTransport
from .models import (
    Chapter,
    ChapterRef,
    ChapterStatus,
    FetchState,
    Story,
    StoryContent,
    User,
    build_story_index,
)
from .parsing import Shape, decode

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AssemblerError",
    "AuthRejected",
    "Chapter",
    "ChapterFetchError",
    "ChapterRef",
    "ChapterStatus",
    "ClientConfig",
    "ConnectionFailed",
    "Credential",
    "DecodeError",
    "EmptyPayload",
    "Endpoints",
    "FetchState",
    "HttpStatus",
    "HttpTransport",
    "InvalidConfig",
    "InvalidEndpoint",
    "InvalidIdentifier",
    "InvalidOrdering",
    "MalformedPayload",
    "NoChaptersFound",
    "Shape",
    "Story",
    "StoryContent",
    "StoryContentAssembler",
    "StoryNotFound",
    "Timeout",
    "TransportError",
    "User",
    "WattpadClient",
    "WattpadError",
    "build_story_index",
    "decode",
]
