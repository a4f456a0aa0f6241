from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from .config import ClientConfig, Credential
from .errors import (
    ChapterFetchError,
    DecodeError,
    HttpStatus,
    NoChaptersFound,
    StoryNotFound,
    TransportError,
)
from .http_utils import STORY_NOT_FOUND_CODE, Transport
from .models import (
    SKIP_CANCELLED,
    SKIP_DELETED,
    Chapter,
    ChapterRef,
    ChapterStatus,
    Story,
    StoryContent,
)
from .parsing import decode_chapter_text, decode_story

logger = logging.getLogger(__name__)

# How often a dispatcher blocked on a full pool looks at the cancel flag
_CANCEL_POLL_INTERVAL = 0.05

ChapterResult = tuple[Optional[Chapter], ChapterStatus]


class StoryContentAssembler:
    """Fetches every chapter of a story and merges them into one ``StoryContent``.

    Chapter fetches run on a thread pool. A bounded semaphore owned by the
    assembler caps the number of requests in flight, across every
    ``assemble`` call made on the same instance.
    """

    def __init__(self, transport: Transport, config: Optional[ClientConfig] = None) -> None:
        self.transport = transport
        self.config = (config or ClientConfig()).validate()
        self._slots = threading.BoundedSemaphore(self.config.concurrency)

    def fetch_story(self, story_id: str, credential: Optional[Credential] = None) -> Story:
        endpoint = self.config.story_url(story_id)
        try:
            raw = self.transport.send(
                endpoint, "GET", credential, purpose=f"Story {story_id} request"
            )
        except HttpStatus as exc:
            if exc.status_code == 404 or exc.api_code == STORY_NOT_FOUND_CODE:
                raise StoryNotFound(story_id) from exc
            raise
        return decode_story(raw)

    def fetch_chapter(
        self,
        ref: ChapterRef,
        story_id: str,
        credential: Optional[Credential] = None,
    ) -> Chapter:
        raw = self.transport.send(
            self.config.chapter_text_url(ref.id),
            "GET",
            credential,
            purpose=f"Chapter {ref.order_index} request",
        )
        return decode_chapter_text(raw, ref, story_id)

    def assemble(
        self,
        story_id: str,
        *,
        credential: Optional[Credential] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> StoryContent:
        story = self.fetch_story(story_id, credential)
        return self.assemble_story(story, credential=credential, cancel_event=cancel_event)

    def assemble_story(
        self,
        story: Story,
        *,
        credential: Optional[Credential] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> StoryContent:
        if not story.chapters:
            raise NoChaptersFound(story.id)
        cancel_event = cancel_event or threading.Event()

        total_chapters = len(story.chapters)
        logger.info("Story %s: fetching %d chapters", story.id, total_chapters)
        started = time.perf_counter()

        statuses: dict[int, ChapterStatus] = {}
        pending: dict[int, Future] = {}

        with ThreadPoolExecutor(
            max_workers=self.config.concurrency,
            thread_name_prefix=f"wattpad-{story.id}",
        ) as pool:
            for ref in story.chapters:
                if ref.deleted:
                    statuses[ref.order_index] = ChapterStatus.skipped(ref, SKIP_DELETED)
                    continue
                if not self._acquire_slot(cancel_event):
                    logger.info(
                        "Story %s: cancelled after dispatching %d chapters",
                        story.id,
                        len(pending),
                    )
                    break
                pending[ref.order_index] = pool.submit(
                    self._fetch_with_status, ref, story.id, credential
                )

        chapters: dict[int, Chapter] = {}
        for order_index, future in pending.items():
            chapter, status = future.result()
            statuses[order_index] = status
            if chapter is not None:
                chapters[order_index] = chapter

        for ref in story.chapters:
            if ref.order_index not in statuses:
                statuses[ref.order_index] = ChapterStatus.skipped(ref, SKIP_CANCELLED)

        content = StoryContent(
            story_id=story.id,
            chapters=tuple(chapters[index] for index in sorted(chapters)),
            statuses=statuses,
        )
        logger.info(
            "Story %s: %d/%d chapters fetched (%d failed, %d skipped) in %.1fs",
            story.id,
            len(content.succeeded),
            total_chapters,
            len(content.failed),
            len(content.skipped),
            time.perf_counter() - started,
        )
        return content

    def _acquire_slot(self, cancel_event: threading.Event) -> bool:
        while not self._slots.acquire(timeout=_CANCEL_POLL_INTERVAL):
            if cancel_event.is_set():
                return False
        if cancel_event.is_set():
            self._slots.release()
            return False
        return True

    def _fetch_with_status(
        self,
        ref: ChapterRef,
        story_id: str,
        credential: Optional[Credential],
    ) -> ChapterResult:
        try:
            chapter = self.fetch_chapter(ref, story_id, credential)
        except (TransportError, DecodeError) as exc:
            endpoint = getattr(exc, "endpoint", "") or self.config.chapter_text_url(ref.id)
            logger.warning("Chapter %d (%s) failed: %s", ref.order_index, ref.id, exc)
            return None, ChapterStatus.failed(
                ref, ChapterFetchError(ref.id, ref.order_index, endpoint, exc)
            )
        except Exception as exc:
            logger.exception("Chapter %d (%s) failed unexpectedly", ref.order_index, ref.id)
            endpoint = self.config.chapter_text_url(ref.id)
            return None, ChapterStatus.failed(
                ref, ChapterFetchError(ref.id, ref.order_index, endpoint, exc)
            )
        finally:
            self._slots.release()
        return chapter, ChapterStatus.success(ref)
