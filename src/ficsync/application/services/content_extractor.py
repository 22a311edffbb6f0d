"""Map messages to extraction requests and fetch story chapters in order."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Sequence

from ...domain.errors import (
    ChapterNotFoundError,
    ContentBlockedError,
    ErrorKind,
    SourceUnavailableError,
    SyncError,
    UnsupportedSourceError,
)
from ...domain.models.chapter import Chapter
from ...domain.models.extraction import ExtractionRequest
from ...domain.models.message import MessageRef, RawMessage
from ...domain.policy.retry_policy import RetryPolicy
from ..ports.source_site import SourceSitePort
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)


@dataclass
class StoryFetch:
    """
    Chapters fetched for one request.

    Attributes:
        request: The request that was fetched
        chapters: Fetched chapters in index order
        missing: Chapter index -> failure reason for chapters left out
        interrupted: True if a transient failure stopped fetching early
    """
    request: ExtractionRequest
    chapters: list[Chapter] = field(default_factory=list)
    missing: dict[int, str] = field(default_factory=dict)
    interrupted: bool = False

    @property
    def missing_indices(self) -> tuple[int, ...]:
        return tuple(sorted(self.missing))

    @property
    def failure_kind(self) -> ErrorKind | None:
        if self.interrupted:
            return ErrorKind.TRANSIENT
        if self.missing:
            return ErrorKind.PERMANENT_ITEM
        return None

    def reason(self) -> str:
        return "; ".join(f"chapter {i}: {self.missing[i]}" for i in self.missing_indices)


def merge_requests(requests: Iterable[ExtractionRequest]) -> list[ExtractionRequest]:
    """Collapse requests for the same story into one, keeping first-seen order."""
    merged: dict[str, ExtractionRequest] = {}
    for request in requests:
        key = request.story.key
        merged[key] = merged[key].merge(request) if key in merged else request
    return list(merged.values())


class ContentExtractor:
    """
    Source-agnostic front for every registered SourceSitePort.

    Requests are routed by their `source_kind` tag; adding a source means
    registering another SourceSitePort.
    """

    def __init__(self, sources: Sequence[SourceSitePort], retry_policy: RetryPolicy | None = None) -> None:
        self.sources: dict[str, SourceSitePort] = {}
        for source in sources:
            if source.source_kind in self.sources:
                raise ValueError(f"Duplicate source registered: {source.source_kind}")
            self.sources[source.source_kind] = source
        self.retry_policy = retry_policy or RetryPolicy()

    def classify(self, ref: MessageRef, message: RawMessage) -> list[ExtractionRequest]:
        """
        Derive extraction requests from one message.

        Unrecognized messages yield an empty list.
        """
        requests: list[ExtractionRequest] = []
        for source in self.sources.values():
            requests.extend(source.classify(message))
        requests = merge_requests(requests)

        if requests:
            logger.info(
                f"Message {ref.message_id} references {len(requests)} story(ies)",
                extra={"message_id": ref.message_id, "stories": [r.story.key for r in requests]},
            )
        else:
            logger.debug(f"Message {ref.message_id} not recognized by any source")
        return requests

    def fetch(self, request: ExtractionRequest) -> StoryFetch:
        """
        Fetch the selected chapters of one story, strictly in index order.

        Blocked or missing chapters leave a gap and fetching continues. A
        source that stays unavailable after retries stops the story there,
        keeping the chapters already fetched.

        Args:
            request: Extraction request

        Returns:
            StoryFetch with at least one chapter

        Raises:
            UnsupportedSourceError: No source registered for the request's tag
            SourceUnavailableError: Unavailable before any chapter was fetched
            ContentBlockedError / ChapterNotFoundError: No chapter could be fetched
        """
        source = self.sources.get(request.source_kind)
        if source is None:
            raise UnsupportedSourceError(request.source_kind)

        result = StoryFetch(request=request)
        last_error: SyncError | None = None
        indices = list(request.chapter_selector.indices())

        for position, index in enumerate(indices):
            try:
                chapter = retry_with_backoff(
                    lambda: source.fetch_chapter(request.story_id, index),
                    self.retry_policy,
                    description=f"{request.story.key} chapter {index} fetch",
                )
            except (ContentBlockedError, ChapterNotFoundError) as e:
                last_error = e
                result.missing[index] = str(e)
                logger.warning(
                    f"Skipping chapter {index} of {request.story.key}: {e}",
                    extra={"story": request.story.key, "stage": "fetching", "error_kind": e.kind.value},
                )
                continue
            except SourceUnavailableError as e:
                last_error = e
                result.interrupted = True
                for remaining in indices[position:]:
                    result.missing[remaining] = str(e)
                logger.warning(
                    f"Stopped fetching {request.story.key} at chapter {index}: {e}",
                    extra={"story": request.story.key, "stage": "fetching", "error_kind": e.kind.value},
                )
                break

            if chapter.index != index:
                # Sources number chapters by URL position; trust the requested index
                chapter = replace(chapter, index=index)
            result.chapters.append(chapter)

        if not result.chapters and last_error is not None:
            raise last_error

        logger.info(
            f"Fetched {len(result.chapters)}/{len(indices)} chapter(s) of {request.story.key}",
            extra={"story": request.story.key, "missing": list(result.missing_indices)},
        )
        return result
