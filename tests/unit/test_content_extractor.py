"""Unit tests for ContentExtractor and merge_requests."""

import pytest

from ficsync.application.services.content_extractor import ContentExtractor, merge_requests
from ficsync.domain.errors import (
    ChapterNotFoundError,
    ContentBlockedError,
    ErrorKind,
    SourceUnavailableError,
    UnsupportedSourceError,
)
from ficsync.domain.models.extraction import ChapterSelector, ExtractionRequest
from ficsync.domain.models.message import MessageRef

from fakes import BASE_TIME, FakeSource, alert


def request(story_id: str, first: int, last: int, kind: str = "fake") -> ExtractionRequest:
    return ExtractionRequest(kind, story_id, ChapterSelector(first, last))


@pytest.fixture
def extractor(source, fast_retry):
    return ContentExtractor([source], fast_retry)


def test_duplicate_sources_are_rejected(source):
    with pytest.raises(ValueError):
        ContentExtractor([source, FakeSource()])


def test_merge_requests_keeps_first_seen_order():
    merged = merge_requests([request("b", 2, 2), request("a", 1, 1), request("b", 5, 5)])
    assert merged == [request("b", 2, 5), request("a", 1, 1)]


def test_classify_merges_requests_for_one_story(extractor):
    message = alert("m1", "fake://story/9/chapters/3-3", "fake://story/9/chapters/1-2")
    assert extractor.classify(MessageRef("m1", BASE_TIME), message) == [request("9", 1, 3)]


def test_classify_unrecognized_message(extractor):
    assert extractor.classify(MessageRef("m1", BASE_TIME), alert("m1", "hello")) == []


def test_fetch_returns_chapters_in_index_order(extractor, source):
    source.add_story("9", 3)

    fetch = extractor.fetch(request("9", 1, 3))

    assert [c.index for c in fetch.chapters] == [1, 2, 3]
    assert source.calls == [("9", 1), ("9", 2), ("9", 3)]
    assert fetch.missing == {}
    assert fetch.failure_kind is None


def test_blocked_chapter_leaves_gap_and_continues(extractor, source):
    source.add_story("9", 3)
    source.chapters[("9", 2)] = ContentBlockedError("fake", "9", 2, "HTTP 403")

    fetch = extractor.fetch(request("9", 1, 3))

    assert [c.index for c in fetch.chapters] == [1, 3]
    assert fetch.missing_indices == (2,)
    assert fetch.failure_kind is ErrorKind.PERMANENT_ITEM
    assert "HTTP 403" in fetch.reason()


def test_unavailable_source_stops_the_story(extractor, source):
    source.add_story("9", 4)
    source.chapters[("9", 3)] = SourceUnavailableError("fake", "9", 3, "timed out")

    fetch = extractor.fetch(request("9", 1, 4))

    assert [c.index for c in fetch.chapters] == [1, 2]
    assert fetch.missing_indices == (3, 4)
    assert fetch.interrupted
    assert fetch.failure_kind is ErrorKind.TRANSIENT
    # Three attempts at chapter 3, none at chapter 4
    assert source.calls.count(("9", 3)) == 3
    assert ("9", 4) not in source.calls


def test_nothing_fetched_raises_last_error(extractor, source):
    with pytest.raises(ChapterNotFoundError):
        extractor.fetch(request("404", 1, 2))


def test_unavailable_before_first_chapter_raises(extractor, source):
    source.chapters[("9", 1)] = SourceUnavailableError("fake", "9", 1, "timed out")
    with pytest.raises(SourceUnavailableError):
        extractor.fetch(request("9", 1, 1))


def test_unknown_source(extractor):
    with pytest.raises(UnsupportedSourceError):
        extractor.fetch(request("9", 1, 1, kind="elsewhere"))
