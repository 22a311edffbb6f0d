"""Unit tests for domain models: selectors, requests, documents, credentials, cycle reports."""

from datetime import datetime, timedelta, timezone

import pytest

from ficsync.domain.errors import ContentBlockedError, ErrorKind
from ficsync.domain.models.chapter import Chapter
from ficsync.domain.models.credential import Credential, CredentialState
from ficsync.domain.models.cycle import CycleReport, CycleState, PendingRetry, StoryOutcome
from ficsync.domain.models.delivery import DeliveryRecord, DeliveryStatus
from ficsync.domain.models.document import Document
from ficsync.domain.models.extraction import ChapterSelector, ExtractionRequest
from ficsync.domain.types import StoryRef

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def chapter(index: int, story_id: str = "42") -> Chapter:
    return Chapter(story_id=story_id, index=index, title=f"Chapter {index}", body="<p>x</p>", fetched_at=NOW)


def test_chapter_selector_indices_and_union():
    selector = ChapterSelector(3, 5)
    assert list(selector.indices()) == [3, 4, 5]
    assert selector.union(ChapterSelector(1, 2)) == ChapterSelector(1, 5)


@pytest.mark.parametrize("first,last", [(0, 1), (3, 2)])
def test_chapter_selector_validation(first, last):
    with pytest.raises(ValueError):
        ChapterSelector(first, last)


def test_extraction_request_merge_same_story():
    a = ExtractionRequest("fanfictionnet", "42", ChapterSelector(5, 5))
    b = ExtractionRequest("fanfictionnet", "42", ChapterSelector(1, 3))
    assert a.merge(b).chapter_selector == ChapterSelector(1, 5)


def test_extraction_request_merge_rejects_other_story():
    a = ExtractionRequest("fanfictionnet", "42", ChapterSelector(1, 1))
    with pytest.raises(ValueError):
        a.merge(ExtractionRequest("fanfictionnet", "43", ChapterSelector(1, 1)))


def test_extraction_request_dict_round_trip():
    request = ExtractionRequest("fanfictionnet", "42", ChapterSelector(2, 4))
    assert ExtractionRequest.from_dict(request.to_dict()) == request


def test_chapter_repr_hides_body():
    text = repr(Chapter(story_id="42", index=1, title="One", body="secret prose" * 10, fetched_at=NOW))
    assert "secret prose" not in text
    assert "body_len=120" in text


def test_document_requires_ordered_unique_chapters():
    story = StoryRef("fanfictionnet", "42")
    with pytest.raises(ValueError):
        Document(story=story, title="T", author="A", chapters=(chapter(2), chapter(1)), built_at=NOW)
    with pytest.raises(ValueError):
        Document(story=story, title="T", author="A", chapters=(), built_at=NOW)


def test_document_filename_and_gaps():
    doc = Document(
        story=StoryRef("fanfictionnet", "42"),
        title="T",
        author="A",
        chapters=(chapter(1), chapter(3)),
        built_at=NOW,
        missing=(2,),
    )
    assert doc.filename == "fanfictionnet-42.epub"
    assert doc.has_gaps
    assert doc.chapter_count == 2


def test_credential_states():
    credential = Credential(access_token="a", refresh_token="r", expires_at=NOW + timedelta(minutes=10))
    assert credential.state(now=NOW) is CredentialState.VALID
    assert credential.state(now=NOW + timedelta(minutes=6)) is CredentialState.EXPIRING_SOON
    assert credential.state(now=NOW + timedelta(minutes=10)) is CredentialState.EXPIRED


def test_credential_repr_and_serialization():
    credential = Credential(access_token="ya29.secret", refresh_token="1//refresh", expires_at=NOW)
    assert "ya29.secret" not in repr(credential)
    assert "1//refresh" not in repr(credential)
    assert Credential.from_bytes(credential.to_bytes()) == credential


def test_delivery_record_round_trip():
    record = DeliveryRecord(StoryRef("fanfictionnet", "42"), "f" * 64, "remote-1", NOW)
    assert DeliveryRecord.from_dict(record.to_dict()) == record


def test_story_outcome_partial_delivery():
    outcome = StoryOutcome(request=ExtractionRequest("fanfictionnet", "42", ChapterSelector(1, 3)))
    outcome.mark_delivered(DeliveryStatus.UPLOADED, "f" * 64, "remote-1", missing=(2,))
    assert outcome.status == "partial"
    assert outcome.needs_retry
    assert outcome.error_kind is ErrorKind.PERMANENT_ITEM


def test_story_outcome_failure_takes_error_kind():
    outcome = StoryOutcome(request=ExtractionRequest("fanfictionnet", "42", ChapterSelector(1, 1)))
    outcome.mark_failed(ContentBlockedError("fanfictionnet", "42", 1, "HTTP 403"))
    assert outcome.status == "failed"
    assert outcome.error_kind is ErrorKind.PERMANENT_ITEM
    assert "HTTP 403" in outcome.error


def test_pending_retry_round_trip():
    pending = PendingRetry(
        request=ExtractionRequest("fanfictionnet", "42", ChapterSelector(1, 3)),
        reason="chapter 2: blocked",
        error_kind=ErrorKind.TRANSIENT,
        attempts=2,
        updated_at=NOW,
    )
    assert PendingRetry.from_dict(pending.to_dict()) == pending


def test_cycle_report_rejects_invalid_transition():
    report = CycleReport(correlation_id="c1")
    with pytest.raises(ValueError):
        report.transition(CycleState.DELIVERING)


def test_cycle_report_statistics_and_finish():
    report = CycleReport(correlation_id="c1")
    for state in (CycleState.DIFFING, CycleState.CHECKPOINTING, CycleState.DONE):
        report.transition(state)
    assert report.finished_at is not None
    assert report.statistics().total_stories == 0
    assert report.to_dict()["transitions"] == ["received", "diffing", "checkpointing", "done"]
