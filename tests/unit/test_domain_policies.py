"""Unit tests for domain policies and the fingerprint service."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from ficsync.domain.models.chapter import Chapter
from ficsync.domain.models.delivery import DeliveryRecord
from ficsync.domain.models.document import Document
from ficsync.domain.policy.assembly_policy import AssemblyPolicy
from ficsync.domain.policy.retry_policy import RetryPolicy
from ficsync.domain.services.content_fingerprint import ContentFingerprintService
from ficsync.domain.types import StoryRef

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_document(body: str = "<p>Hello</p>", built_at: datetime = NOW, missing=()) -> Document:
    chapters = (Chapter(story_id="42", index=1, title="One", body=body, fetched_at=built_at),)
    return Document(
        story=StoryRef("fanfictionnet", "42"),
        title="Story",
        author="Author",
        chapters=chapters,
        built_at=built_at,
        missing=missing,
    )


def test_retry_policy_delays_are_capped():
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=5.0)
    assert [policy.delay_for(a) for a in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.parametrize(
    "kwargs",
    [{"max_attempts": 0}, {"base_delay": -1.0}, {"base_delay": 10.0, "max_delay": 1.0}],
)
def test_retry_policy_validation(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_assembly_policy_defaults_allow_partial():
    assert AssemblyPolicy().allow_partial is True
    with pytest.raises(ValueError):
        AssemblyPolicy(language="")


def test_fingerprint_ignores_timestamps():
    a = make_document(built_at=NOW)
    b = make_document(built_at=NOW + timedelta(days=3))
    assert ContentFingerprintService.compute(a) == ContentFingerprintService.compute(b)


def test_fingerprint_covers_content_and_gaps():
    base = ContentFingerprintService.compute(make_document())
    assert ContentFingerprintService.compute(make_document(body="<p>Hello!</p>")) != base
    assert ContentFingerprintService.compute(make_document(missing=(2,))) != base
    assert ContentFingerprintService.compute(replace(make_document(), title="Other")) != base


def test_fingerprint_ignores_package_bytes():
    doc = make_document()
    assert ContentFingerprintService.compute(replace(doc, package=b"zip")) == ContentFingerprintService.compute(doc)


def test_is_unchanged():
    fingerprint = ContentFingerprintService.compute(make_document())
    record = DeliveryRecord(StoryRef("fanfictionnet", "42"), fingerprint, "remote-1")
    assert ContentFingerprintService.is_unchanged(record, fingerprint)
    assert not ContentFingerprintService.is_unchanged(record, "0" * 64)
    assert not ContentFingerprintService.is_unchanged(None, fingerprint)
