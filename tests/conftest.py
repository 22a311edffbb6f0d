"""Shared fixtures: pipeline wired with in-memory fakes and a real SQLite state store."""

from __future__ import annotations

import pytest

from ficsync.domain.policy.retry_policy import RetryPolicy
from ficsync.domain.types import Checkpoint
from ficsync.infrastructure.adapters.credential_vault import SecretBoxVault
from ficsync.infrastructure.adapters.sqlite_state_store import SqliteStateStore
from ficsync.infrastructure.config.settings import PipelineSettings, RetrySettings, Settings
from ficsync.infrastructure.container import build_pipeline

from fakes import TEST_KEY, FakeDocumentStore, FakeMailbox, FakeRefresher, FakeSource, valid_credential


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=False)


@pytest.fixture
def vault() -> SecretBoxVault:
    return SecretBoxVault(TEST_KEY)


@pytest.fixture
def state():
    store = SqliteStateStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def mailbox() -> FakeMailbox:
    return FakeMailbox()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def document_store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def refresher() -> FakeRefresher:
    return FakeRefresher()


@pytest.fixture
def make_pipeline(mailbox, source, document_store, refresher, state, vault):
    """Factory for a pipeline wired with fakes, seeded credentials and a checkpoint of 100."""

    def factory(max_workers: int = 2, max_story_retries: int = 3, checkpoint: str | None = "100"):
        settings = Settings(
            retry=RetrySettings(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=False),
            pipeline=PipelineSettings(max_workers=max_workers, max_story_retries=max_story_retries),
        )
        pipeline = build_pipeline(
            settings,
            mailbox=mailbox,
            document_store=document_store,
            mailbox_refresher=refresher,
            store_refresher=refresher,
            sources=[source],
            state=state,
            vault=vault,
        )
        pipeline.tracker.credentials.save(valid_credential("mailbox-access"))
        pipeline.delivery.credentials.save(valid_credential("store-access"))
        if checkpoint is not None:
            state.advance_checkpoint(Checkpoint(checkpoint))
        return pipeline

    return factory
