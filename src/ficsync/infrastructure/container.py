"""Composition root: wires adapters, services and the pipeline from Settings."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Sequence

from ..application.ports.credential_vault import CredentialVaultPort
from ..application.ports.document_store import DocumentStorePort
from ..application.ports.mailbox import MailboxPort
from ..application.ports.source_site import SourceSitePort
from ..application.ports.state_store import StateStorePort
from ..application.ports.token_refresher import TokenRefresherPort
from ..application.services.content_extractor import ContentExtractor
from ..application.services.credential_session import CredentialSession
from ..application.services.delivery_manager import DeliveryManager
from ..application.services.document_assembler import DocumentAssembler
from ..application.services.history_tracker import HistoryTracker
from ..application.use_cases.run_sync_cycle import SyncPipeline
from .adapters.credential_vault import SecretBoxVault
from .adapters.epub_packager import EpubPackager
from .adapters.fanfictionnet import FanFictionNetSource
from .adapters.sqlite_state_store import SqliteStateStore
from .config.environment import get_vault_key
from .config.settings import Settings
from .logging import configure_logging

logger = logging.getLogger(__name__)


def build_pipeline(
    settings: Settings,
    mailbox: MailboxPort,
    document_store: DocumentStorePort,
    mailbox_refresher: TokenRefresherPort,
    store_refresher: TokenRefresherPort,
    sources: Sequence[SourceSitePort] | None = None,
    state: StateStorePort | None = None,
    vault: CredentialVaultPort | None = None,
) -> SyncPipeline:
    """
    Build a ready-to-run SyncPipeline.

    Args:
        settings: Loaded settings
        mailbox: Mailbox API client
        document_store: Remote document store client
        mailbox_refresher: Token refresher for the mailbox credential
        store_refresher: Token refresher for the document store credential
        sources: Source sites (default: FanFiction.Net from settings)
        state: State store (default: SQLite at settings.state.path)
        vault: Credential vault (default: SecretBox keyed from FICSYNC_VAULT_KEY)

    Raises:
        VaultKeyUnavailableError: No vault given and the key is missing or malformed
        StateStoreError: State database cannot be opened
    """
    retry_policy = settings.retry.to_policy()
    assembly_policy = settings.assembly.to_policy()

    if vault is None:
        vault = SecretBoxVault(get_vault_key())
    if state is None:
        state = SqliteStateStore(settings.state.path)
    if sources is None:
        ffn = settings.source.fanfictionnet
        sources = [
            FanFictionNetSource(
                base_url=ffn.base_url,
                timeout_seconds=ffn.timeout_seconds,
                user_agent=ffn.user_agent,
                full_story=ffn.full_story,
            )
        ]

    skew = timedelta(seconds=settings.credentials.refresh_skew_seconds)
    mailbox_credentials = CredentialSession(
        settings.credentials.mailbox_name, vault, state, mailbox_refresher, refresh_skew=skew, retry_policy=retry_policy
    )
    store_credentials = CredentialSession(
        settings.credentials.store_name, vault, state, store_refresher, refresh_skew=skew, retry_policy=retry_policy
    )

    pipeline = SyncPipeline(
        tracker=HistoryTracker(mailbox, mailbox_credentials, retry_policy),
        extractor=ContentExtractor(sources, retry_policy),
        assembler=DocumentAssembler(EpubPackager(assembly_policy), assembly_policy),
        delivery=DeliveryManager(document_store, state, store_credentials, retry_policy),
        state=state,
        max_workers=settings.pipeline.max_workers,
        max_story_retries=settings.pipeline.max_story_retries,
        recent_notifications=settings.pipeline.recent_notifications,
        max_message_failures=settings.pipeline.max_message_failures,
    )
    logger.info(
        f"Pipeline ready with source(s): {', '.join(s.source_kind for s in sources)}",
        extra={"max_workers": settings.pipeline.max_workers},
    )
    return pipeline


def setup_logging(settings: Settings) -> None:
    """Configure process logging from the [logging] section."""
    configure_logging(settings.logging.level, verbose=settings.logging.verbose)
