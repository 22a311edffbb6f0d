from __future__ import annotations

import contextvars
import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor

from ...domain.errors import CycleAbortedError, ErrorKind, SyncError
from ...domain.models.cycle import CycleReport, CycleState, PendingRetry, StoryOutcome
from ...domain.models.document import Document
from ...domain.models.message import MessageRef, RawMessage
from ...domain.types import Checkpoint
from ...infrastructure.logging import new_correlation_id
from ..dto.sync import NotificationEvent
from ..ports.state_store import StateStorePort
from ..services.content_extractor import ContentExtractor, StoryFetch, merge_requests
from ..services.delivery_manager import DeliveryManager, ReconcileReport
from ..services.document_assembler import DocumentAssembler
from ..services.history_tracker import HistoryTracker

logger = logging.getLogger(__name__)


class SyncPipeline:
    """
    Drives one notification cycle: diff → extract → assemble → deliver → checkpoint.

    Cycles are serialized by a single pipeline lock. Notifications arriving
    while a cycle runs are single-flighted: the first one queues a re-run,
    any further ones coalesce into it. The checkpoint only advances once
    every story of the cycle reached a terminal outcome; stories that did not
    succeed are persisted as pending retries and picked up by later cycles.
    A message that cannot be retrieved is skipped once the mailbox reports it
    gone, or after `max_message_failures` consecutive aborted cycles.
    """

    def __init__(
        self,
        tracker: HistoryTracker,
        extractor: ContentExtractor,
        assembler: DocumentAssembler,
        delivery: DeliveryManager,
        state: StateStorePort,
        max_workers: int = 4,
        max_story_retries: int = 5,
        recent_notifications: int = 256,
        max_message_failures: int = 3,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if max_story_retries < 1:
            raise ValueError(f"max_story_retries must be >= 1, got {max_story_retries}")
        if max_message_failures < 1:
            raise ValueError(f"max_message_failures must be >= 1, got {max_message_failures}")
        self.tracker = tracker
        self.extractor = extractor
        self.assembler = assembler
        self.delivery = delivery
        self.state = state
        self.max_workers = max_workers
        self.max_story_retries = max_story_retries
        self.recent_notifications = recent_notifications
        self.max_message_failures = max_message_failures
        self.last_report: CycleReport | None = None

        self._cycle_lock = threading.Lock()
        self._flight_lock = threading.Lock()
        self._running = False
        self._queued = False
        self._cancel = threading.Event()
        self._recent: OrderedDict[str, None] = OrderedDict()
        # Consecutive aborted cycles per message id
        self._message_failures: dict[str, int] = {}

    # Notification entry point ------------------------------------------------

    def handle_notification(self, event: NotificationEvent) -> CycleReport | None:
        """
        Handle one inbound notification.

        Returns:
            Report of the last cycle run by this call, or None when the
            notification was a redelivery or was queued/coalesced behind a
            running cycle (that cycle's owner runs the re-check).

        Raises:
            CycleAbortedError: A cycle hit a global failure
        """
        with self._flight_lock:
            if event.message_id:
                if event.message_id in self._recent:
                    logger.info(
                        f"Ignoring redelivered notification {event.message_id}",
                        extra={"history_id": event.history_id},
                    )
                    return None
                self._remember(event.message_id)
            if self._running:
                if self._queued:
                    logger.debug(f"Notification {event.history_id} coalesced into queued cycle")
                else:
                    self._queued = True
                    logger.info(f"Notification {event.history_id} queued behind running cycle")
                return None
            self._running = True

        try:
            report = self.run_cycle(event)
            while True:
                with self._flight_lock:
                    if not self._queued:
                        self._running = False
                        return report
                    self._queued = False
                report = self.run_cycle()
        except BaseException:
            with self._flight_lock:
                self._running = False
                self._queued = False
            raise

    def cancel(self) -> None:
        """Stop the running cycle (or the next one to start) at the next story boundary."""
        self._cancel.set()

    def reset_checkpoint(self, value: str | None = None) -> None:
        """Operator reset; the only way to move the checkpoint backwards."""
        with self._cycle_lock:
            self.state.reset_checkpoint(Checkpoint(value) if value else None)
            logger.warning(f"Checkpoint reset by operator to {value or '<none>'}")

    def reconcile(self) -> ReconcileReport:
        """Align the delivery ledger with the remote store, between cycles."""
        with self._cycle_lock:
            return self.delivery.reconcile()

    # Cycle -------------------------------------------------------------------

    def run_cycle(self, event: NotificationEvent | None = None) -> CycleReport:
        """
        Run one full cycle under the pipeline lock.

        Args:
            event: Triggering notification (None for a re-check)

        Returns:
            CycleReport in state DONE or PARTIALLY_FAILED

        Raises:
            CycleAbortedError: Global failure; the checkpoint was not advanced
        """
        with self._cycle_lock:
            report = CycleReport(correlation_id=new_correlation_id())
            self.last_report = report
            try:
                self._run(report, event)
            except Exception as e:
                stage = report.state.value
                kind = getattr(e, "kind", ErrorKind.PERMANENT_GLOBAL)
                report.abort(str(e))
                logger.error(
                    f"Cycle aborted during {stage}: {e}",
                    extra={"stage": stage, "error_kind": kind.value},
                )
                raise CycleAbortedError(stage, e) from e
            finally:
                # A cancel() issued while waiting for the lock applies to this cycle only
                self._cancel.clear()
            return report

    def _run(self, report: CycleReport, event: NotificationEvent | None) -> None:
        checkpoint = self.state.get_checkpoint()
        report.checkpoint_before = checkpoint
        pending = {retry.story.key: retry for retry in self.state.list_pending_retries()}

        if event is not None and checkpoint is not None and not pending:
            if not Checkpoint(event.history_id).is_after(checkpoint):
                report.skipped = True
                report.checkpoint_after = checkpoint
                report.transition(CycleState.DONE)
                logger.info(f"Notification {event.history_id} is not newer than checkpoint {checkpoint}, skipping")
                return

        report.transition(CycleState.DIFFING)
        if checkpoint is None:
            latest = self.tracker.latest()
            report.transition(CycleState.CHECKPOINTING)
            self.state.advance_checkpoint(latest)
            report.checkpoint_after = latest
            report.transition(CycleState.DONE)
            logger.info(f"No stored checkpoint, bootstrapped to {latest}")
            return

        refs, new_checkpoint = self.tracker.diff(checkpoint)
        report.message_ids = [ref.message_id for ref in refs]

        if refs or pending:
            report.transition(CycleState.EXTRACTING)
            requests = []
            # Bodies are fetched up front: a mailbox failure aborts before any side effect
            for ref in refs:
                message = self._fetch_message(report, ref)
                if message is not None:
                    requests.extend(self.extractor.classify(ref, message))
            requests.extend(retry.request for retry in pending.values())
            for request in merge_requests(requests):
                report.stories[request.story.key] = StoryOutcome(request=request)

            fetched = self._fetch_all(report)

            report.transition(CycleState.ASSEMBLING)
            documents = self._assemble_all(report, fetched)

            report.transition(CycleState.DELIVERING)
            self._deliver_all(report, fetched, documents)

            for outcome in report.stories.values():
                if not outcome.is_terminal:
                    outcome.mark_deferred()
            report.cancelled = self._cancel.is_set()

        report.transition(CycleState.CHECKPOINTING)
        self._record_retries(report, pending)
        self.state.advance_checkpoint(new_checkpoint)
        report.checkpoint_after = self.state.get_checkpoint() or new_checkpoint

        stats = report.statistics()
        report.transition(CycleState.PARTIALLY_FAILED if report.partially_failed else CycleState.DONE)
        logger.info(
            f"Cycle {report.state.value}: {len(refs)} message(s), {len(report.skipped_messages)} skipped, "
            f"{stats.total_stories} story(ies), "
            f"{stats.delivered} delivered, {stats.already_current} current, {stats.partial} partial, "
            f"{stats.failed} failed, {stats.deferred} deferred, checkpoint {checkpoint} -> {report.checkpoint_after}",
            extra={"statistics": stats.to_dict(), "cancelled": report.cancelled},
        )

    # Stages ------------------------------------------------------------------

    def _fetch_message(self, report: CycleReport, ref: MessageRef) -> RawMessage | None:
        try:
            message = self.tracker.fetch_message(ref)
        except SyncError as e:
            if e.kind is ErrorKind.PERMANENT_GLOBAL:
                raise
            failures = self._message_failures.get(ref.message_id, 0) + 1
            if e.kind is ErrorKind.TRANSIENT and failures < self.max_message_failures:
                self._message_failures[ref.message_id] = failures
                raise
            self._message_failures.pop(ref.message_id, None)
            report.skipped_messages.append(ref.message_id)
            logger.error(
                f"Skipping message {ref.message_id} after {failures} failed attempt(s): {e}",
                extra={"message_id": ref.message_id, "stage": "extracting", "error_kind": e.kind.value},
            )
            return None
        self._message_failures.pop(ref.message_id, None)
        return message

    def _fetch_all(self, report: CycleReport) -> dict[str, StoryFetch]:
        futures: dict[str, Future] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="ficsync-fetch") as pool:
            for key, outcome in report.stories.items():
                # Each worker runs in a copy of this context so log lines keep the cycle's correlation id
                ctx = contextvars.copy_context()
                futures[key] = pool.submit(ctx.run, self._fetch_story, outcome)

            fetched: dict[str, StoryFetch] = {}
            for key, future in futures.items():
                outcome = report.stories[key]
                try:
                    result = future.result()
                except SyncError as e:
                    self._fail_story(outcome, e, "fetching")
                    continue
                if result is not None:
                    fetched[key] = result
        return fetched

    def _fetch_story(self, outcome: StoryOutcome) -> StoryFetch | None:
        if self._cancel.is_set():
            return None
        outcome.mark_stage("fetching")
        return self.extractor.fetch(outcome.request)

    def _assemble_all(self, report: CycleReport, fetched: dict[str, StoryFetch]) -> dict[str, Document]:
        documents: dict[str, Document] = {}
        for key, result in fetched.items():
            if self._cancel.is_set():
                break
            outcome = report.stories[key]
            outcome.mark_stage("assembling")
            try:
                # Assembled from every stored chapter of the story, not only this fetch
                self.state.upsert_chapters(outcome.story, result.chapters)
                documents[key] = self.assembler.assemble(
                    outcome.story,
                    self.state.list_chapters(outcome.story),
                    expected_indices=result.request.chapter_selector.indices(),
                )
            except SyncError as e:
                self._fail_story(outcome, e, "assembling")
        return documents

    def _deliver_all(
        self,
        report: CycleReport,
        fetched: dict[str, StoryFetch],
        documents: dict[str, Document],
    ) -> None:
        for key, document in documents.items():
            if self._cancel.is_set():
                break
            outcome = report.stories[key]
            outcome.mark_stage("delivering")
            try:
                delivered = self.delivery.deliver(document)
            except SyncError as e:
                self._fail_story(outcome, e, "delivering")
                continue
            result = fetched[key]
            outcome.mark_delivered(
                delivered.status,
                delivered.record.content_fingerprint,
                delivered.record.remote_document_id,
                missing=document.missing,
                reason=result.reason() or None,
            )
            if document.missing and result.failure_kind is not None:
                outcome.error_kind = result.failure_kind

    def _fail_story(self, outcome: StoryOutcome, error: SyncError, stage: str) -> None:
        if error.kind is ErrorKind.PERMANENT_GLOBAL:
            raise error
        outcome.mark_failed(error)
        logger.warning(
            f"Story {outcome.story.key} failed during {stage}: {error}",
            extra={"story": outcome.story.key, "stage": stage, "error_kind": error.kind.value},
        )

    def _record_retries(self, report: CycleReport, pending: dict[str, PendingRetry]) -> None:
        for key, outcome in report.stories.items():
            previous = pending.get(key)
            attempts = previous.attempts if previous else 0

            if outcome.status in ("delivered", "already_current"):
                if previous is not None:
                    self.state.clear_pending_retry(outcome.story)
                continue

            if outcome.status == "deferred":
                # Not attempted to completion: keep the counter as is
                self.state.upsert_pending_retry(
                    PendingRetry(
                        request=outcome.request,
                        reason=outcome.error or "deferred",
                        error_kind=ErrorKind.TRANSIENT,
                        attempts=attempts,
                    )
                )
                continue

            attempts += 1
            kind = outcome.error_kind or ErrorKind.PERMANENT_ITEM
            if attempts >= self.max_story_retries:
                outcome.mark_abandoned(f"gave up after {attempts} attempt(s): {outcome.error}")
                self.state.clear_pending_retry(outcome.story)
                logger.error(
                    f"Abandoning story {key} after {attempts} attempt(s): {outcome.error}",
                    extra={"story": key, "stage": outcome.stage, "error_kind": kind.value},
                )
                continue

            self.state.upsert_pending_retry(
                PendingRetry(
                    request=outcome.request,
                    reason=outcome.error or outcome.status,
                    error_kind=kind,
                    attempts=attempts,
                )
            )

    def _remember(self, message_id: str) -> None:
        self._recent[message_id] = None
        while len(self._recent) > self.recent_notifications:
            self._recent.popitem(last=False)
