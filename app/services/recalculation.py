"""
Bulk Rating Recalculation

Recomputes and stores the rating of every book under one config version.

Run lifecycle:

    NOT_STARTED -> RUNNING -> COMPLETED
                           -> COMPLETED_WITH_FAILURES
                           -> CANCELLED
                           -> ABORTED  (only if the corpus can't be read)

How a run works:
1. The active config is snapshotted once. Every book of the run is
   computed under that snapshot, even if an admin publishes a new
   config while the run is in flight.
2. Book ids are read lazily in batches (keyset pagination), so memory
   stays bounded on large corpora.
3. Each batch is fanned out to a thread pool. A book that fails (missing
   data, unknown algorithm, storage error) is recorded in the report and
   the run carries on.
4. Cancellation is cooperative and checked between batches, so work that
   was already committed never has to be unwound. A run whose last batch
   was already under way when cancel() arrived ends COMPLETED.

Usage:
    from app.services.recalculation import recalculate_all, start_recalculation

    # Blocking
    report = recalculate_all()
    print(report.books_updated, report.failures)

    # Background job
    job = start_recalculation()
    ...
    job.cancel()
    report = job.wait()
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from itertools import islice
from typing import Any

from app.config import get_settings
from app.exceptions import (
    InfrastructureFailureError,
    RatingEngineError,
    RecalculationInProgressError,
)
from app.schemas.rating import RatingConfig
from app.services.ratings import compute_rating
from app.services.store import RatingStore, SqlRatingStore

logger = logging.getLogger(__name__)


# =============================================================================
# States, Progress and Report
# =============================================================================


class RecalculationState(StrEnum):
    """Lifecycle states of a recalculation run."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_FAILURES = "completed_with_failures"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({
    RecalculationState.COMPLETED,
    RecalculationState.COMPLETED_WITH_FAILURES,
    RecalculationState.CANCELLED,
    RecalculationState.ABORTED,
})


@dataclass(frozen=True)
class RecalculationProgress:
    """Progress snapshot emitted after each batch."""

    job_id: str
    batches_done: int
    books_processed: int
    books_updated: int
    books_failed: int
    elapsed_seconds: float


@dataclass
class RecalculationReport:
    """
    Outcome of a recalculation run.

    Attributes:
        job_id: Identifier of the run (used in log lines)
        state: Terminal state of the run
        config_version: Config version every rating was computed under
        books_updated: Books whose rating was stored
        books_failed: Books that could not be recalculated
        failures: IDs of the failed books, in processing order
        failure_reasons: Error summary per failed book
    """

    job_id: str
    state: RecalculationState
    config_version: int
    books_updated: int = 0
    books_failed: int = 0
    failures: list[int] = field(default_factory=list)
    failure_reasons: dict[int, str] = field(default_factory=dict)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def books_processed(self) -> int:
        return self.books_updated + self.books_failed

    @property
    def cancelled(self) -> bool:
        return self.state == RecalculationState.CANCELLED

    def record_failure(self, book_id: int, reason: str) -> None:
        self.books_failed += 1
        self.failures.append(book_id)
        self.failure_reasons[book_id] = reason

    def to_dict(self) -> dict[str, Any]:
        """Convert report to a JSON-serializable dictionary."""
        return {
            "job_id": self.job_id,
            "state": self.state.value,
            "config_version": self.config_version,
            "books_updated": self.books_updated,
            "books_failed": self.books_failed,
            "failures": list(self.failures),
            "failure_reasons": {str(k): v for k, v in self.failure_reasons.items()},
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


ProgressCallback = Callable[[RecalculationProgress], None]


# =============================================================================
# Orchestrator
# =============================================================================


class RecalculationOrchestrator:
    """
    Drives one recalculation run over the book corpus.

    An orchestrator runs at most once; create a new one for each run.
    cancel() may be called from any thread.
    """

    def __init__(
        self,
        store: RatingStore,
        *,
        batch_size: int | None = None,
        max_workers: int | None = None,
        as_of: datetime | None = None,
        on_progress: ProgressCallback | None = None,
        job_id: str | None = None,
    ) -> None:
        """
        Args:
            store: Where books, reviews and ratings are read and written
            batch_size: Books per batch (default: settings.recalc_batch_size)
            max_workers: Worker threads (default: settings.recalc_max_workers)
            as_of: Reference time for time decay (default: run start time)
            on_progress: Called after every batch
            job_id: Run identifier (default: random hex)
        """
        settings = get_settings()
        self.store = store
        self.batch_size = settings.recalc_batch_size if batch_size is None else batch_size
        self.max_workers = settings.recalc_max_workers if max_workers is None else max_workers
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.job_id = job_id or uuid.uuid4().hex[:12]
        self._as_of = as_of
        self._on_progress = on_progress
        self._cancel_event = threading.Event()
        self._state = RecalculationState.NOT_STARTED
        self._state_lock = threading.Lock()
        self._config: RatingConfig | None = None

    @property
    def state(self) -> RecalculationState:
        return self._state

    @property
    def config(self) -> RatingConfig | None:
        """The config snapshot of the run (None before it started)."""
        return self._config

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Ask the run to stop before its next batch (if one remains)."""
        if not self._cancel_event.is_set():
            logger.info(f"Recalculation {self.job_id}: cancellation requested")
        self._cancel_event.set()

    def run(
        self,
        book_ids: Iterable[int] | None = None,
        only_stale: bool = False,
        config: RatingConfig | None = None,
    ) -> RecalculationReport:
        """
        Execute the run.

        Args:
            book_ids: Recalculate only these books (e.g. a previous
                report's failures). Default: the whole corpus.
            only_stale: Skip books already rated under the snapshotted
                config version. Ignored when book_ids is given.
            config: Snapshot to run under, already read by the caller.
                Default: read the active config now.

        Returns:
            Report of a run that ended COMPLETED, COMPLETED_WITH_FAILURES
            or CANCELLED

        Raises:
            InfrastructureFailureError: If the config or the book list
                could not be read (the run ends ABORTED)
            RuntimeError: If this orchestrator already ran
        """
        with self._state_lock:
            if self._state != RecalculationState.NOT_STARTED:
                raise RuntimeError(f"Recalculation {self.job_id} already {self._state.value}")
            self._state = RecalculationState.RUNNING

        started_at = datetime.now(UTC)
        clock = time.monotonic()

        if config is None:
            try:
                config = self.store.get_active_config()
            except Exception as e:
                self._state = RecalculationState.ABORTED
                logger.error(f"Recalculation {self.job_id} aborted: cannot read rating config: {e}")
                raise InfrastructureFailureError(f"Cannot read active rating config: {e}") from e

        self._config = config
        as_of = self._as_of or started_at
        report = RecalculationReport(
            job_id=self.job_id,
            state=RecalculationState.RUNNING,
            config_version=config.version,
            started_at=started_at,
        )
        logger.info(
            f"Recalculation {self.job_id} started: config version {config.version} "
            f"({config.algorithm_type}), batch size {self.batch_size}, "
            f"{self.max_workers} workers"
        )

        batches = self._batches(config, book_ids, only_stale)
        batches_done = 0
        cancelled = False

        with ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix=f"recalc-{self.job_id}",
        ) as pool:
            while (batch := self._next_batch(batches, report)) is not None:
                # A cancel that lands during the last batch finds nothing left
                if self._cancel_event.is_set():
                    cancelled = True
                    break

                outcomes = pool.map(lambda book_id: self._process_book(book_id, config, as_of), batch)
                for book_id, error in zip(batch, outcomes):
                    if error is None:
                        report.books_updated += 1
                    else:
                        report.record_failure(book_id, error)

                batches_done += 1
                self._emit_progress(report, batches_done, time.monotonic() - clock)

        if cancelled:
            report.state = RecalculationState.CANCELLED
        elif report.books_failed:
            report.state = RecalculationState.COMPLETED_WITH_FAILURES
        else:
            report.state = RecalculationState.COMPLETED
        report.finished_at = datetime.now(UTC)
        self._state = report.state

        logger.info(
            f"Recalculation {self.job_id} {report.state.value}: "
            f"{report.books_updated} updated, {report.books_failed} failed "
            f"in {time.monotonic() - clock:.1f}s"
        )
        if report.failures:
            logger.warning(f"Recalculation {self.job_id} failed books: {report.failures}")
        return report

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _batches(
        self,
        config: RatingConfig,
        book_ids: Iterable[int] | None,
        only_stale: bool,
    ) -> Iterator[list[int]]:
        if book_ids is not None:
            return _chunked(book_ids, self.batch_size)
        stale_version = config.version if only_stale else None
        return iter(self.store.iter_book_id_batches(self.batch_size, stale_for_version=stale_version))

    def _next_batch(self, batches: Iterator[list[int]], report: RecalculationReport) -> list[int] | None:
        """Next batch of book ids, None when the corpus is exhausted."""
        try:
            return next(batches)
        except StopIteration:
            return None
        except Exception as e:
            self._state = RecalculationState.ABORTED
            logger.error(
                f"Recalculation {self.job_id} aborted after "
                f"{report.books_processed} books: {e}"
            )
            if isinstance(e, InfrastructureFailureError):
                raise
            raise InfrastructureFailureError(f"Cannot enumerate books: {e}") from e

    def _process_book(self, book_id: int, config: RatingConfig, as_of: datetime) -> str | None:
        """Recalculate one book. Returns None on success, else the error summary."""
        try:
            reviews = self.store.load_reviews(book_id)
            result = compute_rating(book_id, reviews, config, as_of=as_of)
            self.store.save_book_rating(result)
        except RatingEngineError as e:
            logger.warning(f"Recalculation {self.job_id}: book {book_id} failed: {e}")
            return f"{type(e).__name__}: {e}"
        except Exception as e:
            logger.exception(f"Recalculation {self.job_id}: unexpected error on book {book_id}")
            return f"{type(e).__name__}: {e}"
        return None

    def _emit_progress(self, report: RecalculationReport, batches_done: int, elapsed: float) -> None:
        progress = RecalculationProgress(
            job_id=self.job_id,
            batches_done=batches_done,
            books_processed=report.books_processed,
            books_updated=report.books_updated,
            books_failed=report.books_failed,
            elapsed_seconds=elapsed,
        )
        logger.info(
            f"Recalculation {self.job_id}: batch {batches_done} done, "
            f"{progress.books_processed} books processed "
            f"({progress.books_updated} updated, {progress.books_failed} failed)"
        )
        if self._on_progress is None:
            return
        try:
            self._on_progress(progress)
        except Exception as e:
            logger.warning(f"Recalculation {self.job_id}: progress callback failed: {e}")


def _chunked(book_ids: Iterable[int], size: int) -> Iterator[list[int]]:
    iterator = iter(book_ids)
    while batch := list(islice(iterator, size)):
        yield batch


# =============================================================================
# Background Job Handle
# =============================================================================


class RecalculationJob:
    """
    Runs an orchestrator on a background thread.

    Usage:
        job = RecalculationJob(RecalculationOrchestrator(store)).start()
        job.cancel()           # optional
        report = job.wait()    # re-raises InfrastructureFailureError
    """

    def __init__(
        self,
        orchestrator: RecalculationOrchestrator,
        book_ids: Iterable[int] | None = None,
        only_stale: bool = False,
        config: RatingConfig | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.report: RecalculationReport | None = None
        self.error: BaseException | None = None
        self.book_ids = list(book_ids) if book_ids is not None else None
        self.only_stale = only_stale
        self._config = config
        self._done = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=f"recalc-job-{orchestrator.job_id}",
            daemon=True,
        )

    @property
    def job_id(self) -> str:
        return self.orchestrator.job_id

    @property
    def state(self) -> RecalculationState:
        return self.orchestrator.state

    @property
    def config(self) -> RatingConfig | None:
        """Config snapshot of the job, if already known."""
        return self._config or self.orchestrator.config

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(self) -> "RecalculationJob":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self.orchestrator.cancel()

    def join(self, timeout: float | None = None) -> bool:
        """Block until the run finishes, whatever its outcome. False on timeout."""
        return self._done.wait(timeout)

    def wait(self, timeout: float | None = None) -> RecalculationReport:
        """
        Block until the run finishes.

        Raises:
            TimeoutError: If the run is still going after timeout seconds
            InfrastructureFailureError: If the run aborted
            RuntimeError: If the run thread died without a report
        """
        if not self._done.wait(timeout):
            raise TimeoutError(f"Recalculation {self.job_id} still running")
        if self.error is not None:
            raise self.error
        if self.report is None:
            raise RuntimeError(f"Recalculation {self.job_id} ended without a report")
        return self.report

    def _run(self) -> None:
        try:
            self.report = self.orchestrator.run(
                self.book_ids,
                only_stale=self.only_stale,
                config=self._config,
            )
        except Exception as e:
            self.error = e
            logger.error(f"Recalculation job {self.job_id} failed: {e}")
        finally:
            self._done.set()


# =============================================================================
# Entry Points
# =============================================================================
# At most one job runs per process. A request may join the running job
# only if that job already covers it: same store, whole corpus, and the
# same config version the request would snapshot.

_current_job: RecalculationJob | None = None
_job_lock = threading.Lock()
_default_store: SqlRatingStore | None = None


def _store_or_default(store: RatingStore | None) -> RatingStore:
    global _default_store
    if store is not None:
        return store
    if _default_store is None:
        _default_store = SqlRatingStore()
    return _default_store


def _covers(
    job: RecalculationJob,
    store: RatingStore,
    config: RatingConfig,
    book_ids: list[int] | None,
    only_stale: bool,
    options: dict[str, Any],
) -> bool:
    """Whether the running job does the work this request asks for."""
    if job.orchestrator.store is not store:
        return False
    if book_ids is not None or job.book_ids is not None:
        return False
    if job.only_stale and not only_stale:
        return False
    if options.get("as_of") is not None:
        return False
    return job.config is not None and job.config.version == config.version


def start_recalculation(
    store: RatingStore | None = None,
    *,
    book_ids: Iterable[int] | None = None,
    only_stale: bool = False,
    **options: Any,
) -> RecalculationJob:
    """
    Start a recalculation in the background.

    Only one job runs at a time. While one is in flight, a request it
    already covers (same store, whole corpus, same config version) gets
    that job back; any other request is refused.

    Args:
        store: Storage to use (default: SqlRatingStore on the app database)
        book_ids: Restrict the run to these books
        only_stale: Skip books already rated under the active version
        **options: Forwarded to RecalculationOrchestrator

    Returns:
        The running job handle

    Raises:
        RecalculationInProgressError: If a job that does not cover this
            request is still running
        InfrastructureFailureError: If the active config cannot be read
    """
    global _current_job

    requested = list(book_ids) if book_ids is not None else None

    with _job_lock:
        store = _store_or_default(store)
        try:
            config = store.get_active_config()
        except Exception as e:
            logger.error(f"Cannot start recalculation: cannot read rating config: {e}")
            raise InfrastructureFailureError(f"Cannot read active rating config: {e}") from e

        running = _current_job
        if running is not None and not running.done:
            if _covers(running, store, config, requested, only_stale, options):
                logger.info(f"Recalculation {running.job_id} already running, joining it")
                return running
            logger.info(
                f"Recalculation {running.job_id} already running "
                f"(config version {running.config.version if running.config else '?'}), "
                f"refusing a run for version {config.version}"
            )
            raise RecalculationInProgressError(running.job_id)

        orchestrator = RecalculationOrchestrator(store, **options)
        _current_job = RecalculationJob(orchestrator, requested, only_stale, config=config).start()
        return _current_job


def get_current_job() -> RecalculationJob | None:
    """The most recently started job, running or finished."""
    return _current_job


def recalculate_all(
    store: RatingStore | None = None,
    *,
    only_stale: bool = False,
    **options: Any,
) -> RecalculationReport:
    """
    Recalculate every book's rating and wait for the result.

    Runs on the background job machinery. A running job that already
    covers the whole corpus under the active config is joined; any other
    running job is waited out first, then a fresh run starts.

    Raises:
        InfrastructureFailureError: If the config or the book corpus
            could not be read
    """
    while True:
        try:
            job = start_recalculation(store, only_stale=only_stale, **options)
        except RecalculationInProgressError as busy:
            running = get_current_job()
            if running is not None and running.job_id == busy.job_id:
                logger.info(f"Waiting for recalculation {busy.job_id} to finish")
                running.join()
            continue
        return job.wait()
