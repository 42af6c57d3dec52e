"""Sync orchestrator - registry ingestion runs.

Run types:
1. full         -> page through the main listing, map, upsert, score
2. incremental  -> page through the change feed since the last checkpoint,
                   fetch each changed entity, map, upsert, score
3. roles        -> load role groups for active companies without role data
4. subentities  -> page through the branch listing, keep branches whose
                   parent is stored locally

Every run is tracked as a SyncJob that starts `running` and ends exactly
once as `completed` or `failed`. Record-level errors are counted and the
run continues; a page that cannot be fetched fails the whole run.

Pages are processed strictly in order. Records within a page run on a
bounded thread pool (`sync_workers`). A slow record (retries with backoff)
only blocks its own worker, so with few workers and large pages it can
delay the page; tune `sync_workers` against `sync_page_size`.

Known limitation: the roles run does not rescore. `has_roles_data` is a
scoring signal, so scores of companies touched only by a roles run stay
stale until the next full/incremental run or `rescore_all()`.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from leadscout.core.constants import (
    JOB_STATUS_COMPLETED,
    JOB_TYPE_FULL,
    JOB_TYPE_INCREMENTAL,
    JOB_TYPE_ROLES,
    JOB_TYPE_SUBENTITIES,
    SEPARATOR_LINE,
)
from leadscout.core.exceptions import JobPersistenceError, ParentNotFoundError
from leadscout.core.logging import get_logger
from leadscout.db.models import Company
from leadscout.db.stores import EntityStore, JobStore
from leadscout.registry.base import RegistryClient
from leadscout.registry.mapper import LogoLookupFn, map_entity, map_roles, map_sub_entity
from leadscout.scoring.engine import ScoringResult, calculate_lead_score
from leadscout.scoring.rules import ScoringModelConfig, apply_model
from leadscout.services.summary_service import SummaryService, format_summary_as_text
from leadscout.settings import Settings

logger = get_logger("orchestrator")

PageFetcher = Callable[[int], Tuple[List[Any], bool]]


@dataclass
class SyncProgress:
    """Progress snapshot passed to the optional progress callback."""

    type: str
    processed: int
    errors: int
    current_page: Optional[int] = None


@dataclass
class SyncResult:
    """Outcome of a completed run."""

    job_id: int
    job_type: str
    status: str
    processed: int
    errors: int
    log: str

    def log_summary(self) -> None:
        """Log summary statistics."""
        logger.info(SEPARATOR_LINE)
        logger.info("SYNC %s (job %d)", self.job_type.upper(), self.job_id)
        logger.info(SEPARATOR_LINE)
        logger.info("  Status:           %s", self.status)
        logger.info("  Processed:        %d", self.processed)
        logger.info("  Errors:           %d", self.errors)
        logger.info("  Log:              %s", self.log)
        logger.info(SEPARATOR_LINE)


@dataclass
class RescoreStats:
    updated: int = 0
    errors: int = 0


class JobCounters:
    """Thread-safe processed/error counters for one run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.processed = 0
        self.errors = 0

    def add(self, processed: int = 0, errors: int = 0) -> None:
        with self._lock:
            self.processed += processed
            self.errors += errors

    def snapshot(self) -> Tuple[int, int]:
        with self._lock:
            return self.processed, self.errors


class SyncOrchestrator:
    """Drives registry sync runs against explicit collaborators."""

    def __init__(
        self,
        registry: RegistryClient,
        jobs: JobStore,
        entities: EntityStore,
        settings: Settings,
        summary_service: Optional[SummaryService] = None,
        logo_lookup: Optional[LogoLookupFn] = None,
        on_progress: Optional[Callable[[SyncProgress], None]] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """Initialize orchestrator.

        Args:
            registry: Registry client (one country profile)
            jobs: Sync job persistence
            entities: Company/branch/role/score persistence
            settings: Page size, safety caps, worker count, lookback
            summary_service: Optional AI summary generator for full runs
            logo_lookup: Optional best-effort logo resolver for the mapper
            on_progress: Optional callback invoked before each page
            clock: Source of naive UTC timestamps
        """
        self._registry = registry
        self._jobs = jobs
        self._entities = entities
        self._settings = settings
        self._summary_service = summary_service
        self._logo_lookup = logo_lookup
        self._on_progress = on_progress
        self._clock = clock

    # ------------------------------------------------------------------
    # Run types
    # ------------------------------------------------------------------

    def run_full(self, filters: Optional[dict] = None) -> SyncResult:
        """Full sync of the main entity listing."""
        return self._run_job(JOB_TYPE_FULL, partial(self._full_flow, filters=filters))

    def run_incremental(self, since: Optional[datetime] = None) -> SyncResult:
        """Sync entities changed since `since` or the last checkpoint."""
        return self._run_job(JOB_TYPE_INCREMENTAL, partial(self._incremental_flow, since=since))

    def run_roles(self, orgnrs: Optional[Sequence[str]] = None) -> SyncResult:
        """Load roles for a bounded batch of companies (does not rescore)."""
        return self._run_job(JOB_TYPE_ROLES, partial(self._roles_flow, orgnrs=orgnrs))

    def run_subentities(self) -> SyncResult:
        """Sync branches whose parent company is stored locally."""
        return self._run_job(JOB_TYPE_SUBENTITIES, self._subentities_flow)

    def resolve_checkpoint(self) -> datetime:
        """Start of the next incremental window.

        finished_at of the latest completed incremental job, or
        `incremental_lookback_days` before now when there is none.
        """
        last_finished = self._jobs.last_completed_finished_at(JOB_TYPE_INCREMENTAL)
        if last_finished is not None:
            return last_finished
        return self._clock() - timedelta(days=self._settings.incremental_lookback_days)

    def rescore_all(self, model: Optional[ScoringModelConfig] = None) -> RescoreStats:
        """Rescore every active company and replace its explanations.

        Args:
            model: Optional custom scoring model instead of the built-in engine

        Returns:
            RescoreStats
        """
        stats = RescoreStats()
        for company_id in self._entities.active_company_ids():
            try:
                company = self._entities.get_company(company_id)
                if company is None:
                    continue
                self._score_and_store(company, model)
                stats.updated += 1
                if stats.updated % 100 == 0:
                    logger.info("Rescored %d companies...", stats.updated)
            except Exception as e:
                logger.error("Failed to rescore company %d: %s", company_id, e)
                stats.errors += 1

        logger.info("Rescore finished: %d updated, %d errors", stats.updated, stats.errors)
        return stats

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    def _run_job(
        self,
        job_type: str,
        flow: Callable[[int, JobCounters], str],
    ) -> SyncResult:
        job_id = self._jobs.create(job_type, started_at=self._clock())
        counters = JobCounters()
        logger.info("Starting %s sync (job %d)", job_type, job_id)

        try:
            log = flow(job_id, counters)
            processed, errors = counters.snapshot()
            self._jobs.complete(job_id, processed, errors, log, finished_at=self._clock())
        except Exception as e:
            logger.error("%s sync failed (job %d): %s", job_type, job_id, e)
            self._mark_failed(job_id, counters, e)
            raise

        result = SyncResult(
            job_id=job_id,
            job_type=job_type,
            status=JOB_STATUS_COMPLETED,
            processed=processed,
            errors=errors,
            log=log,
        )
        result.log_summary()
        return result

    def _mark_failed(self, job_id: int, counters: JobCounters, error: Exception) -> None:
        """Best-effort transition to failed, keeping partial counters."""
        processed, errors = counters.snapshot()
        try:
            self._jobs.fail(
                job_id, processed, errors, f"Failed: {error}", finished_at=self._clock()
            )
        except JobPersistenceError as persist_error:
            logger.error("Could not mark job %d as failed: %s", job_id, persist_error)

    def _report_progress(
        self,
        job_type: str,
        counters: JobCounters,
        page: Optional[int] = None,
    ) -> None:
        if self._on_progress is None:
            return
        processed, errors = counters.snapshot()
        self._on_progress(SyncProgress(job_type, processed, errors, page))

    # ------------------------------------------------------------------
    # Pagination and record processing
    # ------------------------------------------------------------------

    def _paginate(
        self,
        job_type: str,
        job_id: int,
        counters: JobCounters,
        fetch: PageFetcher,
        process: Callable[[Any], None],
        max_pages: int,
    ) -> int:
        """Process pages in order until empty, no next link, or the safety cap.

        Fetch errors propagate and fail the run.

        Returns:
            Number of pages processed
        """
        page = 0
        while page < max_pages:
            self._report_progress(job_type, counters, page)
            items, has_next = fetch(page)
            if not items:
                break

            self._process_batch(items, process, counters)
            processed, errors = counters.snapshot()
            self._jobs.update_progress(job_id, processed, errors)
            logger.info(
                "[%s] page %d: %d items (total %d processed, %d errors)",
                job_type, page, len(items), processed, errors,
            )

            page += 1
            if not has_next:
                break
        else:
            logger.warning("[%s] safety cap of %d pages reached", job_type, max_pages)

        return page

    def _process_batch(
        self,
        items: Iterable[Any],
        process: Callable[[Any], None],
        counters: JobCounters,
    ) -> None:
        """Process independent records, in parallel when workers > 1."""
        items = list(items)
        workers = min(self._settings.sync_workers, len(items))
        if workers <= 1:
            for item in items:
                self._process_one(item, process, counters)
            return

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sync") as pool:
            list(pool.map(lambda item: self._process_one(item, process, counters), items))

    def _process_one(self, item: Any, process: Callable[[Any], None], counters: JobCounters) -> None:
        try:
            process(item)
            counters.add(processed=1)
        except Exception as e:
            logger.error("Failed to sync %s: %s", self._describe(item), e)
            counters.add(errors=1)

    def _describe(self, item: Any) -> str:
        if isinstance(item, dict):
            return str(item.get(self._registry.profile.fields.id) or "<unknown record>")
        if isinstance(item, tuple) and len(item) == 2:
            return str(item[1])
        return str(item)

    def _score_and_store(
        self,
        company: Company,
        model: Optional[ScoringModelConfig] = None,
    ) -> ScoringResult:
        related = self._entities.related_counts(company)
        now = self._clock()
        if model is not None:
            result = apply_model(model, company, related, now)
        else:
            result = calculate_lead_score(company, related, now)
        self._entities.apply_score(company.id, result)
        return result

    def _upsert_and_score(self, record: dict) -> Tuple[Company, ScoringResult]:
        snapshot = map_entity(record, self._logo_lookup, self._registry.profile)
        company = self._entities.upsert_company(snapshot, seen_at=self._clock())
        return company, self._score_and_store(company)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def _full_flow(self, job_id: int, counters: JobCounters, filters: Optional[dict]) -> str:
        page_size = self._settings.sync_page_size

        def fetch(page: int) -> Tuple[List[Any], bool]:
            result = self._registry.fetch_page(page, page_size, filters)
            return result.records, result.has_next

        def process(record: dict) -> None:
            company, score = self._upsert_and_score(record)
            self._maybe_summarize(company, score)

        pages = self._paginate(
            JOB_TYPE_FULL, job_id, counters, fetch, process, self._settings.sync_max_pages
        )
        processed, errors = counters.snapshot()
        return f"Synced {processed} companies with {errors} errors ({pages} pages)"

    def _incremental_flow(
        self,
        job_id: int,
        counters: JobCounters,
        since: Optional[datetime],
    ) -> str:
        since = since or self.resolve_checkpoint()
        since_date = since.date()
        page_size = self._settings.sync_page_size
        logger.info("Syncing updates since: %s", since_date.isoformat())

        def fetch(page: int) -> Tuple[List[Any], bool]:
            result = self._registry.fetch_changes_since(since_date, page, page_size)
            # One id can appear several times per page; two workers on the
            # same company would race on its explanation rows
            return list(dict.fromkeys(result.changed_ids)), result.has_next

        def process(orgnr: str) -> None:
            # Roles and branches are left alone
            self._upsert_and_score(self._registry.fetch_by_id(orgnr))

        self._paginate(
            JOB_TYPE_INCREMENTAL, job_id, counters, fetch, process, self._settings.sync_max_pages
        )
        processed, errors = counters.snapshot()
        return f"Synced {processed} updates since {since_date.isoformat()} with {errors} errors"

    def _roles_flow(
        self,
        job_id: int,
        counters: JobCounters,
        orgnrs: Optional[Sequence[str]],
    ) -> str:
        companies = self._entities.companies_for_roles(self._settings.roles_batch_size, orgnrs)
        logger.info("Loading roles for %d companies", len(companies))

        def process(company_ref: Tuple[int, str]) -> None:
            company_id, orgnr = company_ref
            roles = map_roles(self._registry.fetch_relations(orgnr), self._registry.profile)
            self._entities.replace_roles(company_id, roles)

        chunk_size = self._settings.sync_page_size
        for start in range(0, len(companies), chunk_size):
            self._report_progress(JOB_TYPE_ROLES, counters, start // chunk_size)
            self._process_batch(companies[start:start + chunk_size], process, counters)
            processed, errors = counters.snapshot()
            self._jobs.update_progress(job_id, processed, errors)

        processed, errors = counters.snapshot()
        return f"Synced roles for {processed} companies with {errors} errors"

    def _subentities_flow(self, job_id: int, counters: JobCounters) -> str:
        page_size = self._settings.sync_page_size
        orphans = JobCounters()

        def fetch(page: int) -> Tuple[List[Any], bool]:
            result = self._registry.fetch_sub_entity_page(page, page_size)
            return result.records, result.has_next

        def process(record: dict) -> None:
            sub_entity = map_sub_entity(record, self._registry.profile)
            try:
                self._entities.upsert_sub_entity(sub_entity)
            except ParentNotFoundError:
                # Parent not synced yet; dropped, not an error
                orphans.add(processed=1)

        self._paginate(
            JOB_TYPE_SUBENTITIES, job_id, counters, fetch, process,
            self._settings.subentity_max_pages,
        )
        processed, errors = counters.snapshot()
        return (
            f"Synced {processed} sub-entities ({orphans.processed} without local parent) "
            f"with {errors} errors"
        )

    def _maybe_summarize(self, company: Company, score: ScoringResult) -> None:
        """Attach an AI summary to high-scoring leads; never fails the record."""
        if (
            self._summary_service is None
            or not self._settings.ai_summary_enabled
            or score.overall < self._settings.ai_summary_threshold
        ):
            return
        try:
            related = self._entities.related_counts(company)
            summary = self._summary_service.generate(
                company,
                sub_entity_count=related.sub_entities,
                role_types=self._entities.role_types(company.id),
            )
            self._entities.set_summary(company.id, format_summary_as_text(summary))
        except Exception as e:
            logger.error("AI summary failed for %s: %s", company.orgnr, e)
