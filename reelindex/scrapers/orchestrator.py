"""
Field orchestration.

For each requested field, sources are tried strictly in priority order
until one answers; fields run concurrently with each other. BatchScraper
drives search plus field orchestration across many items.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Collection, Dict, List, Mapping, Optional, Sequence

from reelindex.config import ScrapingConfig
from reelindex.media.models import USER_SOURCE, FieldId, MediaRecord, is_empty_value
from reelindex.media.scanner.base import ScanProgress
from reelindex.scrapers.base import FieldAbsent, ScrapeFailed, ScrapeQuery, ScrapeSource
from reelindex.scrapers.search import SearchOrchestrator
from reelindex.scrapers.session import Fetcher, ScrapeSession
from reelindex.utils.logging_setup import log_scrape_event

logger = logging.getLogger(__name__)


class FieldStatus(str, Enum):
    """Final state of one field after a scrape."""

    POPULATED = "populated"
    ABSENT = "absent"  # a source answered, but the page lacks the field
    FAILED = "failed"  # every attempted source raised
    SKIPPED_OVERRIDE = "skipped_override"
    UNAVAILABLE = "unavailable"  # no source declares the field or has a candidate


@dataclass
class FieldOutcome:
    """What happened to one field."""

    field: FieldId
    status: FieldStatus = FieldStatus.UNAVAILABLE
    source: Optional[str] = None
    errors: List[ScrapeFailed] = field(default_factory=list)
    attempts: List[str] = field(default_factory=list)


@dataclass
class ScrapeReport:
    """Per-field outcomes of one item's scrape."""

    item_id: str
    outcomes: Dict[FieldId, FieldOutcome] = field(default_factory=dict)

    def __getitem__(self, field_id: FieldId) -> FieldOutcome:
        return self.outcomes[field_id]

    @property
    def populated(self) -> Dict[FieldId, str]:
        """Populated fields mapped to the source that supplied them."""
        return {
            f: o.source
            for f, o in self.outcomes.items()
            if o.status == FieldStatus.POPULATED and o.source
        }

    @property
    def unset(self) -> List[FieldId]:
        """Requested fields that ended up without a value."""
        return [
            f
            for f, o in self.outcomes.items()
            if o.status in (FieldStatus.ABSENT, FieldStatus.FAILED, FieldStatus.UNAVAILABLE)
        ]

    @property
    def failures(self) -> List[ScrapeFailed]:
        return [e for o in self.outcomes.values() for e in o.errors]


class FieldOrchestrator:
    """
    Priority fallback per field.

    Args:
        sources: Enabled sources in priority order.
        config: Scraping settings (fallback_on_empty, default_fields).
        fetcher: Used to open a session when scrape() is not given one.
    """

    def __init__(
        self,
        sources: Sequence[ScrapeSource],
        config: Optional[ScrapingConfig] = None,
        fetcher: Optional[Fetcher] = None,
    ):
        self.sources = list(sources)
        self.config = config or ScrapingConfig()
        self.fetcher = fetcher

    def default_fields(self) -> List[FieldId]:
        """Configured default fields, or every field some source declares."""
        if self.config.default_fields:
            return list(self.config.default_fields)
        available = set()
        for source in self.sources:
            available.update(source.available_fields)
        return [f for f in FieldId if f in available]

    async def scrape(
        self,
        record: MediaRecord,
        candidate_ids: Mapping[str, str],
        fields: Optional[Sequence[FieldId]] = None,
        session: Optional[ScrapeSession] = None,
        retrigger: Collection[FieldId] = (),
    ) -> ScrapeReport:
        """
        Scrape fields for one record.

        Args:
            record: Record to write into.
            candidate_ids: Source name -> chosen candidate id.
            fields: Fields to scrape (defaults to default_fields()).
            session: Session whose cache the fetches share.
            retrigger: Overridden fields to scrape anyway.

        Returns:
            ScrapeReport with one outcome per requested field.
        """
        requested = list(dict.fromkeys(fields if fields is not None else self.default_fields()))
        report = ScrapeReport(item_id=record.id)
        if not requested:
            return report

        own_session = session is None
        if own_session:
            if self.fetcher is None:
                raise ValueError("scrape() needs a session or a fetcher")
            session = ScrapeSession(record.id, self.fetcher)

        try:
            outcomes = await asyncio.gather(
                *(
                    self._scrape_field(record, f, candidate_ids, session, f in retrigger)
                    for f in requested
                )
            )
        finally:
            if own_session:
                session.close()

        for outcome in outcomes:
            report.outcomes[outcome.field] = outcome

        logger.info(
            f"[{session.thread_id}] Scraped {record.id}: {len(report.populated)} populated, "
            f"{len(report.unset)} unset, {len(report.failures)} failures"
        )
        return report

    async def _scrape_field(
        self,
        record: MediaRecord,
        field_id: FieldId,
        candidate_ids: Mapping[str, str],
        session: ScrapeSession,
        retrigger: bool,
    ) -> FieldOutcome:
        outcome = FieldOutcome(field=field_id)

        if record.is_overridden(field_id) and not retrigger:
            outcome.status = FieldStatus.SKIPPED_OVERRIDE
            log_scrape_event(USER_SOURCE, field_id.value, record.id, outcome.status.value, session.thread_id)
            return outcome

        absent_from: Optional[str] = None

        for source in self.sources:
            if not source.supports_field(field_id):
                continue
            candidate_id = candidate_ids.get(source.name)
            if not candidate_id:
                continue

            outcome.attempts.append(source.name)
            try:
                value = await source.scrape_field(field_id, candidate_id, session)
            except ScrapeFailed as e:
                error = e
            except Exception as e:
                error = ScrapeFailed(
                    f"{source.name} raised {type(e).__name__} scraping {field_id.value}: {e}",
                    source=source.name,
                    field=field_id,
                    item_id=record.id,
                    original_error=e,
                )
            else:
                error = None

            if error is not None:
                outcome.errors.append(error)
                log_scrape_event(
                    source.name, field_id.value, record.id, "failed", session.thread_id, str(error)
                )
                continue

            if value is FieldAbsent or is_empty_value(value):
                absent_from = absent_from or source.name
                log_scrape_event(source.name, field_id.value, record.id, "absent", session.thread_id)
                if self.config.fallback_on_empty:
                    continue
                break

            if not record.set_field(field_id, value, source.name, force=retrigger):
                # overridden while the source was answering
                outcome.status = FieldStatus.SKIPPED_OVERRIDE
                log_scrape_event(
                    USER_SOURCE, field_id.value, record.id, outcome.status.value, session.thread_id
                )
                return outcome

            outcome.status = FieldStatus.POPULATED
            outcome.source = source.name
            log_scrape_event(source.name, field_id.value, record.id, "populated", session.thread_id)
            return outcome

        if absent_from is not None:
            outcome.status = FieldStatus.ABSENT
            outcome.source = absent_from
        elif outcome.errors:
            outcome.status = FieldStatus.FAILED
        else:
            log_scrape_event("-", field_id.value, record.id, "unavailable", session.thread_id)
        return outcome


@dataclass
class ScrapeJob:
    """One item of a batch: the record to fill and how to find it."""

    record: MediaRecord
    query: ScrapeQuery
    fields: Optional[Sequence[FieldId]] = None


class BatchScraper:
    """
    Library-wide scrape: search, auto-pick, field orchestration per item.

    Usage:
        batch = BatchScraper(search, fields, fetcher)
        batch.add_progress_callback(print)
        reports = await batch.run(jobs)
    """

    def __init__(
        self,
        search: SearchOrchestrator,
        fields: FieldOrchestrator,
        fetcher: Fetcher,
        config: Optional[ScrapingConfig] = None,
    ):
        self.search = search
        self.fields = fields
        self.fetcher = fetcher
        self.config = config or fields.config
        self._abort = asyncio.Event()
        self._progress_callbacks: List[Callable[[ScanProgress], None]] = []

    def add_progress_callback(self, callback: Callable[[ScanProgress], None]) -> None:
        """Add a callback for progress updates."""
        self._progress_callbacks.append(callback)

    def _notify_progress(self, progress: ScanProgress) -> None:
        for callback in self._progress_callbacks:
            try:
                callback(progress)
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")

    def abort(self) -> None:
        """
        Stop the batch before the next item starts.

        Stays in effect, including for runs started later, until reset().
        """
        logger.info("Batch scrape abort requested")
        self._abort.set()

    def reset(self) -> None:
        """Clear a previous abort so the scraper can run again."""
        self._abort.clear()

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    async def scrape_item(self, job: ScrapeJob) -> ScrapeReport:
        """Search, pick the first candidate per source and scrape one item."""
        results = await self.search.search(job.query)
        candidates = results.first_result()
        if not candidates:
            logger.info(f"No candidates for {job.query.text!r}")

        async with ScrapeSession(job.record.id, self.fetcher) as session:
            return await self.fields.scrape(
                job.record, candidates, fields=job.fields, session=session
            )

    async def run(self, jobs: Sequence[ScrapeJob]) -> List[ScrapeReport]:
        """
        Scrape every job, at most max_concurrent_items at a time.

        Returns:
            Reports for the items that ran; items skipped by abort() or
            that raised are left out.
        """
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_items))
        progress = ScanProgress(total_files=len(jobs), started_at=datetime.now())

        async def _worker(job: ScrapeJob) -> Optional[ScrapeReport]:
            async with semaphore:
                if self._abort.is_set():
                    return None

                progress.current_file = job.query.text
                try:
                    report = await self.scrape_item(job)
                except Exception as e:
                    logger.error(f"Scrape of {job.query.text!r} failed: {e}", exc_info=True)
                    progress.errors += 1
                    report = None
                else:
                    if report.populated:
                        progress.updated_items += 1

                progress.scanned_files += 1
                self._notify_progress(progress)
                return report

        logger.info(f"Starting batch scrape of {len(jobs)} items")
        reports = await asyncio.gather(*(_worker(job) for job in jobs))
        progress.finished_at = datetime.now()

        done = [r for r in reports if r is not None]
        logger.info(
            f"Batch scrape {'aborted' if self.aborted else 'finished'}: "
            f"{len(done)}/{len(jobs)} items, {progress.errors} errors"
        )
        return done
