"""Prospect enrichment workflow: eligibility, orchestration, merge and history for stored prospects."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .eligibility import Clock, EligibilityGate, EligibilityPolicy, utcnow
from .merge import apply_enrichment, group_contacts
from .models import (
    EligibilityDecision,
    EnrichmentOptions,
    EnrichmentResult,
    EnrichmentStatus,
    ProspectRecord,
    TriggeredBy,
)
from .orchestrator.service import SOURCE_NAME, EnrichmentOrchestrator
from .store import EnrichmentHistoryEntry, MergeConflictError, ProspectStore

LOGGER = logging.getLogger(__name__)

CONTACT_PAGE_SUFFIXES = ("/contact", "/contact-us", "/nous-contacter")
MAX_MERGE_RETRIES = 3

NOT_ELIGIBLE = "not_eligible"
INSUFFICIENT_DATA = "insufficient_data"
NO_CONTACTS_FOUND = "no_contacts_found"
ENRICHMENT_ERROR = "enrichment_error"


@dataclass(frozen=True)
class EnrichmentReport:
    """What happened when enrichment was requested for one prospect."""

    prospect_id: int
    success: bool
    reason: Optional[str] = None
    contacts: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    eligibility: Optional[EligibilityDecision] = None
    message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def contacts_found(self) -> int:
        return sum(len(entries) for entries in self.contacts.values())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "prospect_id": self.prospect_id,
            "success": self.success,
            "reason": self.reason,
            "contacts": self.contacts,
            "eligibility": self.eligibility.as_dict() if self.eligibility else None,
            "message": self.message,
            "metadata": dict(self.metadata),
        }


@dataclass
class BulkEnrichmentSummary:
    """Aggregate counters of a batch run. One prospect failing never aborts the batch."""

    total_requested: int = 0
    eligible_count: int = 0
    processed: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    execution_time_ms: float = 0.0
    reports: List[EnrichmentReport] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_requested": self.total_requested,
            "eligible_count": self.eligible_count,
            "processed": list(self.processed),
            "failed": list(self.failed),
            "skipped": list(self.skipped),
            "errors": list(self.errors),
            "execution_time_ms": self.execution_time_ms,
        }


def build_scrape_urls(website: Optional[str]) -> List[str]:
    """The known website followed by its likely contact pages."""

    if not website:
        return []
    base = website.rstrip("/")
    urls = [website]
    for suffix in CONTACT_PAGE_SUFFIXES:
        candidate = base + suffix
        if candidate not in urls:
            urls.append(candidate)
    return urls


class ProspectEnrichmentService:
    """Entry point used by the CLI and by callers embedding the enrichment pipeline."""

    def __init__(
        self,
        store: ProspectStore,
        orchestrator: EnrichmentOrchestrator,
        *,
        gate: Optional[EligibilityGate] = None,
        policy: Optional[EligibilityPolicy] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator
        self.policy = policy or (gate.policy if gate else EligibilityPolicy())
        self.gate = gate or EligibilityGate(self.policy, clock=clock)
        self._clock = clock

    # ------------------------------------------------------------------
    # Single prospect
    # ------------------------------------------------------------------
    def enrich_prospect(
        self,
        prospect_id: int,
        options: Optional[EnrichmentOptions] = None,
        policy: Optional[EligibilityPolicy] = None,
    ) -> EnrichmentReport:
        options = options or EnrichmentOptions()
        policy = policy or self.policy
        prospect = self.store.get(prospect_id)

        if not options.force:
            decision = self.gate.decide(prospect, policy)
            if not decision.is_eligible:
                LOGGER.info(
                    "Prospect %s not eligible for enrichment: %s (%s)",
                    prospect_id,
                    decision.reason.value,
                    "; ".join(decision.reason_details),
                )
                return EnrichmentReport(prospect_id, False, NOT_ELIGIBLE, eligibility=decision)

        if not prospect.name and not prospect.company:
            LOGGER.warning("Cannot enrich prospect %s: missing name and company", prospect_id)
            return EnrichmentReport(
                prospect_id, False, INSUFFICIENT_DATA, message="Missing prospect name and company"
            )

        history = self.store.add_history(
            EnrichmentHistoryEntry(
                prospect_id=prospect_id,
                started_at=self._clock(),
                triggered_by=options.triggered_by,
                user_id=options.user_id,
            )
        )
        started = time.perf_counter()
        try:
            self._mark_pending(prospect_id)
            run_options = options.updated(
                company_website=prospect.website,
                urls_to_scrape=options.urls_to_scrape or tuple(build_scrape_urls(prospect.website)),
            )
            LOGGER.info(
                "Starting enrichment for prospect %s (%s / %s), triggered by %s",
                prospect_id,
                prospect.name,
                prospect.company,
                options.triggered_by.value,
            )
            result = self.orchestrator.enrich(prospect.name or "", prospect.company or "", run_options)
            self._merge(prospect_id, result)
        except Exception as exc:
            LOGGER.exception("Enrichment of prospect %s failed", prospect_id)
            self._record_crash(prospect_id, str(exc))
            self.store.update_history(
                history.finished(
                    "failed", self._clock(), error_message=str(exc), execution_time_ms=_elapsed_ms(started)
                )
            )
            return EnrichmentReport(prospect_id, False, ENRICHMENT_ERROR, message=str(exc))

        services_used = tuple(result.metadata.get("services_results", {}).keys())
        metadata = {
            "execution_time_ms": result.execution_time_ms,
            "services_used": list(services_used),
            "validation_score": result.validation.overall_score,
        }
        if result.has_valid_contacts():
            contacts = group_contacts(result.contacts)
            self.store.update_history(
                history.finished(
                    "completed",
                    self._clock(),
                    contacts_found=len(result.contacts),
                    services_used=services_used,
                    execution_time_ms=result.execution_time_ms,
                )
            )
            LOGGER.info(
                "Prospect %s enriched with %s contacts (score %.1f)",
                prospect_id,
                len(result.contacts),
                result.validation.overall_score,
            )
            return EnrichmentReport(prospect_id, True, contacts=contacts, metadata=metadata)

        message = result.error_message or "No valid contacts found"
        self.store.update_history(
            history.finished(
                "failed",
                self._clock(),
                services_used=services_used,
                execution_time_ms=result.execution_time_ms,
                error_message=message,
            )
        )
        LOGGER.info("Prospect %s enrichment returned no valid contacts: %s", prospect_id, message)
        return EnrichmentReport(prospect_id, False, NO_CONTACTS_FOUND, message=message, metadata=metadata)

    def _mark_pending(self, prospect_id: int) -> None:
        self._write(prospect_id, lambda record: record.updated(enrichment_status=EnrichmentStatus.PENDING))

    def _merge(self, prospect_id: int, result: EnrichmentResult) -> ProspectRecord:
        now = self._clock()
        return self._write(
            prospect_id, lambda record: apply_enrichment(record, result, scorer=self.gate.score, now=now)
        )

    def _record_crash(self, prospect_id: int, message: str) -> None:
        failure = EnrichmentResult.failed("", "", SOURCE_NAME, message)
        try:
            self._merge(prospect_id, failure)
        except MergeConflictError:
            LOGGER.error("Could not record failed enrichment for prospect %s", prospect_id)

    def _write(self, prospect_id: int, change) -> ProspectRecord:
        """Apply ``change`` to the freshest record under the prospect lock, retrying lost updates."""

        for attempt in range(1, MAX_MERGE_RETRIES + 1):
            with self.store.lock(prospect_id):
                current = self.store.get(prospect_id)
                try:
                    return self.store.save(change(current), expected_version=current.version)
                except MergeConflictError:
                    if attempt == MAX_MERGE_RETRIES:
                        raise
                    LOGGER.warning("Concurrent update on prospect %s, retrying (%s)", prospect_id, attempt)
        raise MergeConflictError(f"Prospect {prospect_id} could not be updated")  # pragma: no cover

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------
    def bulk_enrich(
        self,
        prospect_ids: Optional[Iterable[int]] = None,
        options: Optional[EnrichmentOptions] = None,
        policy: Optional[EligibilityPolicy] = None,
        limit: Optional[int] = 10,
        delay_seconds: float = 0.0,
    ) -> BulkEnrichmentSummary:
        started = time.perf_counter()
        options = options or EnrichmentOptions(triggered_by=TriggeredBy.BULK)
        policy = policy or self.policy
        candidates = self._select(prospect_ids)
        eligible = self.gate.list_eligible(candidates, policy)
        summary = BulkEnrichmentSummary(total_requested=len(candidates), eligible_count=len(eligible))
        batch = eligible if limit is None else eligible[:limit]
        LOGGER.info(
            "Starting bulk enrichment: %s requested, %s eligible, %s to process",
            summary.total_requested,
            summary.eligible_count,
            len(batch),
        )

        for index, prospect in enumerate(batch):
            try:
                report = self.enrich_prospect(prospect.id, options, policy)
            except Exception as exc:
                LOGGER.exception("Bulk enrichment error for prospect %s", prospect.id)
                summary.errors.append({"prospect_id": prospect.id, "error": str(exc)})
                continue
            summary.reports.append(report)
            if report.success:
                summary.processed.append({"prospect_id": prospect.id, "contacts_found": report.contacts_found})
            elif report.reason == NOT_ELIGIBLE:
                summary.skipped.append({"prospect_id": prospect.id, "reason": report.reason})
            else:
                summary.failed.append({"prospect_id": prospect.id, "reason": report.reason, "message": report.message})
            if delay_seconds > 0 and index < len(batch) - 1:
                time.sleep(delay_seconds)

        summary.execution_time_ms = _elapsed_ms(started)
        LOGGER.info(
            "Bulk enrichment completed: %s processed, %s failed, %s skipped, %s errors",
            len(summary.processed),
            len(summary.failed),
            len(summary.skipped),
            len(summary.errors),
        )
        return summary

    def _select(self, prospect_ids: Optional[Iterable[int]]) -> List[ProspectRecord]:
        if prospect_ids is None:
            return self.store.all()
        return [self.store.get(prospect_id) for prospect_id in prospect_ids]

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------
    def eligibility(self, prospect_id: int, policy: Optional[EligibilityPolicy] = None) -> EligibilityDecision:
        return self.gate.decide(self.store.get(prospect_id), policy or self.policy)

    def eligible_prospects(
        self, prospect_ids: Optional[Iterable[int]] = None, policy: Optional[EligibilityPolicy] = None
    ) -> List[ProspectRecord]:
        return self.gate.list_eligible(self._select(prospect_ids), policy or self.policy)

    def blacklist(self, prospect_id: int, reason: Optional[str] = None) -> ProspectRecord:
        now = self._clock()
        record = self._write(
            prospect_id,
            lambda current: current.updated(enrichment_blacklisted_at=now, auto_enrich_enabled=False),
        )
        LOGGER.info("Prospect %s blacklisted from enrichment: %s", prospect_id, reason or "no reason given")
        return record

    def toggle_auto_enrichment(self, prospect_id: int, enabled: bool) -> ProspectRecord:
        def change(current: ProspectRecord) -> ProspectRecord:
            if enabled:
                return current.updated(auto_enrich_enabled=True, enrichment_blacklisted_at=None)
            return current.updated(auto_enrich_enabled=False)

        record = self._write(prospect_id, change)
        LOGGER.info("Auto-enrichment %s for prospect %s", "enabled" if enabled else "disabled", prospect_id)
        return record

    def history(self, prospect_id: int, limit: int = 10) -> List[EnrichmentHistoryEntry]:
        return self.store.history(prospect_id, limit)

    def refresh_completeness_scores(self, prospect_ids: Optional[Iterable[int]] = None) -> int:
        updated = 0
        for prospect in self._select(prospect_ids):
            score = self.gate.score(prospect)
            if score != prospect.data_completeness_score:
                self._write(prospect.id, lambda current: current.updated(data_completeness_score=self.gate.score(current)))
                updated += 1
        LOGGER.debug("Refreshed completeness score of %s prospects", updated)
        return updated

    def eligibility_stats(self, user_id: Optional[int] = None) -> Dict[str, Any]:
        return self.gate.stats(self.store.all(), user_id=user_id)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 3)


__all__ = [
    "BulkEnrichmentSummary",
    "EnrichmentReport",
    "ProspectEnrichmentService",
    "build_scrape_urls",
]
