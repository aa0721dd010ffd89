"""Tests for the prospect enrichment workflow in :mod:`prospect_enricher.service`."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from prospect_enricher.backends.sample import StaticContactBackend
from prospect_enricher.models import (
    EligibilityReason,
    EnrichmentOptions,
    EnrichmentStatus,
    ProspectRecord,
    TriggeredBy,
)
from prospect_enricher.orchestrator import EnrichmentOrchestrator
from prospect_enricher.service import ProspectEnrichmentService, build_scrape_urls
from prospect_enricher.store import InMemoryProspectStore, MergeConflictError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

JEAN_EMAIL = {"type": "email", "value": "jean.dupont@example-corp.fr", "score": 85}


class CountingBackend(StaticContactBackend):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls = []

    def search(self, name, company, options):
        self.calls.append((name, company, options))
        return super().search(name, company, options)


class ExplodingOrchestrator:
    def enrich(self, name, company, options=None):
        raise RuntimeError("orchestrator crashed")


class ConcurrentEditStore(InMemoryProspectStore):
    """Simulates another writer updating the prospect right before the merge is saved."""

    def __init__(self, records) -> None:
        super().__init__(records)
        self.conflicts = 0

    def save(self, record, expected_version):
        if record.enrichment_status is EnrichmentStatus.COMPLETED and self.conflicts == 0:
            self.conflicts += 1
            current = self.get(record.id)
            super().save(current.updated(city="Lyon"), expected_version=current.version)
        return super().save(record, expected_version)


def _service(store, *entries, by_prospect=None):
    backend = CountingBackend([dict(entry) for entry in entries], by_prospect=by_prospect, name="static")
    service = ProspectEnrichmentService(store, EnrichmentOrchestrator([backend]), clock=lambda: NOW)
    return service, backend


def _complete(prospect_id: int) -> ProspectRecord:
    return ProspectRecord(
        id=prospect_id,
        name="Complete Person",
        company="Complete Corp",
        city="Paris",
        address="1 rue de Rivoli",
        contact_info={"email": "c@complete.fr", "phone": "0123456789"},
        enrichment_data={"emails": [{"value": "c@complete.fr"}]},
        data_completeness_score=95,
    )


def test_successful_enrichment_merges_contacts_and_records_history() -> None:
    store = InMemoryProspectStore([ProspectRecord(id=1, name="Jean Dupont", company="Example Corp")])
    service, backend = _service(store, JEAN_EMAIL)

    report = service.enrich_prospect(1, EnrichmentOptions(triggered_by=TriggeredBy.API, user_id=9))

    record = store.get(1)
    assert report.success
    assert report.contacts_found == 1
    assert report.contacts["emails"][0]["value"] == "jean.dupont@example-corp.fr"
    assert record.enrichment_status is EnrichmentStatus.COMPLETED
    assert record.email == "jean.dupont@example-corp.fr"
    assert record.last_enrichment_at == NOW
    assert record.enrichment_attempts == 0
    assert record.data_completeness_score == 60
    assert record.version == 2

    (entry,) = service.history(1)
    assert entry.status == "completed"
    assert entry.triggered_by is TriggeredBy.API
    assert entry.user_id == 9
    assert entry.services_used == ("static",)
    assert len(backend.calls) == 1


def test_known_website_is_passed_to_backends() -> None:
    store = InMemoryProspectStore(
        [ProspectRecord(id=1, name="Jean Dupont", company="Example Corp", contact_info={"website": "https://example-corp.fr/"})]
    )
    service, backend = _service(store, JEAN_EMAIL)

    service.enrich_prospect(1)

    options = backend.calls[0][2]
    assert options.company_website == "https://example-corp.fr/"
    assert options.urls_to_scrape == (
        "https://example-corp.fr/",
        "https://example-corp.fr/contact",
        "https://example-corp.fr/contact-us",
        "https://example-corp.fr/nous-contacter",
    )
    assert build_scrape_urls(None) == []


def test_ineligible_prospect_skips_the_orchestrator() -> None:
    store = InMemoryProspectStore([_complete(1)])
    service, backend = _service(store, JEAN_EMAIL)

    report = service.enrich_prospect(1)

    assert not report.success
    assert report.reason == "not_eligible"
    assert report.eligibility.reason is EligibilityReason.COMPLETE_DATA
    assert backend.calls == []
    assert service.history(1) == []
    assert store.get(1).version == 0


def test_force_bypasses_eligibility() -> None:
    store = InMemoryProspectStore([_complete(1)])
    service, backend = _service(store, JEAN_EMAIL)

    service.enrich_prospect(1, EnrichmentOptions(force=True))

    assert len(backend.calls) == 1


def test_prospect_without_name_or_company_is_rejected() -> None:
    store = InMemoryProspectStore([ProspectRecord(id=1, city="Lyon")])
    service, backend = _service(store, JEAN_EMAIL)

    report = service.enrich_prospect(1)

    assert report.reason == "insufficient_data"
    assert backend.calls == []


def test_run_without_contacts_counts_a_failed_attempt() -> None:
    store = InMemoryProspectStore([ProspectRecord(id=1, name="Jean Dupont", company="Example Corp")])
    service, _ = _service(store)

    report = service.enrich_prospect(1)

    record = store.get(1)
    assert report.reason == "no_contacts_found"
    assert record.enrichment_status is EnrichmentStatus.FAILED
    assert record.enrichment_attempts == 1
    assert service.history(1)[0].status == "failed"


def test_orchestrator_crash_is_recorded_as_failure() -> None:
    store = InMemoryProspectStore([ProspectRecord(id=1, name="Jean Dupont", company="Example Corp")])
    service = ProspectEnrichmentService(store, ExplodingOrchestrator(), clock=lambda: NOW)

    report = service.enrich_prospect(1)

    record = store.get(1)
    assert report.reason == "enrichment_error"
    assert report.message == "orchestrator crashed"
    assert record.enrichment_status is EnrichmentStatus.FAILED
    assert record.enrichment_attempts == 1
    assert service.history(1)[0].error_message == "orchestrator crashed"


def test_merge_retries_after_concurrent_update() -> None:
    store = ConcurrentEditStore([ProspectRecord(id=1, name="Jean Dupont", company="Example Corp")])
    backend = StaticContactBackend([dict(JEAN_EMAIL)])
    service = ProspectEnrichmentService(store, EnrichmentOrchestrator([backend]), clock=lambda: NOW)

    report = service.enrich_prospect(1)

    record = store.get(1)
    assert report.success
    assert store.conflicts == 1
    assert record.city == "Lyon"
    assert record.email == "jean.dupont@example-corp.fr"


def test_write_gives_up_after_repeated_conflicts() -> None:
    class AlwaysConflicting(InMemoryProspectStore):
        def save(self, record, expected_version):
            raise MergeConflictError("busy")

    store = AlwaysConflicting([ProspectRecord(id=1, name="Jean Dupont")])
    service, _ = _service(store)

    with pytest.raises(MergeConflictError):
        service.blacklist(1)


def test_bulk_enrichment_summary() -> None:
    store = InMemoryProspectStore(
        [
            ProspectRecord(id=1, name="Jean Dupont", company="Example Corp"),
            ProspectRecord(id=2, name="Marie Curie", company="Radium SA"),
            _complete(3),
        ]
    )
    service, backend = _service(store, by_prospect={"jean dupont": [JEAN_EMAIL]})

    summary = service.bulk_enrich()

    assert summary.total_requested == 3
    assert summary.eligible_count == 2
    assert summary.processed == [{"prospect_id": 1, "contacts_found": 1}]
    assert [entry["prospect_id"] for entry in summary.failed] == [2]
    assert summary.failed[0]["reason"] == "no_contacts_found"
    assert summary.skipped == []
    assert summary.errors == []
    assert len(backend.calls) == 2
    assert all(call[2].triggered_by is TriggeredBy.BULK for call in backend.calls)
    assert set(summary.as_dict()) >= {"processed", "failed", "skipped", "errors", "execution_time_ms"}


def test_bulk_enrichment_limit_and_explicit_ids() -> None:
    store = InMemoryProspectStore(
        [ProspectRecord(id=i, name=f"Person {i}", company="Example Corp") for i in range(1, 5)]
    )
    service, backend = _service(store, JEAN_EMAIL)

    summary = service.bulk_enrich(prospect_ids=[2, 3, 4], limit=2)

    assert summary.total_requested == 3
    assert summary.eligible_count == 3
    assert len(summary.processed) == 2
    assert store.get(1).enrichment_status is EnrichmentStatus.NEVER


def test_blacklist_and_toggle_auto_enrichment() -> None:
    store = InMemoryProspectStore([ProspectRecord(id=1, name="Jean Dupont")])
    service, _ = _service(store)

    service.blacklist(1, reason="asked to be forgotten")
    blocked = service.eligibility(1)
    service.toggle_auto_enrichment(1, True)
    restored = service.eligibility(1)
    service.toggle_auto_enrichment(1, False)

    assert blocked.reason is EligibilityReason.DISABLED
    assert store.get(1).enrichment_blacklisted_at is None
    assert restored.is_eligible
    assert service.eligibility(1).reason is EligibilityReason.DISABLED


def test_refresh_completeness_scores_and_stats() -> None:
    store = InMemoryProspectStore(
        [ProspectRecord(id=1, name="Jean Dupont", company="Example Corp"), ProspectRecord(id=2)]
    )
    service, _ = _service(store)

    assert service.refresh_completeness_scores() == 1
    assert store.get(1).data_completeness_score == 30
    assert service.refresh_completeness_scores() == 0
    assert service.eligibility_stats()["total_prospects"] == 2
    assert [p.id for p in service.eligible_prospects()] == [2, 1]
