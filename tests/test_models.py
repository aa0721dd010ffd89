from __future__ import annotations

import pytest

from prospect_enricher.models import (
    BackendError,
    BackendOutcome,
    ConfidenceLevel,
    ContactCandidate,
    ContactType,
    EnrichmentResult,
    ProspectRecord,
    ValidationOutcome,
)


def test_candidate_scores_are_clamped_and_types_coerced() -> None:
    candidate = ContactCandidate("email", "Jean@Example.fr", 140, "high")

    assert candidate.type is ContactType.EMAIL
    assert candidate.validation_score == 100
    assert candidate.confidence_level is ConfidenceLevel.HIGH
    assert candidate.dedup_key == "email:jean@example.fr"
    assert candidate.is_high_confidence()
    assert ContactCandidate.phone("0123456789", -5).validation_score == 0


def test_with_context_returns_a_copy() -> None:
    candidate = ContactCandidate.email("jean@example.fr", 70, context={"source_url": "https://example.fr"})

    tagged = candidate.with_context(enrichment_service="duckduckgo")

    assert tagged.context == {"source_url": "https://example.fr", "enrichment_service": "duckduckgo"}
    assert "enrichment_service" not in candidate.context


@pytest.mark.parametrize("score, valid", [(39.9, False), (40, True), (95, True)])
def test_validation_outcome_default_threshold(score, valid) -> None:
    outcome = ValidationOutcome.create(score, {"contact_quality": score})

    assert outcome.is_valid is valid
    assert outcome.rule_score("missing") == 0.0


def test_validation_outcome_helpers() -> None:
    outcome = ValidationOutcome.valid(85)

    updated = outcome.with_message("checked")

    assert outcome.validation_messages == ("Validation passed",)
    assert updated.validation_messages == ("Validation passed", "checked")
    assert updated.confidence_level is ConfidenceLevel.HIGH
    assert ValidationOutcome.create(70, {}, is_valid=False).is_valid is False


def test_failed_result_carries_no_contacts() -> None:
    result = EnrichmentResult.failed("Jean Dupont", "Example Corp", "duckduckgo", "offline")

    assert not result.success
    assert result.contacts == ()
    assert result.validation.validation_messages == ("No validation performed",)
    assert not result.has_valid_contacts()
    assert result.as_dict()["error_message"] == "offline"


def test_best_contacts_orders_by_score() -> None:
    contacts = [ContactCandidate.email(f"p{i}@example.fr", score) for i, score in enumerate([50, 90, 70])]
    result = EnrichmentResult.succeeded("Jean", "Corp", "test", contacts, ValidationOutcome.valid(70))

    assert [c.validation_score for c in result.best_contacts(limit=2)] == [90, 70]


def test_backend_outcome_summary_for_errors() -> None:
    outcome = BackendOutcome("slow", "search", error=BackendError("slow", "Timed out", kind="timeout"), elapsed_ms=50)

    assert not outcome.ok
    assert outcome.contacts == ()
    assert outcome.summary() == {
        "success": False,
        "contacts_found": 0,
        "execution_time_ms": 50,
        "validation_score": 0.0,
        "error_message": "Timed out",
    }


def test_prospect_record_rejects_negative_attempts() -> None:
    with pytest.raises(ValueError):
        ProspectRecord(id=1, enrichment_attempts=-1)

    assert ProspectRecord(id=3).display_name() == "(Prospect 3)"
    assert ProspectRecord(id=3, company="Example Corp").display_name() == "Example Corp"
