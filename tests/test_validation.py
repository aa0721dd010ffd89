"""Unit tests for :mod:`prospect_enricher.validation`."""
from __future__ import annotations

import pytest

from prospect_enricher.models import ConfidenceLevel, ContactCandidate, ContactType
from prospect_enricher.validation import RuleValidationEngine, ValidationContext, normalise_phone, url_host


@pytest.fixture()
def engine() -> RuleValidationEngine:
    return RuleValidationEngine()


def test_matching_business_email_scores_high(engine: RuleValidationEngine) -> None:
    candidate = ContactCandidate.email("john.doe@testcompany.com", 70)
    context = {"prospect_name": "John Doe", "prospect_company": "Test Company"}

    assessment = engine.assess(candidate, context)
    outcome = engine.validate([candidate], context)

    assert assessment.score > 80
    assert assessment.is_valid
    assert "name_match_in_email" in assessment.bonuses
    assert "company_match_in_domain" in assessment.bonuses
    assert outcome.is_valid
    assert outcome.rule_score("prospect_relevance") > 50
    assert outcome.overall_score == pytest.approx(71.0)


def test_free_email_domain_is_penalised_but_valid(engine: RuleValidationEngine) -> None:
    candidate = ContactCandidate.email("user@gmail.com", 60)

    assessment = engine.assess(candidate, {})

    assert assessment.is_valid
    assert assessment.score == pytest.approx(55.0)
    assert "free_email_domain" in assessment.penalties
    assert not {"name_match_in_email", "company_match_in_domain"} & set(assessment.bonuses)


def test_free_email_from_contact_section_is_valid_below_eighty(engine: RuleValidationEngine) -> None:
    candidate = ContactCandidate.email(
        "user@gmail.com",
        60,
        ConfidenceLevel.MEDIUM,
        context={"in_contact_section": True},
    )
    context = ValidationContext("Jane Roe", "Acme Industries")

    assessment = engine.assess(candidate, context)
    outcome = engine.validate([candidate], context)

    assert assessment.score == pytest.approx(80.0)
    assert outcome.is_valid
    assert outcome.overall_score < 80
    assert outcome.overall_score == pytest.approx(53.0)
    assert outcome.rule_score("prospect_relevance") == 0


def test_malformed_email_scores_zero_and_invalidates_batch(engine: RuleValidationEngine) -> None:
    candidate = ContactCandidate.email("invalid-email", 90, ConfidenceLevel.HIGH)

    assessment = engine.assess(candidate)
    outcome = engine.validate([candidate])

    assert assessment.score == 0
    assert not assessment.is_valid
    assert "invalid_email_format" in assessment.rules_failed
    assert assessment.bonuses == []
    assert not outcome.is_valid
    assert outcome.overall_score == 0


def test_empty_candidate_list_is_invalid(engine: RuleValidationEngine) -> None:
    outcome = engine.validate([])

    assert not outcome.is_valid
    assert outcome.overall_score == 0
    assert outcome.validation_messages == ("No contacts to validate",)


def test_french_phone_is_normalised_and_rewarded(engine: RuleValidationEngine) -> None:
    candidate = ContactCandidate.phone("+33 1 23 45 67 89", 60)

    assessment = engine.assess(candidate)

    assert normalise_phone(candidate.value) == "+33123456789"
    assert assessment.score == pytest.approx(100.0)
    assert "french_phone_format" in assessment.rules_passed
    assert assessment.is_valid


def test_short_phone_falls_below_minimum(engine: RuleValidationEngine) -> None:
    assessment = engine.assess(ContactCandidate.phone("12 34", 60))

    assert "invalid_phone_length" in assessment.rules_failed
    assert assessment.score == pytest.approx(35.0)
    assert not assessment.is_valid


def test_company_website_bonus(engine: RuleValidationEngine) -> None:
    candidate = ContactCandidate.website("https://www.testcompany.com", 50)

    assessment = engine.assess(candidate, {"prospect_company": "Test Company"})

    assert assessment.score == pytest.approx(100.0)
    assert "company_website" in assessment.bonuses


def test_unparseable_website_is_rejected(engine: RuleValidationEngine) -> None:
    assessment = engine.assess(ContactCandidate.website("not a url", 90, ConfidenceLevel.HIGH))

    assert url_host("not a url") is None
    assert assessment.score == 0
    assert "invalid_url_format" in assessment.rules_failed
    assert not assessment.is_valid


def test_scores_are_clamped_to_hundred(engine: RuleValidationEngine) -> None:
    candidate = ContactCandidate.email(
        "john.doe@testcompany.com",
        95,
        ConfidenceLevel.HIGH,
        context={"in_contact_section": True, "source_url": "https://www.linkedin.com/in/johndoe"},
    )

    assessment = engine.assess(candidate, {"prospect_name": "John Doe", "prospect_company": "Test Company"})

    assert assessment.score == 100.0


def test_low_validation_rate_penalises_overall_score(engine: RuleValidationEngine) -> None:
    candidates = [
        ContactCandidate.phone("0123456789", 80),
        ContactCandidate.email("broken", 80),
        ContactCandidate.website("nope", 80),
    ]

    outcome = engine.validate(candidates)

    # Phone: 60 + 15 + 25 = 100; quality 100, one type, nothing relevant or reliable.
    assert outcome.rule_score("contact_quality") == pytest.approx(100.0)
    assert outcome.rule_score("contact_diversity") == pytest.approx(30.0)
    assert outcome.overall_score == pytest.approx((40.0 + 6.0) * 0.8)
    assert len(outcome.metadata["assessments"]) == 3


def test_diversity_counts_distinct_valid_types(engine: RuleValidationEngine) -> None:
    candidates = [
        ContactCandidate.email("contact@acme.fr", 60),
        ContactCandidate.phone("0123456789", 60),
        ContactCandidate.website("https://acme.fr", 60),
    ]

    outcome = engine.validate(candidates, {"prospect_company": "Acme Industries"})

    assert outcome.rule_score("contact_diversity") == pytest.approx(90.0)
    assert "Good contact diversity across different types" in outcome.validation_messages


def test_rules_describe_type_thresholds(engine: RuleValidationEngine) -> None:
    rules = engine.rules()

    assert rules[ContactType.EMAIL.value]["min_score"] == 40.0
    assert rules[ContactType.PHONE.value]["min_score"] == 50.0
    assert rules[ContactType.WEBSITE.value]["min_score"] == 30.0
    assert engine.service_info()["ai_dependency"] is False
