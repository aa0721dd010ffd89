"""Deterministic rule engine scoring discovered contact candidates."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlparse

from .models import ConfidenceLevel, ContactCandidate, ContactType, ValidationOutcome

LOGGER = logging.getLogger(__name__)

FREE_EMAIL_DOMAINS = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "free.fr",
        "orange.fr",
        "laposte.net",
        "sfr.fr",
        "wanadoo.fr",
        "voila.fr",
        "club-internet.fr",
    }
)
BUSINESS_SUFFIXES = (".com", ".fr", ".eu", ".org", ".net")
SUSPICIOUS_PATTERNS = ("noreply", "no-reply", "donotreply", "postmaster", "admin", "webmaster", "test", "example")
SOCIAL_PLATFORMS = ("linkedin.com", "twitter.com", "facebook.com", "instagram.com", "youtube.com")
VALID_SCHEMES = ("http", "https")

FRENCH_PHONE_PATTERNS = (
    re.compile(r"^(?:\+33|0)[1-9][0-9]{8}$"),
    re.compile(r"^(?:\+33\s?|0)(?:[1-9]\s?)(?:(?:[0-9]{2}\s?){4})$"),
)
INTERNATIONAL_PHONE_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
PHONE_STRIP_PATTERN = re.compile(r"[^\d+]")
EMAIL_PATTERN = re.compile(
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,}$"
)

RELEVANCE_BONUSES = frozenset({"name_match_in_email", "company_match_in_domain", "company_website"})
RELIABILITY_BONUSES = frozenset({"linkedin_source", "found_in_contact_section"})

RULE_WEIGHTS = {
    "contact_quality": 0.4,
    "contact_diversity": 0.2,
    "prospect_relevance": 0.25,
    "source_reliability": 0.15,
}
LOW_VALIDATION_RATE = 0.5
LOW_VALIDATION_PENALTY = 0.8


@dataclass(frozen=True)
class ValidationContext:
    """The prospect the candidates are supposed to belong to."""

    prospect_name: str = ""
    prospect_company: str = ""

    @classmethod
    def coerce(cls, context: Union["ValidationContext", Mapping[str, Any], None]) -> "ValidationContext":
        if isinstance(context, ValidationContext):
            return context
        context = context or {}
        return cls(
            prospect_name=str(context.get("prospect_name") or ""),
            prospect_company=str(context.get("prospect_company") or ""),
        )

    def name_tokens(self) -> List[str]:
        return [word for word in self.prospect_name.lower().split(" ") if len(word) > 2]

    def company_tokens(self) -> List[str]:
        return [word for word in self.prospect_company.lower().split(" ") if len(word) > 3]


@dataclass
class ContactAssessment:
    """Working record of the rules applied to a single candidate."""

    candidate: ContactCandidate
    score: float = 0.0
    is_valid: bool = False
    rules_passed: List[str] = field(default_factory=list)
    rules_failed: List[str] = field(default_factory=list)
    bonuses: List[str] = field(default_factory=list)
    penalties: List[str] = field(default_factory=list)
    rejected: bool = False

    def bonus(self, name: str, points: float) -> None:
        self.bonuses.append(name)
        self.score += points

    def penalty(self, name: str, points: float) -> None:
        self.penalties.append(name)
        self.score -= points

    def reject(self, rule: str) -> "ContactAssessment":
        self.rules_failed.append(rule)
        self.score = 0.0
        self.rejected = True
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.candidate.type.value,
            "value": self.candidate.value,
            "score": self.score,
            "is_valid": self.is_valid,
            "rules_passed": list(self.rules_passed),
            "rules_failed": list(self.rules_failed),
            "bonuses": list(self.bonuses),
            "penalties": list(self.penalties),
        }


def _contains_token(text: str, tokens: Iterable[str]) -> bool:
    text = text.lower()
    return any(token in text for token in tokens)


class EmailRule:
    contact_type = ContactType.EMAIL
    base_score = 50.0
    min_score = 40.0

    def assess(self, candidate: ContactCandidate, context: ValidationContext) -> ContactAssessment:
        assessment = ContactAssessment(candidate=candidate, score=self.base_score)
        email = candidate.value.strip()
        if not EMAIL_PATTERN.match(email):
            return assessment.reject("invalid_email_format")
        assessment.rules_passed.append("valid_email_format")
        assessment.score += 20

        local_part, _, domain = email.rpartition("@")
        domain = domain.lower()
        if domain in FREE_EMAIL_DOMAINS:
            assessment.penalty("free_email_domain", 15)
        elif any(suffix in domain for suffix in BUSINESS_SUFFIXES):
            assessment.bonus("business_domain", 25)
        if any(pattern in domain for pattern in SUSPICIOUS_PATTERNS):
            assessment.penalty("suspicious_domain", 30)

        if _contains_token(local_part, context.name_tokens()):
            assessment.bonus("name_match_in_email", 30)
        if _contains_token(domain, context.company_tokens()):
            assessment.bonus("company_match_in_domain", 35)
        if candidate.context.get("in_contact_section"):
            assessment.bonus("found_in_contact_section", 20)
        return assessment


class PhoneRule:
    contact_type = ContactType.PHONE
    base_score = 60.0
    min_score = 50.0
    min_length = 10
    max_length = 15

    def assess(self, candidate: ContactCandidate, context: ValidationContext) -> ContactAssessment:
        assessment = ContactAssessment(candidate=candidate, score=self.base_score)
        phone = normalise_phone(candidate.value)

        if self.min_length <= len(phone) <= self.max_length:
            assessment.rules_passed.append("valid_phone_length")
            assessment.score += 15
        else:
            assessment.rules_failed.append("invalid_phone_length")
            assessment.score -= 25

        if any(pattern.match(phone) for pattern in FRENCH_PHONE_PATTERNS):
            assessment.rules_passed.append("french_phone_format")
            assessment.bonus("french_number", 25)
        elif INTERNATIONAL_PHONE_PATTERN.match(phone):
            assessment.rules_passed.append("international_phone_format")
            assessment.score += 15
        return assessment


class WebsiteRule:
    contact_type = ContactType.WEBSITE
    base_score = 40.0
    min_score = 30.0

    def assess(self, candidate: ContactCandidate, context: ValidationContext) -> ContactAssessment:
        assessment = ContactAssessment(candidate=candidate, score=self.base_score)
        url = candidate.value.strip()
        host = url_host(url)
        if host is None:
            return assessment.reject("invalid_url_format")
        assessment.rules_passed.append("valid_url_format")
        assessment.score += 20

        if urlparse(url).scheme.lower() in VALID_SCHEMES:
            assessment.rules_passed.append("valid_url_scheme")
            assessment.score += 10
        if any(platform in host for platform in SOCIAL_PLATFORMS):
            assessment.bonus("social_media_platform", 15)
        if _contains_token(host, context.company_tokens()):
            assessment.bonus("company_website", 30)
        return assessment


def normalise_phone(value: str) -> str:
    return PHONE_STRIP_PATTERN.sub("", value or "")


def url_host(url: str) -> Optional[str]:
    """Return the lower-cased host of an absolute URL, or ``None`` when it does not parse."""

    if not url or any(char.isspace() for char in url):
        return None
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc or not parsed.hostname:
        return None
    return parsed.hostname.lower()


DEFAULT_RULES = {
    ContactType.EMAIL: EmailRule(),
    ContactType.PHONE: PhoneRule(),
    ContactType.WEBSITE: WebsiteRule(),
}


class RuleValidationEngine:
    """Scores contact candidates against deterministic format, domain and relevance rules."""

    name = "rule_based_validation"

    def __init__(self, rules: Optional[Mapping[ContactType, Any]] = None) -> None:
        self._rules = dict(rules or DEFAULT_RULES)

    def assess(
        self,
        candidate: ContactCandidate,
        context: Union[ValidationContext, Mapping[str, Any], None] = None,
    ) -> ContactAssessment:
        """Score one candidate and decide whether it clears its type minimum."""

        resolved = ValidationContext.coerce(context)
        rule = self._rules[candidate.type]
        assessment = rule.assess(candidate, resolved)
        if not assessment.rejected:
            self._apply_contextual_bonuses(assessment)
        assessment.score = min(100.0, max(0.0, assessment.score))
        assessment.is_valid = not assessment.rejected and assessment.score >= rule.min_score
        return assessment

    def validate(
        self,
        candidates: Sequence[ContactCandidate],
        context: Union[ValidationContext, Mapping[str, Any], None] = None,
    ) -> ValidationOutcome:
        if not candidates:
            return ValidationOutcome.invalid(0, ["No contacts to validate"])

        resolved = ValidationContext.coerce(context)
        assessments = [self.assess(candidate, resolved) for candidate in candidates]
        valid = [assessment for assessment in assessments if assessment.is_valid]
        metadata = {"assessments": [assessment.as_dict() for assessment in assessments]}
        if not valid:
            return ValidationOutcome.invalid(0, ["No valid contacts found after validation"], metadata=metadata)

        rule_scores = self._rule_scores(assessments, valid)
        overall = sum(rule_scores[name] * weight for name, weight in RULE_WEIGHTS.items())
        if len(valid) / len(assessments) < LOW_VALIDATION_RATE:
            overall *= LOW_VALIDATION_PENALTY
        overall = min(100.0, max(0.0, overall))

        messages = self._messages(len(valid), len(assessments), rule_scores)
        LOGGER.debug("Validated %s/%s contacts, overall score %.2f", len(valid), len(assessments), overall)
        return ValidationOutcome.create(overall, rule_scores, validation_messages=messages, metadata=metadata)

    def _apply_contextual_bonuses(self, assessment: ContactAssessment) -> None:
        candidate = assessment.candidate
        source_url = str(candidate.context.get("source_url") or "")
        if "linkedin.com" in source_url.lower():
            assessment.bonus("linkedin_source", 15)
        if candidate.confidence_level is ConfidenceLevel.HIGH:
            assessment.bonus("high_original_confidence", 10)
        elif candidate.confidence_level is ConfidenceLevel.MEDIUM:
            assessment.bonus("medium_original_confidence", 5)

    @staticmethod
    def _rule_scores(assessments: List[ContactAssessment], valid: List[ContactAssessment]) -> Dict[str, float]:
        total = len(assessments)
        distinct_types = {assessment.candidate.type for assessment in valid}
        relevant = [a for a in assessments if RELEVANCE_BONUSES.intersection(a.bonuses)]
        reliable = [a for a in assessments if RELIABILITY_BONUSES.intersection(a.bonuses)]
        return {
            "contact_quality": sum(a.score for a in valid) / len(valid),
            "contact_diversity": float(min(100, len(distinct_types) * 30)),
            "prospect_relevance": min(100.0, len(relevant) / total * 100),
            "source_reliability": min(100.0, len(reliable) / total * 100),
        }

    @staticmethod
    def _messages(valid_count: int, total: int, rule_scores: Mapping[str, float]) -> List[str]:
        messages = [
            f"Validation rule-based completed: {valid_count}/{total} contacts validated",
            f"Average contact quality: {round(rule_scores['contact_quality'], 2)}/100",
        ]
        if rule_scores["prospect_relevance"] > 70:
            messages.append("High prospect relevance detected")
        elif rule_scores["prospect_relevance"] < 30:
            messages.append("Low prospect relevance - contacts may not match the target")
        if rule_scores["contact_diversity"] > 60:
            messages.append("Good contact diversity across different types")
        if rule_scores["source_reliability"] > 70:
            messages.append("High source reliability - contacts from trusted sources")
        return messages

    def rules(self) -> Dict[str, Dict[str, Any]]:
        """Describe the thresholds applied per contact type."""

        return {
            contact_type.value: {
                "base_score": rule.base_score,
                "min_score": rule.min_score,
                "max_score": 100.0,
            }
            for contact_type, rule in self._rules.items()
        }

    def is_configured(self) -> bool:
        return True

    def service_info(self) -> Dict[str, Any]:
        return {
            "name": "Rule-Based Validation Strategy",
            "type": "validation_strategy",
            "available": self.is_configured(),
            "description": "Deterministic rule-based contact validation",
            "ai_dependency": False,
            "cost": "Free",
        }


__all__ = [
    "ContactAssessment",
    "EmailRule",
    "PhoneRule",
    "RuleValidationEngine",
    "ValidationContext",
    "WebsiteRule",
    "normalise_phone",
    "url_host",
]
