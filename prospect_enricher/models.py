"""Unified data models for contact candidates, validation and prospect enrichment state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


# --- Enumerations ---

class ContactType(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    WEBSITE = "website"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_score(cls, score: float) -> "ConfidenceLevel":
        """Map a 0-100 score onto a confidence bucket."""

        if score >= 80:
            return cls.HIGH
        if score >= 60:
            return cls.MEDIUM
        return cls.LOW


class EnrichmentStatus(str, Enum):
    NEVER = "never"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class EligibilityReason(str, Enum):
    NEVER_ENRICHED = "never_enriched"
    PREVIOUS_FAILURE = "previous_failure"
    OUTDATED_ENRICHMENT = "outdated_enrichment"
    INCOMPLETE_DATA = "incomplete_data"
    RECENTLY_ENRICHED = "recently_enriched"
    COMPLETE_DATA = "complete_data"
    BLACKLISTED = "blacklisted"
    DISABLED = "disabled"
    IN_PROGRESS = "in_progress"
    MAX_ATTEMPTS_REACHED = "max_attempts_reached"
    FORCED = "forced"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TriggeredBy(str, Enum):
    USER = "user"
    AUTO = "auto"
    BULK = "bulk"
    API = "api"


def _clamp(score: float) -> float:
    return min(100.0, max(0.0, float(score)))


# --- Contact candidates ---

@dataclass(frozen=True)
class ContactCandidate:
    """A single discovered contact value awaiting validation."""

    type: ContactType
    value: str
    validation_score: float = 0.0
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    context: Mapping[str, Any] = field(default_factory=dict)
    validation_details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", ContactType(self.type))
        object.__setattr__(self, "confidence_level", ConfidenceLevel(self.confidence_level))
        object.__setattr__(self, "validation_score", _clamp(self.validation_score))
        object.__setattr__(self, "context", dict(self.context or {}))
        object.__setattr__(self, "validation_details", dict(self.validation_details or {}))

    @classmethod
    def email(cls, value: str, score: float, confidence: str = "low", context=None, details=None) -> "ContactCandidate":
        return cls(ContactType.EMAIL, value, score, confidence, context or {}, details or {})

    @classmethod
    def phone(cls, value: str, score: float, confidence: str = "low", context=None, details=None) -> "ContactCandidate":
        return cls(ContactType.PHONE, value, score, confidence, context or {}, details or {})

    @classmethod
    def website(cls, value: str, score: float, confidence: str = "low", context=None, details=None) -> "ContactCandidate":
        return cls(ContactType.WEBSITE, value, score, confidence, context or {}, details or {})

    @property
    def dedup_key(self) -> str:
        return f"{self.type.value}:{self.value}".lower()

    def with_context(self, **extra: Any) -> "ContactCandidate":
        return replace(self, context={**self.context, **extra})

    def with_details(self, **extra: Any) -> "ContactCandidate":
        return replace(self, validation_details={**self.validation_details, **extra})

    def is_high_confidence(self) -> bool:
        return self.confidence_level is ConfidenceLevel.HIGH and self.validation_score >= 80

    def is_medium_confidence(self) -> bool:
        return self.confidence_level is ConfidenceLevel.MEDIUM and self.validation_score >= 60

    def is_low_confidence(self) -> bool:
        return self.confidence_level is ConfidenceLevel.LOW or self.validation_score < 60

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "value": self.value,
            "validation_score": self.validation_score,
            "confidence_level": self.confidence_level.value,
            "context": dict(self.context),
            "validation_details": dict(self.validation_details),
        }


# --- Validation ---

@dataclass(frozen=True)
class ValidationOutcome:
    """Aggregate validation result for a batch of contact candidates."""

    overall_score: float
    rule_scores: Mapping[str, float] = field(default_factory=dict)
    is_valid: bool = False
    validation_messages: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    DEFAULT_THRESHOLD = 40.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "overall_score", _clamp(self.overall_score))
        object.__setattr__(self, "rule_scores", dict(self.rule_scores or {}))
        object.__setattr__(self, "validation_messages", tuple(self.validation_messages or ()))
        object.__setattr__(self, "metadata", dict(self.metadata or {}))

    @classmethod
    def create(
        cls,
        overall_score: float,
        rule_scores: Mapping[str, float],
        is_valid: Optional[bool] = None,
        validation_messages: Iterable[str] = (),
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "ValidationOutcome":
        if is_valid is None:
            is_valid = overall_score >= cls.DEFAULT_THRESHOLD
        return cls(overall_score, rule_scores, is_valid, tuple(validation_messages), metadata or {})

    @classmethod
    def empty(cls) -> "ValidationOutcome":
        return cls(0.0, {}, False, ("No validation performed",))

    @classmethod
    def valid(cls, score: float, rule_scores: Optional[Mapping[str, float]] = None) -> "ValidationOutcome":
        return cls(score, rule_scores or {}, True, ("Validation passed",))

    @classmethod
    def invalid(
        cls,
        score: float,
        reasons: Iterable[str] = (),
        rule_scores: Optional[Mapping[str, float]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "ValidationOutcome":
        return cls(score, rule_scores or {}, False, tuple(reasons), metadata or {})

    @property
    def confidence_level(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.overall_score)

    def rule_score(self, name: str) -> float:
        return float(self.rule_scores.get(name, 0.0))

    def with_message(self, message: str) -> "ValidationOutcome":
        return replace(self, validation_messages=self.validation_messages + (message,))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "rule_scores": dict(self.rule_scores),
            "is_valid": self.is_valid,
            "confidence_level": self.confidence_level.value,
            "validation_messages": list(self.validation_messages),
            "metadata": dict(self.metadata),
        }


# --- Enrichment results ---

@dataclass(frozen=True)
class EnrichmentResult:
    """Outcome of one backend call or of a whole orchestration run."""

    prospect_name: str
    prospect_company: str
    source: str
    contacts: Tuple[ContactCandidate, ...] = ()
    validation: ValidationOutcome = field(default_factory=ValidationOutcome.empty)
    metadata: Mapping[str, Any] = field(default_factory=dict)
    execution_time_ms: float = 0.0
    success: bool = True
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "contacts", tuple(self.contacts or ()))
        object.__setattr__(self, "metadata", dict(self.metadata or {}))

    @classmethod
    def succeeded(
        cls,
        prospect_name: str,
        prospect_company: str,
        source: str,
        contacts: Iterable[ContactCandidate],
        validation: ValidationOutcome,
        metadata: Optional[Mapping[str, Any]] = None,
        execution_time_ms: float = 0.0,
    ) -> "EnrichmentResult":
        return cls(
            prospect_name=prospect_name,
            prospect_company=prospect_company,
            source=source,
            contacts=tuple(contacts),
            validation=validation,
            metadata=metadata or {},
            execution_time_ms=execution_time_ms,
            success=True,
        )

    @classmethod
    def failed(
        cls,
        prospect_name: str,
        prospect_company: str,
        source: str,
        error_message: str,
        execution_time_ms: float = 0.0,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "EnrichmentResult":
        return cls(
            prospect_name=prospect_name,
            prospect_company=prospect_company,
            source=source,
            contacts=(),
            validation=ValidationOutcome.empty(),
            metadata=metadata or {},
            execution_time_ms=execution_time_ms,
            success=False,
            error_message=error_message,
        )

    def best_contacts(self, limit: int = 5) -> List[ContactCandidate]:
        ordered = sorted(self.contacts, key=lambda contact: contact.validation_score, reverse=True)
        return ordered[:limit]

    def has_valid_contacts(self) -> bool:
        return bool(self.contacts) and self.validation.is_valid and self.success

    def as_dict(self) -> Dict[str, Any]:
        return {
            "prospect_name": self.prospect_name,
            "prospect_company": self.prospect_company,
            "source": self.source,
            "contacts": [contact.as_dict() for contact in self.contacts],
            "validation": self.validation.as_dict(),
            "metadata": dict(self.metadata),
            "execution_time_ms": self.execution_time_ms,
            "success": self.success,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class EnrichmentOptions:
    """Recognised per-call options for an enrichment run."""

    max_contacts: int = 10
    force: bool = False
    urls_to_scrape: Tuple[str, ...] = ()
    triggered_by: TriggeredBy = TriggeredBy.USER
    company_website: Optional[str] = None
    user_id: Optional[int] = None
    enabled_backends: Optional[Mapping[str, bool]] = None
    contact_keywords: Tuple[str, ...] = ("email", "contact", "adresse email")

    def __post_init__(self) -> None:
        object.__setattr__(self, "urls_to_scrape", tuple(self.urls_to_scrape or ()))
        object.__setattr__(self, "triggered_by", TriggeredBy(self.triggered_by))
        object.__setattr__(self, "contact_keywords", tuple(self.contact_keywords or ()))

    def updated(self, **changes: Any) -> "EnrichmentOptions":
        return replace(self, **changes)


# --- Backend call outcomes ---

@dataclass(frozen=True)
class BackendError:
    """Why a backend call did not produce a result."""

    backend: str
    message: str
    kind: str = "exception"


@dataclass(frozen=True)
class BackendOutcome:
    """Result-or-error wrapper for one backend invocation."""

    name: str
    kind: str
    result: Optional[EnrichmentResult] = None
    error: Optional[BackendError] = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None and self.result.success

    @property
    def contacts(self) -> Tuple[ContactCandidate, ...]:
        if self.result is None:
            return ()
        return self.result.contacts

    def summary(self) -> Dict[str, Any]:
        if self.result is not None:
            return {
                "success": self.result.success,
                "contacts_found": len(self.result.contacts),
                "execution_time_ms": self.result.execution_time_ms,
                "validation_score": self.result.validation.overall_score,
                "error_message": self.result.error_message,
            }
        return {
            "success": False,
            "contacts_found": 0,
            "execution_time_ms": self.elapsed_ms,
            "validation_score": 0.0,
            "error_message": self.error.message if self.error else None,
        }


# --- Eligibility ---

@dataclass(frozen=True)
class EligibilityDecision:
    """Whether a prospect should be (re-)enriched right now."""

    is_eligible: bool
    reason: EligibilityReason
    completeness_score: float
    next_eligible_at: Optional[datetime] = None
    priority: Optional[Priority] = None
    details: Mapping[str, Any] = field(default_factory=dict)
    reason_details: Tuple[str, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "is_eligible": self.is_eligible,
            "reason": self.reason.value,
            "next_eligible_at": self.next_eligible_at.isoformat() if self.next_eligible_at else None,
            "completeness_score": self.completeness_score,
            "priority": self.priority.value if self.priority else None,
            "details": dict(self.details),
            "reason_details": list(self.reason_details),
        }


# --- Prospect records ---

@dataclass(frozen=True)
class ProspectRecord:
    """Persisted prospect profile together with its enrichment state."""

    id: int
    name: Optional[str] = None
    company: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    contact_info: Mapping[str, Optional[str]] = field(default_factory=dict)
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    last_enrichment_at: Optional[datetime] = None
    enrichment_attempts: int = 0
    enrichment_status: EnrichmentStatus = EnrichmentStatus.NEVER
    enrichment_score: Optional[float] = None
    auto_enrich_enabled: bool = True
    enrichment_blacklisted_at: Optional[datetime] = None
    enrichment_data: Mapping[str, Any] = field(default_factory=dict)
    data_completeness_score: float = 0.0
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "enrichment_status", EnrichmentStatus(self.enrichment_status))
        object.__setattr__(self, "contact_info", dict(self.contact_info or {}))
        object.__setattr__(self, "enrichment_data", dict(self.enrichment_data or {}))
        if self.enrichment_attempts < 0:
            raise ValueError("enrichment_attempts cannot be negative")

    @property
    def email(self) -> Optional[str]:
        return self.contact_info.get("email")

    @property
    def phone(self) -> Optional[str]:
        return self.contact_info.get("phone")

    @property
    def website(self) -> Optional[str]:
        return self.contact_info.get("website")

    def display_name(self) -> str:
        return self.name or self.company or f"(Prospect {self.id})"

    def updated(self, **changes: Any) -> "ProspectRecord":
        return replace(self, **changes)


__all__ = [
    "BackendError",
    "BackendOutcome",
    "ConfidenceLevel",
    "ContactCandidate",
    "ContactType",
    "EligibilityDecision",
    "EligibilityReason",
    "EnrichmentOptions",
    "EnrichmentResult",
    "EnrichmentStatus",
    "Priority",
    "ProspectRecord",
    "TriggeredBy",
    "ValidationOutcome",
]
