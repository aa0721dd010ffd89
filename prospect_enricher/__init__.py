"""Prospect contact enrichment: web backends, rule-based validation and eligibility tracking."""

from . import backends, models  # noqa: F401
from .eligibility import EligibilityGate, EligibilityPolicy  # noqa: F401
from .models import (
    ConfidenceLevel,
    ContactCandidate,
    ContactType,
    EligibilityDecision,
    EnrichmentOptions,
    EnrichmentResult,
    ProspectRecord,
    ValidationOutcome,
)
from .orchestrator import EnrichmentOrchestrator, OrchestratorConfig  # noqa: F401
from .service import ProspectEnrichmentService  # noqa: F401
from .store import InMemoryProspectStore  # noqa: F401
from .validation import RuleValidationEngine  # noqa: F401

__all__ = [
    "ConfidenceLevel",
    "ContactCandidate",
    "ContactType",
    "EligibilityDecision",
    "EligibilityGate",
    "EligibilityPolicy",
    "EnrichmentOptions",
    "EnrichmentOrchestrator",
    "EnrichmentResult",
    "InMemoryProspectStore",
    "OrchestratorConfig",
    "ProspectEnrichmentService",
    "ProspectRecord",
    "RuleValidationEngine",
    "ValidationOutcome",
    "backends",
]
