"""Decide whether a prospect should be enriched now, and how complete its data already is."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import EligibilityDecision, EligibilityReason, EnrichmentStatus, Priority, ProspectRecord

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]

COMPLETENESS_WEIGHTS = {
    "name": 15,
    "company": 15,
    "city": 10,
    "address": 10,
    "email": 20,
    "phone": 15,
    "website": 5,
    "enrichment_data": 10,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EligibilityPolicy:
    """Thresholds controlling when a prospect may be (re-)enriched."""

    refresh_after_days: int = 30
    min_completeness_score: float = 80.0
    max_attempts: int = 3
    force_mode: bool = False

    def updated(self, **changes: Any) -> "EligibilityPolicy":
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


def _has_enrichment_data(data: Any) -> bool:
    if not data:
        return False
    if isinstance(data, dict):
        return any(bool(value) for value in data.values())
    return True


def _days_between(earlier: datetime, later: datetime) -> int:
    if earlier.tzinfo is None:
        earlier = earlier.replace(tzinfo=timezone.utc)
    if later.tzinfo is None:
        later = later.replace(tzinfo=timezone.utc)
    return (later - earlier).days


class EligibilityGate:
    """Pure decision function over a prospect's enrichment state and a policy."""

    def __init__(self, policy: Optional[EligibilityPolicy] = None, *, clock: Clock = utcnow) -> None:
        self.policy = policy or EligibilityPolicy()
        self._clock = clock

    # ------------------------------------------------------------------
    # Completeness
    # ------------------------------------------------------------------
    def score(self, prospect: ProspectRecord) -> float:
        """Additive 0-100 measure of how much profile and contact data is known."""

        present = {
            "name": bool(prospect.name),
            "company": bool(prospect.company),
            "city": bool(prospect.city),
            "address": bool(prospect.address),
            "email": bool(prospect.contact_info.get("email")),
            "phone": bool(prospect.contact_info.get("phone")),
            "website": bool(prospect.contact_info.get("website")),
            "enrichment_data": _has_enrichment_data(prospect.enrichment_data),
        }
        total = sum(COMPLETENESS_WEIGHTS[key] for key, flag in present.items() if flag)
        return float(min(100, total))

    def missing_data(self, prospect: ProspectRecord) -> List[str]:
        missing = [key for key in ("email", "phone", "website") if not prospect.contact_info.get(key)]
        if not prospect.address:
            missing.append("address")
        if not prospect.company:
            missing.append("company")
        return missing

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------
    def decide(self, prospect: ProspectRecord, policy: Optional[EligibilityPolicy] = None) -> EligibilityDecision:
        policy = policy or self.policy
        now = self._clock()

        if policy.force_mode:
            completeness = self.score(prospect)
            return EligibilityDecision(
                is_eligible=True,
                reason=EligibilityReason.FORCED,
                completeness_score=completeness,
                priority=self._priority(prospect, completeness),
                details=self._eligible_details(prospect, completeness, now),
                reason_details=("Force mode activated",),
            )

        if not prospect.auto_enrich_enabled:
            return self._ineligible(prospect, now, EligibilityReason.DISABLED, "Auto-enrichment disabled")

        if prospect.enrichment_blacklisted_at is not None:
            blacklisted_on = prospect.enrichment_blacklisted_at.strftime("%Y-%m-%d")
            return self._ineligible(
                prospect, now, EligibilityReason.BLACKLISTED, f"Prospect blacklisted on {blacklisted_on}"
            )

        if prospect.enrichment_status is EnrichmentStatus.PENDING:
            return self._ineligible(prospect, now, EligibilityReason.IN_PROGRESS, "Enrichment currently in progress")

        completeness = self.score(prospect)
        if completeness >= policy.min_completeness_score:
            return self._ineligible(
                prospect,
                now,
                EligibilityReason.COMPLETE_DATA,
                f"Data already complete (score: {completeness:g}%)",
                completeness=completeness,
            )

        if prospect.last_enrichment_at is not None:
            days = _days_between(prospect.last_enrichment_at, now)
            if days < policy.refresh_after_days:
                return self._ineligible(
                    prospect,
                    now,
                    EligibilityReason.RECENTLY_ENRICHED,
                    f"Recently enriched {days} days ago",
                    completeness=completeness,
                    next_eligible_at=prospect.last_enrichment_at + timedelta(days=policy.refresh_after_days),
                )

        if (
            prospect.enrichment_status is EnrichmentStatus.FAILED
            and prospect.enrichment_attempts >= policy.max_attempts
        ):
            return self._ineligible(
                prospect,
                now,
                EligibilityReason.MAX_ATTEMPTS_REACHED,
                f"Maximum attempts reached ({prospect.enrichment_attempts}/{policy.max_attempts})",
                completeness=completeness,
            )

        return EligibilityDecision(
            is_eligible=True,
            reason=self._eligible_reason(prospect, now),
            completeness_score=completeness,
            priority=self._priority(prospect, completeness),
            details=self._eligible_details(prospect, completeness, now),
        )

    def _eligible_reason(self, prospect: ProspectRecord, now: datetime) -> EligibilityReason:
        # Staleness is judged against the gate default, so a shorter per-call
        # refresh window admits prospects as incomplete_data rather than outdated.
        if prospect.last_enrichment_at is None:
            return EligibilityReason.NEVER_ENRICHED
        if prospect.enrichment_status is EnrichmentStatus.FAILED:
            return EligibilityReason.PREVIOUS_FAILURE
        if _days_between(prospect.last_enrichment_at, now) >= self.policy.refresh_after_days:
            return EligibilityReason.OUTDATED_ENRICHMENT
        return EligibilityReason.INCOMPLETE_DATA

    @staticmethod
    def _priority(prospect: ProspectRecord, completeness: float) -> Priority:
        if prospect.last_enrichment_at is None:
            return Priority.HIGH
        if prospect.enrichment_status is EnrichmentStatus.FAILED and prospect.enrichment_attempts < 2:
            return Priority.HIGH
        if completeness < 30:
            return Priority.HIGH
        if completeness < 60:
            return Priority.MEDIUM
        return Priority.LOW

    def _eligible_details(self, prospect: ProspectRecord, completeness: float, now: datetime) -> Dict[str, Any]:
        details: Dict[str, Any] = {
            "completeness_score": completeness,
            "missing_data": self.missing_data(prospect),
            "attempts": prospect.enrichment_attempts,
        }
        if prospect.last_enrichment_at is not None:
            details["days_since_last_enrichment"] = _days_between(prospect.last_enrichment_at, now)
        if prospect.enrichment_attempts > 0:
            details["last_status"] = prospect.enrichment_status.value
        return details

    def _ineligible(
        self,
        prospect: ProspectRecord,
        now: datetime,
        reason: EligibilityReason,
        message: str,
        *,
        completeness: Optional[float] = None,
        next_eligible_at: Optional[datetime] = None,
    ) -> EligibilityDecision:
        if completeness is None:
            completeness = self.score(prospect)
        last = prospect.last_enrichment_at
        details = {
            "enrichment_status": prospect.enrichment_status.value,
            "attempts": prospect.enrichment_attempts,
            "last_enrichment": last.isoformat() if last else None,
            "blacklisted": prospect.enrichment_blacklisted_at is not None,
            "missing_data": self.missing_data(prospect),
        }
        if last is not None:
            details["days_since_last_enrichment"] = _days_between(last, now)
        return EligibilityDecision(
            is_eligible=False,
            reason=reason,
            completeness_score=completeness,
            next_eligible_at=next_eligible_at,
            details=details,
            reason_details=(message,),
        )

    # ------------------------------------------------------------------
    # Candidate sets
    # ------------------------------------------------------------------
    def list_eligible(
        self, prospects: Iterable[ProspectRecord], policy: Optional[EligibilityPolicy] = None
    ) -> List[ProspectRecord]:
        """Filter and order a candidate set for batch enrichment."""

        policy = policy or self.policy
        candidates = list(prospects)
        if not policy.force_mode:
            now = self._clock()
            candidates = [prospect for prospect in candidates if self._passes_filters(prospect, policy, now)]
        return sorted(candidates, key=self._ordering_key)

    @staticmethod
    def _passes_filters(prospect: ProspectRecord, policy: EligibilityPolicy, now: datetime) -> bool:
        if prospect.enrichment_status is EnrichmentStatus.PENDING:
            return False
        if prospect.enrichment_blacklisted_at is not None or not prospect.auto_enrich_enabled:
            return False
        if prospect.data_completeness_score >= policy.min_completeness_score:
            return False
        if prospect.last_enrichment_at is None:
            return True
        if _days_between(prospect.last_enrichment_at, now) >= policy.refresh_after_days:
            return True
        return (
            prospect.enrichment_status is EnrichmentStatus.FAILED
            and prospect.enrichment_attempts < policy.max_attempts
        )

    @staticmethod
    def _ordering_key(prospect: ProspectRecord):
        if prospect.last_enrichment_at is None:
            bucket = 1
        elif prospect.enrichment_status is EnrichmentStatus.FAILED:
            bucket = 2
        else:
            bucket = 3
        created = prospect.created_at.timestamp() if prospect.created_at else float("-inf")
        return (bucket, prospect.data_completeness_score, prospect.enrichment_attempts, -created)

    def stats(self, prospects: Iterable[ProspectRecord], user_id: Optional[int] = None) -> Dict[str, Any]:
        """Summarise eligibility and enrichment coverage for a set of prospects."""

        population = [p for p in prospects if user_id is None or p.user_id == user_id]
        now = self._clock()
        total = len(population)
        by_status: Dict[str, int] = {}
        for prospect in population:
            by_status[prospect.enrichment_status.value] = by_status.get(prospect.enrichment_status.value, 0) + 1
        complete = sum(1 for p in population if p.data_completeness_score >= self.policy.min_completeness_score)
        recent = sum(
            1
            for p in population
            if p.last_enrichment_at is not None
            and _days_between(p.last_enrichment_at, now) < self.policy.refresh_after_days
        )
        never = by_status.get(EnrichmentStatus.NEVER.value, 0)
        stats = {
            "total_prospects": total,
            "eligible_for_enrichment": len(self.list_eligible(population)),
            "complete_data": complete,
            "recently_enriched": recent,
            "never_enriched": never,
            "enrichment_pending": by_status.get(EnrichmentStatus.PENDING.value, 0),
            "enrichment_failed": by_status.get(EnrichmentStatus.FAILED.value, 0),
            "blacklisted": sum(1 for p in population if p.enrichment_blacklisted_at is not None),
            "completion_rate": round(complete / total * 100, 2) if total else 0,
            "enrichment_coverage": round((total - never) / total * 100, 2) if total else 0,
        }
        LOGGER.debug("Eligibility stats computed for %s prospects", total)
        return stats


__all__ = ["Clock", "EligibilityGate", "EligibilityPolicy", "utcnow"]
