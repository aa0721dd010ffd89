"""Utility helpers for merging enrichment results from multiple backends into prospect records."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .models import ContactCandidate, ContactType, EnrichmentResult, EnrichmentStatus, ProspectRecord

MAX_PER_TYPE = 3
HIGH_SCORE_OVERRIDE = 70.0

_GROUP_KEYS = {
    ContactType.EMAIL: "emails",
    ContactType.PHONE: "phones",
    ContactType.WEBSITE: "websites",
}
_CONTACT_FIELDS = {
    ContactType.EMAIL: "email",
    ContactType.PHONE: "phone",
    ContactType.WEBSITE: "website",
}


def deduplicate_candidates(candidates: Iterable[ContactCandidate]) -> List[ContactCandidate]:
    """Collapse candidates sharing ``type:value`` (case-insensitive), keeping the best scored one.

    The first occurrence fixes the position in the output. Equal scores are
    settled on the smallest value, then the smallest backend name, so the
    retained candidate does not depend on input order.
    """

    retained: Dict[str, ContactCandidate] = {}
    ordered_keys: List[str] = []
    for candidate in candidates:
        key = candidate.dedup_key
        current = retained.get(key)
        if current is None:
            retained[key] = candidate
            ordered_keys.append(key)
        elif _outranks(candidate, current):
            retained[key] = candidate
    return [retained[key] for key in ordered_keys]


def _outranks(candidate: ContactCandidate, current: ContactCandidate) -> bool:
    if candidate.validation_score != current.validation_score:
        return candidate.validation_score > current.validation_score
    return _tie_key(candidate) < _tie_key(current)


def _tie_key(candidate: ContactCandidate):
    return candidate.value, str(candidate.context.get("enrichment_service") or "")


def select_best_contacts(candidates: Iterable[ContactCandidate], max_contacts: int = 10) -> List[ContactCandidate]:
    """Pick up to ``max_contacts`` candidates, favouring type diversity.

    Each type is capped at three selections; candidates scoring above 70 are
    still admitted past the cap while capacity remains.
    """

    ordered = sorted(candidates, key=lambda candidate: candidate.validation_score, reverse=True)
    selected: List[ContactCandidate] = []
    per_type: Dict[ContactType, int] = {}
    for candidate in ordered:
        if len(selected) >= max_contacts:
            break
        taken = per_type.get(candidate.type, 0)
        if taken < MAX_PER_TYPE:
            selected.append(candidate)
            per_type[candidate.type] = taken + 1
        elif candidate.validation_score > HIGH_SCORE_OVERRIDE:
            selected.append(candidate)
    return selected


def _is_social_profile(candidate: ContactCandidate) -> bool:
    return bool(candidate.context.get("platform"))


def group_contacts(candidates: Iterable[ContactCandidate]) -> Dict[str, List[Dict[str, Any]]]:
    """Group candidates by type in the shape stored in ``enrichment_data``."""

    grouped: Dict[str, List[Dict[str, Any]]] = {"emails": [], "phones": [], "websites": [], "social_media": []}
    for candidate in candidates:
        entry: Dict[str, Any] = {
            "value": candidate.value,
            "confidence": candidate.confidence_level.value,
            "score": candidate.validation_score,
            "source": candidate.context.get("source_url") or "web_enrichment",
            "found_via": candidate.context.get("enrichment_service") or "unknown",
        }
        if candidate.type is ContactType.WEBSITE and _is_social_profile(candidate):
            entry["platform"] = candidate.context["platform"]
            grouped["social_media"].append(entry)
        else:
            grouped[_GROUP_KEYS[candidate.type]].append(entry)
    return grouped


def _rejected_by_engine(candidate: ContactCandidate) -> bool:
    assessment = candidate.validation_details.get("rule_assessment")
    return isinstance(assessment, Mapping) and assessment.get("is_valid") is False


def best_per_type(candidates: Iterable[ContactCandidate]) -> Dict[ContactType, ContactCandidate]:
    """Best candidate of each type that may fill a contact field.

    Candidates the rule engine rejected and social profiles are never used.
    """

    best: Dict[ContactType, ContactCandidate] = {}
    for candidate in candidates:
        if candidate.type is ContactType.WEBSITE and _is_social_profile(candidate):
            continue
        if _rejected_by_engine(candidate):
            continue
        current = best.get(candidate.type)
        if current is None or candidate.validation_score > current.validation_score:
            best[candidate.type] = candidate
    return best


def merge_contact_info(existing: Mapping[str, Optional[str]], result: EnrichmentResult) -> Dict[str, Optional[str]]:
    """Fill empty contact fields from the result without touching populated ones."""

    merged: Dict[str, Optional[str]] = dict(existing or {})
    if not result.has_valid_contacts():
        return merged
    for contact_type, candidate in best_per_type(result.contacts).items():
        field_name = _CONTACT_FIELDS[contact_type]
        if not merged.get(field_name):
            merged[field_name] = candidate.value
    return merged


def append_enrichment_data(existing: Mapping[str, Any], candidates: Iterable[ContactCandidate]) -> Dict[str, Any]:
    data: Dict[str, Any] = {key: list(value) if isinstance(value, list) else value for key, value in (existing or {}).items()}
    for group, entries in group_contacts(candidates).items():
        bucket = data.setdefault(group, [])
        if not isinstance(bucket, list):
            bucket = data[group] = []
        known = {str(item.get("value", "")).lower() for item in bucket if isinstance(item, dict)}
        for entry in entries:
            if entry["value"].lower() not in known:
                bucket.append(entry)
                known.add(entry["value"].lower())
    return data


def apply_enrichment(
    record: ProspectRecord,
    result: EnrichmentResult,
    *,
    scorer: Callable[[ProspectRecord], float],
    now: datetime,
) -> ProspectRecord:
    """Return ``record`` updated with the outcome of an enrichment run."""

    succeeded = result.has_valid_contacts()
    changes: Dict[str, Any] = {
        "last_enrichment_at": now,
        "enrichment_status": EnrichmentStatus.COMPLETED if succeeded else EnrichmentStatus.FAILED,
        "enrichment_score": result.validation.overall_score,
    }
    if succeeded:
        changes["contact_info"] = merge_contact_info(record.contact_info, result)
    else:
        changes["enrichment_attempts"] = record.enrichment_attempts + 1
    if result.contacts:
        changes["enrichment_data"] = append_enrichment_data(record.enrichment_data, result.contacts)

    updated = record.updated(**changes)
    return updated.updated(data_completeness_score=scorer(updated))


__all__ = [
    "append_enrichment_data",
    "apply_enrichment",
    "best_per_type",
    "deduplicate_candidates",
    "group_contacts",
    "merge_contact_info",
    "select_best_contacts",
]
