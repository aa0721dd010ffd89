"""Example backend implementation that serves contacts from local configuration."""
from __future__ import annotations

import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models import ContactCandidate, EnrichmentOptions, EnrichmentResult
from .base import elapsed_ms
from .extraction import summarise_contacts


class StaticContactBackend:
    """Return a fixed set of contacts, optionally per prospect name.

    Each contact entry is a mapping with ``type``, ``value`` and optionally
    ``score``, ``confidence`` and ``context``.
    """

    name = "static"

    def __init__(
        self,
        contacts: Optional[Sequence[Mapping[str, Any]]] = None,
        *,
        by_prospect: Optional[Mapping[str, Sequence[Mapping[str, Any]]]] = None,
        name: Optional[str] = None,
    ) -> None:
        self._contacts = list(contacts or [])
        self._by_prospect = {key.lower(): list(value) for key, value in (by_prospect or {}).items()}
        if name:
            self.name = name

    def _entries_for(self, prospect_name: str) -> List[Mapping[str, Any]]:
        return self._by_prospect.get((prospect_name or "").lower(), self._contacts)

    def _build(self, prospect_name: str, company: str, extra_context: Dict[str, Any]) -> EnrichmentResult:
        started = time.perf_counter()
        contacts = [
            ContactCandidate(
                entry["type"],
                str(entry["value"]),
                float(entry.get("score", 70)),
                entry.get("confidence", "medium"),
                {**extra_context, **dict(entry.get("context") or {})},
            )
            for entry in self._entries_for(prospect_name)
        ]
        return EnrichmentResult.succeeded(
            prospect_name,
            company,
            self.name,
            contacts,
            summarise_contacts(contacts, source=self.name),
            metadata={"contacts_found": len(contacts)},
            execution_time_ms=elapsed_ms(started),
        )

    def search(self, name: str, company: str, options: EnrichmentOptions) -> EnrichmentResult:
        return self._build(name, company, {"found_in": "static_configuration"})

    def scrape_urls(
        self, urls: Sequence[str], name: str, company: str, options: EnrichmentOptions
    ) -> EnrichmentResult:
        source_url = urls[0] if urls else None
        return self._build(name, company, {"found_in": "static_configuration", "source_url": source_url})

    def is_configured(self) -> bool:
        return True
