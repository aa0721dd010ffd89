"""Scraping backend extracting contacts from arbitrary web pages."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Sequence

import requests

from ..merge import deduplicate_candidates
from ..models import ContactCandidate, EnrichmentOptions, EnrichmentResult, ValidationOutcome
from .base import HttpBackend
from .extraction import ContactExtractor

LOGGER = logging.getLogger(__name__)


class UniversalScraperBackend(HttpBackend):
    """Fetch each URL with ``requests`` and run the page extractor over it.

    A failing URL is recorded in the result metadata and never fails the
    whole call.
    """

    name = "universal_scraper"

    def scrape_urls(
        self, urls: Sequence[str], name: str, company: str, options: EnrichmentOptions
    ) -> EnrichmentResult:
        started = time.perf_counter()
        extractor = ContactExtractor(name, company)
        found: List[ContactCandidate] = []
        url_metadata: Dict[str, Any] = {}
        for index, url in enumerate(urls):
            key = f"url_{index}"
            try:
                response = self._get(url)
                page_contacts = extractor.contacts_from_page(response.text, url, url_index=index)
            except requests.RequestException as exc:
                LOGGER.warning("Scraping %s failed: %s", url, exc)
                url_metadata[key] = {"url": url, "error": str(exc), "contacts_found": 0}
                continue
            found.extend(page_contacts)
            url_metadata[key] = {"url": url, "contacts_found": len(page_contacts), "page_size": len(response.text)}
            if index < len(urls) - 1:
                self._apply_throttle()

        unique = deduplicate_candidates(found)
        metadata = dict(url_metadata)
        metadata.update(
            {
                "total_urls": len(urls),
                "successful_scrapes": sum(1 for entry in url_metadata.values() if "error" not in entry),
                "unique_contacts": len(unique),
            }
        )
        return self._success(name, company, unique, started, validation=self.summarise(unique), metadata=metadata)

    @staticmethod
    def summarise(contacts: Sequence[ContactCandidate]) -> ValidationOutcome:
        """Quality, type coverage and depth of a scrape."""

        if not contacts:
            return ValidationOutcome.invalid(0.0, ["No contacts found during scraping"])
        credible = [contact for contact in contacts if contact.validation_score >= 50]
        if not credible:
            return ValidationOutcome.invalid(0.0, ["No valid contacts found during scraping"])
        types = {contact.type.value for contact in contacts}
        average = sum(contact.validation_score for contact in credible) / len(credible)
        rule_scores = {
            "contact_quality": average,
            "contact_diversity": float(
                min(100, 30 * ("email" in types) + 30 * ("phone" in types) + 20 * ("website" in types))
            ),
            "scraping_depth": float(min(100, len(credible) * 15)),
        }
        overall = average * 0.6 + rule_scores["contact_diversity"] * 0.2 + rule_scores["scraping_depth"] * 0.2
        return ValidationOutcome.create(
            overall,
            rule_scores,
            validation_messages=[
                f"Found {len(credible)} valid contacts through scraping",
                f"Average quality score: {average:.2f}",
            ],
        )

    def service_info(self) -> dict:
        return {
            "name": "Universal Web Scraper",
            "type": "web_scraper",
            "available": self.is_configured(),
            "description": "Extract contacts from any public web page",
            "cost": "Free",
        }


__all__ = ["UniversalScraperBackend"]
