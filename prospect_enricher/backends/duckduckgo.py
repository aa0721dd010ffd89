"""Search backend for the DuckDuckGo HTML endpoint."""
from __future__ import annotations

import logging
import time
from typing import List, Optional, Sequence

import requests
from bs4 import BeautifulSoup

from ..models import EnrichmentOptions, EnrichmentResult
from .base import HttpBackend, HttpBackendConfig
from .extraction import ContactExtractor, SearchHit, summarise_contacts

LOGGER = logging.getLogger(__name__)


class DuckDuckGoSearchBackend(HttpBackend):
    """Query ``html.duckduckgo.com`` and pull emails out of the result snippets."""

    name = "duckduckgo"
    BASE_URL = "https://html.duckduckgo.com"

    def __init__(
        self,
        config: Optional[HttpBackendConfig] = None,
        *,
        base_url: Optional[str] = None,
        region: str = "fr-fr",
        site: Optional[str] = None,
        session: Optional[requests.Session] = None,
        **overrides,
    ) -> None:
        super().__init__(config, session=session, **overrides)
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.region = region
        self.site = site

    def build_query(self, name: str, company: str, options: EnrichmentOptions) -> str:
        parts: List[str] = []
        if name and name.strip():
            parts.append(f'"{name.strip()}"')
        if company and company.strip():
            parts.append(f'"{company.strip()}"')
        parts.append("(" + " OR ".join(options.contact_keywords) + ")")
        if self.site:
            parts.append(f"site:{self.site}")
        return " ".join(parts)

    def search(self, name: str, company: str, options: EnrichmentOptions) -> EnrichmentResult:
        started = time.perf_counter()
        query = self.build_query(name, company, options)
        try:
            self._apply_throttle()
            hits = self.fetch_hits(query)
            if not hits:
                return self._failure(name, company, "No search results found", started)
            contacts = ContactExtractor(name, company).contacts_from_hits(hits)
        except Exception as exc:
            LOGGER.exception("DuckDuckGo search failed for %s / %s", name, company)
            return self._failure(name, company, str(exc), started)

        return self._success(
            name,
            company,
            contacts,
            started,
            validation=summarise_contacts(contacts, valid_from=60.0, source=self.name),
            metadata={"search_query": query, "results_count": len(hits), "contacts_found": len(contacts)},
        )

    def fetch_hits(self, query: str) -> List[SearchHit]:
        try:
            response = self._get(f"{self.base_url}/html/", params={"q": query, "kl": self.region})
        except requests.RequestException as exc:
            LOGGER.warning("DuckDuckGo request failed for query %r: %s", query, exc)
            return []
        return self.parse_results(response.text)

    @staticmethod
    def parse_results(html: str) -> List[SearchHit]:
        soup = BeautifulSoup(html, "html.parser")
        hits: List[SearchHit] = []
        for body in soup.select(".result__body"):
            title = body.select_one(".result__title a")
            snippet = body.select_one(".result__snippet")
            if title is None or snippet is None:
                continue
            hits.append(
                SearchHit(
                    title=title.get_text(" ", strip=True),
                    url=title.get("href", ""),
                    snippet=snippet.get_text(" ", strip=True),
                    text=body.get_text(" ", strip=True),
                    rank=len(hits) + 1,
                )
            )
        return hits

    def service_info(self) -> dict:
        return {
            "name": "DuckDuckGo Search",
            "type": "web_search",
            "available": self.is_configured(),
            "description": "Free web search through the DuckDuckGo HTML endpoint",
            "cost": "Free",
        }

    def is_configured(self) -> bool:
        return bool(self.base_url)


__all__ = ["DuckDuckGoSearchBackend"]
