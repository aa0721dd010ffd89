"""Backend contracts and shared HTTP plumbing for search and scraping backends."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence

import requests

from ..models import ContactCandidate, EnrichmentOptions, EnrichmentResult, ValidationOutcome
from .extraction import summarise_contacts

LOGGER = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class SearchBackend(Protocol):
    """Looks a prospect up by name and company."""

    name: str

    def search(self, name: str, company: str, options: EnrichmentOptions) -> EnrichmentResult:  # pragma: no cover
        """Return the contacts discovered for the prospect."""


class ScrapingBackend(Protocol):
    """Extracts contacts from a known list of pages."""

    name: str

    def scrape_urls(
        self, urls: Sequence[str], name: str, company: str, options: EnrichmentOptions
    ) -> EnrichmentResult:  # pragma: no cover
        """Return the contacts found on ``urls``."""


@dataclass
class HttpBackendConfig:
    """Runtime configuration shared by the HTTP based backends."""

    timeout_seconds: float = 15.0
    throttle_seconds: float = 0.0
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "fr-FR,fr;q=0.9,en;q=0.8"


class HttpBackend:
    """Base class owning a :class:`requests.Session` and throttling helpers."""

    name = "http"

    def __init__(
        self,
        config: Optional[HttpBackendConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        **overrides,
    ) -> None:
        if config is None:
            config = HttpBackendConfig(**overrides)
        self.config = config
        self._session = session or self._build_session()

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "User-Agent": self.config.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": self.config.accept_language,
            }
        )
        return session

    def _get(self, url: str, **kwargs) -> requests.Response:
        response = self._session.get(url, timeout=self.config.timeout_seconds, **kwargs)
        response.raise_for_status()
        return response

    def _apply_throttle(self) -> None:
        if self.config.throttle_seconds > 0:
            time.sleep(self.config.throttle_seconds)

    def is_configured(self) -> bool:
        return True

    def close(self) -> None:
        self._session.close()

    def _success(
        self,
        name: str,
        company: str,
        contacts: Iterable[ContactCandidate],
        started: float,
        *,
        validation: Optional[ValidationOutcome] = None,
        metadata: Optional[dict] = None,
    ) -> EnrichmentResult:
        contacts = list(contacts)
        if validation is None:
            validation = summarise_contacts(contacts, source=self.name)
        return EnrichmentResult.succeeded(
            name,
            company,
            self.name,
            contacts,
            validation,
            metadata=metadata,
            execution_time_ms=elapsed_ms(started),
        )

    def _failure(self, name: str, company: str, message: str, started: float) -> EnrichmentResult:
        return EnrichmentResult.failed(name, company, self.name, message, execution_time_ms=elapsed_ms(started))


def elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 3)


__all__ = [
    "DEFAULT_USER_AGENT",
    "elapsed_ms",
    "HttpBackend",
    "HttpBackendConfig",
    "ScrapingBackend",
    "SearchBackend",
]
