"""Search and scraping backends that discover contact candidates."""

from .base import HttpBackend, HttpBackendConfig, ScrapingBackend, SearchBackend  # noqa: F401
from .duckduckgo import DuckDuckGoSearchBackend  # noqa: F401
from .extraction import ContactExtractor, SearchHit  # noqa: F401
from .sample import StaticContactBackend  # noqa: F401
from .universal_scraper import UniversalScraperBackend  # noqa: F401

__all__ = [
    "ContactExtractor",
    "DuckDuckGoSearchBackend",
    "HttpBackend",
    "HttpBackendConfig",
    "ScrapingBackend",
    "SearchBackend",
    "SearchHit",
    "StaticContactBackend",
    "UniversalScraperBackend",
]
