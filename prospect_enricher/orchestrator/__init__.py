"""Coordination of search and scraping backends for a single prospect."""

from .service import EnrichmentOrchestrator, OrchestratorConfig

__all__ = ["EnrichmentOrchestrator", "OrchestratorConfig"]
