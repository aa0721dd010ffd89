"""Enrichment orchestrator that coordinates search and scraping backends for one prospect."""
from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..merge import deduplicate_candidates, select_best_contacts
from ..models import (
    BackendError,
    BackendOutcome,
    ContactCandidate,
    EnrichmentOptions,
    EnrichmentResult,
)
from ..validation import RuleValidationEngine, ValidationContext

LOGGER = logging.getLogger(__name__)

SOURCE_NAME = "web_enrichment_combined"
TEST_PROSPECT = ("Jean Dupont", "Example Corp")


@dataclass(frozen=True)
class OrchestratorConfig:
    """Execution settings for :class:`EnrichmentOrchestrator`."""

    concurrent: bool = False
    max_workers: Optional[int] = None
    timeout_seconds: Optional[float] = None
    max_contacts: int = 10
    enabled_backends: Mapping[str, bool] = field(default_factory=dict)

    def is_enabled(self, backend_name: str, overrides: Optional[Mapping[str, bool]] = None) -> bool:
        if overrides and backend_name in overrides:
            return bool(overrides[backend_name])
        return bool(self.enabled_backends.get(backend_name, True))

    def updated(self, **changes: Any) -> "OrchestratorConfig":
        flags = {key: value for key, value in changes.items() if key not in self.__dataclass_fields__}
        settings = {key: value for key, value in changes.items() if key in self.__dataclass_fields__}
        if flags:
            settings["enabled_backends"] = {**self.enabled_backends, **{k: bool(v) for k, v in flags.items()}}
        return replace(self, **settings)


@dataclass
class _BackendCall:
    name: str
    kind: str
    timeout: Optional[float]
    invoke: Callable[[], EnrichmentResult]
    configured: bool = True


class EnrichmentOrchestrator:
    """Runs every enabled backend for a prospect, then deduplicates, validates and selects contacts.

    :meth:`enrich` never raises. Backend failures and timeouts are recorded
    per backend and the remaining backends still contribute.
    """

    def __init__(
        self,
        search_backends: Sequence[Any] = (),
        scraping_backends: Sequence[Any] = (),
        *,
        engine: Optional[RuleValidationEngine] = None,
        config: Optional[OrchestratorConfig] = None,
    ) -> None:
        self._search_backends = list(search_backends)
        self._scraping_backends = list(scraping_backends)
        self.engine = engine or RuleValidationEngine()
        self.config = config or OrchestratorConfig()

    @property
    def search_backends(self) -> List[Any]:
        return list(self._search_backends)

    @property
    def scraping_backends(self) -> List[Any]:
        return list(self._scraping_backends)

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------
    def enrich(
        self,
        prospect_name: str,
        prospect_company: str,
        options: Optional[EnrichmentOptions] = None,
    ) -> EnrichmentResult:
        options = options or EnrichmentOptions(max_contacts=self.config.max_contacts)
        started = time.perf_counter()
        try:
            calls = self._plan(prospect_name, prospect_company, options)
            outcomes = self._run(calls)
            return self._combine(prospect_name, prospect_company, options, outcomes, started)
        except Exception as exc:
            LOGGER.exception("Enrichment failed for %s / %s", prospect_name, prospect_company)
            return EnrichmentResult.failed(
                prospect_name,
                prospect_company,
                SOURCE_NAME,
                str(exc),
                execution_time_ms=_elapsed_ms(started),
            )

    def _plan(self, name: str, company: str, options: EnrichmentOptions) -> List[_BackendCall]:
        calls: List[_BackendCall] = []
        overrides = options.enabled_backends
        for backend in self._search_backends:
            if not self.config.is_enabled(backend.name, overrides):
                LOGGER.debug("Search backend %s disabled", backend.name)
                continue
            calls.append(self._call(backend, "search", name, company, options))
        if options.urls_to_scrape:
            for backend in self._scraping_backends:
                if not self.config.is_enabled(backend.name, overrides):
                    LOGGER.debug("Scraping backend %s disabled", backend.name)
                    continue
                calls.append(self._call(backend, "scraping", name, company, options))
        return calls

    def _call(self, backend: Any, kind: str, name: str, company: str, options: EnrichmentOptions) -> _BackendCall:
        urls = list(options.urls_to_scrape)

        def invoke() -> EnrichmentResult:
            if kind == "search":
                return backend.search(name, company, options)
            return backend.scrape_urls(urls, name, company, options)

        return _BackendCall(backend.name, kind, self._timeout_for(backend), invoke, _is_configured(backend))

    def _timeout_for(self, backend: Any) -> Optional[float]:
        timeout = getattr(backend, "timeout_seconds", None)
        return timeout if timeout else self.config.timeout_seconds

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def _run(self, calls: List[_BackendCall]) -> List[BackendOutcome]:
        if not calls:
            return []
        if self.config.concurrent and len(calls) > 1:
            return self._run_concurrently(calls)
        return [self._run_one(call) for call in calls]

    def _run_one(self, call: _BackendCall) -> BackendOutcome:
        if not call.timeout:
            return self._invoke(call)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"backend-{call.name}")
        try:
            future = executor.submit(self._invoke, call)
            return self._await(call, future, time.monotonic() + call.timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _run_concurrently(self, calls: List[_BackendCall]) -> List[BackendOutcome]:
        executor = ThreadPoolExecutor(max_workers=self.config.max_workers or len(calls))
        try:
            submitted: List[Tuple[_BackendCall, Future, Optional[float]]] = []
            for call in calls:
                deadline = time.monotonic() + call.timeout if call.timeout else None
                submitted.append((call, executor.submit(self._invoke, call), deadline))
            return [self._await(call, future, deadline) for call, future, deadline in submitted]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _await(self, call: _BackendCall, future: Future, deadline: Optional[float]) -> BackendOutcome:
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            return future.result(timeout=remaining)
        except FutureTimeoutError:
            future.cancel()
            LOGGER.warning("Backend %s timed out after %ss", call.name, call.timeout)
            return BackendOutcome(
                name=call.name,
                kind=call.kind,
                error=BackendError(call.name, f"Timed out after {call.timeout}s", kind="timeout"),
                elapsed_ms=(call.timeout or 0.0) * 1000.0,
            )

    @staticmethod
    def _invoke(call: _BackendCall) -> BackendOutcome:
        if not call.configured:
            LOGGER.warning("Backend %s is not configured, skipping", call.name)
            return BackendOutcome(
                name=call.name,
                kind=call.kind,
                error=BackendError(call.name, "Backend is not configured", kind="not_configured"),
            )
        started = time.perf_counter()
        try:
            LOGGER.debug("Running %s backend %s", call.kind, call.name)
            result = call.invoke()
            if not isinstance(result, EnrichmentResult):
                raise TypeError(f"Backend returned {type(result).__name__} instead of EnrichmentResult")
        except Exception as exc:
            LOGGER.exception("Backend %s failed", call.name)
            return BackendOutcome(
                name=call.name,
                kind=call.kind,
                error=BackendError(call.name, str(exc)),
                elapsed_ms=_elapsed_ms(started),
            )
        if not result.success:
            LOGGER.warning("Backend %s reported failure: %s", call.name, result.error_message)
        return BackendOutcome(name=call.name, kind=call.kind, result=result, elapsed_ms=_elapsed_ms(started))

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------
    def _combine(
        self,
        name: str,
        company: str,
        options: EnrichmentOptions,
        outcomes: List[BackendOutcome],
        started: float,
    ) -> EnrichmentResult:
        raw: List[ContactCandidate] = [
            contact.with_context(enrichment_service=outcome.name)
            for outcome in outcomes
            if outcome.ok
            for contact in outcome.contacts
        ]
        unique = deduplicate_candidates(raw)
        context = ValidationContext(name or "", company or "")
        validation = self.engine.validate(unique, context)
        assessments = validation.metadata.get("assessments", [])
        annotated = [
            candidate.with_details(rule_assessment=assessment) for candidate, assessment in zip(unique, assessments)
        ]
        selected = select_best_contacts(annotated, options.max_contacts)

        execution_time = _elapsed_ms(started)
        metadata = {
            "services_results": {outcome.name: outcome.summary() for outcome in outcomes},
            "global_stats": {
                "total_services_attempted": len(outcomes),
                "successful_services": sum(1 for outcome in outcomes if outcome.ok),
                "total_raw_contacts": sum(len(outcome.contacts) for outcome in outcomes if outcome.ok),
                "services_enabled": [outcome.name for outcome in outcomes],
            },
            "execution_time_ms": execution_time,
            "total_services_used": len(outcomes),
            "contacts_before_deduplication": len(raw),
            "contacts_after_deduplication": len(unique),
            "contacts_selected": len(selected),
        }
        LOGGER.info(
            "Enriched %s / %s: %s raw, %s unique, %s selected, score %.1f",
            name,
            company,
            len(raw),
            len(unique),
            len(selected),
            validation.overall_score,
        )
        return EnrichmentResult.succeeded(
            name,
            company,
            SOURCE_NAME,
            selected,
            validation,
            metadata=metadata,
            execution_time_ms=execution_time,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def available_services(self) -> Dict[str, Dict[str, Any]]:
        services: Dict[str, Dict[str, Any]] = {}
        for kind, backends in (("search", self._search_backends), ("scraping", self._scraping_backends)):
            for backend in backends:
                services[backend.name] = {
                    "kind": kind,
                    "enabled": self.config.is_enabled(backend.name),
                    "configured": _is_configured(backend),
                }
        services[self.engine.name] = {
            "kind": "validation",
            "enabled": True,
            "configured": self.engine.is_configured(),
        }
        return services

    def update_configuration(self, **changes: Any) -> OrchestratorConfig:
        """Apply setting changes and backend enable flags (``duckduckgo=False``)."""

        self.config = self.config.updated(**changes)
        LOGGER.info("Orchestrator configuration updated: %s", changes)
        return self.config

    def test_services(self) -> Dict[str, Dict[str, Any]]:
        """Probe each backend once with a fixed test prospect."""

        name, company = TEST_PROSPECT
        options = EnrichmentOptions(max_contacts=3, urls_to_scrape=("https://example.com",))
        report: Dict[str, Dict[str, Any]] = {}
        for kind, backends in (("search", self._search_backends), ("scraping", self._scraping_backends)):
            for backend in backends:
                if not self.config.is_enabled(backend.name):
                    report[backend.name] = {"status": "skipped", "reason": "disabled"}
                    continue
                outcome = self._run_one(self._call(backend, kind, name, company, options))
                report[backend.name] = {"status": "success" if outcome.ok else "error", **outcome.summary()}
        report[self.engine.name] = {"status": "success" if self.engine.is_configured() else "error"}
        return report

    def is_configured(self) -> bool:
        backends = self._search_backends + self._scraping_backends
        return any(self.config.is_enabled(b.name) and _is_configured(b) for b in backends)


def _is_configured(backend: Any) -> bool:
    checker = getattr(backend, "is_configured", None)
    return bool(checker()) if callable(checker) else True


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 3)


__all__ = ["EnrichmentOrchestrator", "OrchestratorConfig", "SOURCE_NAME"]
