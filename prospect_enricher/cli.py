"""Command line interface for running the prospect enrichment batch."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import ConfigurationError, eligibility_policy_from, load_configuration, orchestrator_config_from
from .eligibility import EligibilityGate
from .factory import build_backends
from .io import export_results, load_prospects
from .models import EnrichmentOptions, TriggeredBy
from .orchestrator import EnrichmentOrchestrator
from .service import ProspectEnrichmentService
from .store import InMemoryProspectStore

LOGGER = logging.getLogger(__name__)


def build_parser(prog: str | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Enrich prospect contact details (emails, phones, websites) from web search and scraping backends",
    )
    parser.add_argument("input", help="Path to the prospect spreadsheet (CSV or XLSX)")
    parser.add_argument("output", help="Path where the enrichment results should be written")
    parser.add_argument(
        "--config",
        required=True,
        help="Path to the enrichment configuration file (YAML or JSON)",
    )
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of prospects to enrich")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report which prospects are eligible, without calling any backend",
    )
    parser.add_argument("--force", action="store_true", help="Ignore eligibility rules and enrich every prospect")
    parser.add_argument("--max-attempts", type=int, default=None, help="Maximum failed attempts before giving up")
    parser.add_argument(
        "--refresh-after-days",
        type=int,
        default=None,
        help="Days before a successfully enriched prospect becomes eligible again",
    )
    parser.add_argument(
        "--min-completeness",
        type=float,
        default=None,
        help="Completeness score (0-100) at which a prospect is considered complete",
    )
    parser.add_argument("--delay", type=float, default=0.0, help="Seconds to wait between two prospects")
    parser.add_argument(
        "--mode",
        choices=["sequential", "concurrent"],
        default=None,
        help="Whether to run backends sequentially or concurrently (defaults to the configuration)",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Maximum number of workers to use in concurrent mode",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        config = load_configuration(args.config)
        backends = build_backends(config)
        orchestrator_config = orchestrator_config_from(config)
        policy = eligibility_policy_from(config)
    except ConfigurationError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 1

    if not backends:
        LOGGER.warning("No backends are enabled - nothing to do")
        return 0

    changes = {}
    if args.mode is not None:
        changes["concurrent"] = args.mode == "concurrent"
    if args.max_workers is not None:
        changes["max_workers"] = args.max_workers
    orchestrator_config = orchestrator_config.updated(**changes)
    policy = policy.updated(
        max_attempts=args.max_attempts,
        refresh_after_days=args.refresh_after_days,
        min_completeness_score=args.min_completeness,
        force_mode=True if args.force else None,
    )

    prospects = load_prospects(args.input)
    store = InMemoryProspectStore(prospects)
    orchestrator = EnrichmentOrchestrator(backends.search, backends.scraping, config=orchestrator_config)
    service = ProspectEnrichmentService(store, orchestrator, gate=EligibilityGate(policy), policy=policy)
    service.refresh_completeness_scores()

    if args.dry_run:
        eligible = service.eligible_prospects(policy=policy)
        for prospect in eligible[: args.limit] if args.limit is not None else eligible:
            decision = service.eligibility(prospect.id, policy)
            LOGGER.info(
                "Eligible: %s (%s, priority %s, completeness %.0f)",
                prospect.display_name(),
                decision.reason.value,
                decision.priority.value if decision.priority else "-",
                decision.completeness_score,
            )
        export_results(args.output, store.all())
        LOGGER.info("Dry run: %s of %s prospects eligible", len(eligible), len(prospects))
        return 0

    options = EnrichmentOptions(
        max_contacts=orchestrator_config.max_contacts,
        force=args.force,
        triggered_by=TriggeredBy.AUTO,
    )
    summary = service.bulk_enrich(options=options, policy=policy, limit=args.limit, delay_seconds=args.delay)
    reports = {report.prospect_id: report for report in summary.reports}
    export_results(args.output, store.all(), reports)

    LOGGER.info(
        "Processed %s prospects with %s backends: %s enriched, %s failed, %s skipped, %s errors",
        len(prospects),
        len(backends),
        len(summary.processed),
        len(summary.failed),
        len(summary.skipped),
        len(summary.errors),
    )
    LOGGER.info("Enrichment results written to %s", Path(args.output).resolve())
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
