"""Configuration helpers for the enrichment orchestrator, eligibility policy and backends."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

import yaml

from .eligibility import EligibilityPolicy
from .orchestrator.service import OrchestratorConfig

LOGGER = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}
_BACKEND_KINDS = {"search", "scraping"}


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Configuration file '{file_path}' could not be parsed: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping at the top level")
    return data


def iter_enabled_backend_configs(config: Mapping[str, Any]) -> Iterable[Dict[str, Any]]:
    backends = config.get("backends", []) or []
    if not isinstance(backends, list):
        raise ConfigurationError("'backends' must be a list of backend definitions")
    for backend in backends:
        kind = backend.get("kind", "search")
        if kind not in _BACKEND_KINDS:
            raise ConfigurationError(
                f"Backend '{backend.get('name')}' has unknown kind '{kind}'. Expected one of {sorted(_BACKEND_KINDS)}"
            )
        if backend.get("enabled", True):
            yield backend
        else:
            LOGGER.debug("Skipping disabled backend %s", backend.get("name"))


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"'{name}' section must be a mapping")
    return section


def orchestrator_config_from(config: Mapping[str, Any]) -> OrchestratorConfig:
    """Build :class:`OrchestratorConfig` from the ``orchestrator`` section and the backend enable flags."""

    section = _section(config, "orchestrator")
    enabled = {
        str(backend.get("name")): bool(backend.get("enabled", True))
        for backend in config.get("backends", []) or []
        if backend.get("name")
    }
    try:
        timeout = section.get("timeout_seconds")
        max_workers = section.get("max_workers")
        return OrchestratorConfig(
            concurrent=bool(section.get("concurrent", False)),
            max_workers=int(max_workers) if max_workers else None,
            timeout_seconds=float(timeout) if timeout else None,
            max_contacts=int(section.get("max_contacts", 10)),
            enabled_backends=enabled,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid orchestrator settings: {exc}") from exc


def eligibility_policy_from(config: Mapping[str, Any]) -> EligibilityPolicy:
    section = _section(config, "eligibility")
    defaults = EligibilityPolicy()
    try:
        return EligibilityPolicy(
            refresh_after_days=int(section.get("refresh_after_days", defaults.refresh_after_days)),
            min_completeness_score=float(section.get("min_completeness_score", defaults.min_completeness_score)),
            max_attempts=int(section.get("max_attempts", defaults.max_attempts)),
            force_mode=bool(section.get("force_mode", defaults.force_mode)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid eligibility settings: {exc}") from exc


__all__ = [
    "ConfigurationError",
    "eligibility_policy_from",
    "iter_enabled_backend_configs",
    "load_configuration",
    "orchestrator_config_from",
]
