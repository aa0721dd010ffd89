"""Factory helpers for constructing enrichment backends from configuration."""
from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .config import ConfigurationError, iter_enabled_backend_configs
from .rate_limit import DelayPolicy, RateLimitedBackend, RateLimiter


@dataclass
class BackendSet:
    """Configured backends split by the role they play in an enrichment run."""

    search: List[RateLimitedBackend] = field(default_factory=list)
    scraping: List[RateLimitedBackend] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.search) + len(self.scraping)

    def names(self) -> List[str]:
        return [backend.name for backend in self.search + self.scraping]


def _load_class(path: str):
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ConfigurationError(f"Invalid backend class path '{path}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Backend module '{module_name}' could not be imported: {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"Module '{module_name}' does not define '{attr}'") from exc


def build_backend(backend_cfg: Dict[str, Any]) -> RateLimitedBackend:
    class_path = backend_cfg.get("class")
    if not class_path:
        raise ConfigurationError("Backend configuration missing required 'class' field")

    options = backend_cfg.get("options", {}) or {}
    backend_cls = _load_class(class_path)
    try:
        backend_instance = backend_cls(**options)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid options for backend '{class_path}': {exc}") from exc

    delay_seconds = float(backend_cfg.get("delay_seconds", 0) or 0)
    calls_per_minute = backend_cfg.get("rate_limit_per_minute")
    timeout = backend_cfg.get("timeout_seconds")
    rate_limiter = RateLimiter(float(calls_per_minute)) if calls_per_minute else RateLimiter(None)

    return RateLimitedBackend(
        backend_instance,
        display_name=backend_cfg.get("name"),
        kind=backend_cfg.get("kind", "search"),
        timeout_seconds=float(timeout) if timeout else None,
        delay_policy=DelayPolicy(delay_seconds=delay_seconds),
        rate_limiter=rate_limiter,
    )


def build_backends(config: Dict[str, Any]) -> BackendSet:
    """Instantiate the enabled backend classes defined in the configuration file."""

    backends = BackendSet()
    for backend_cfg in iter_enabled_backend_configs(config):
        wrapper = build_backend(backend_cfg)
        if wrapper.kind == "scraping":
            backends.scraping.append(wrapper)
        else:
            backends.search.append(wrapper)
    return backends


__all__ = ["BackendSet", "build_backend", "build_backends"]
