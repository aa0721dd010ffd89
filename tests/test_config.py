from __future__ import annotations

import json

import pytest

from prospect_enricher.config import (
    ConfigurationError,
    eligibility_policy_from,
    load_configuration,
    orchestrator_config_from,
)
from prospect_enricher.factory import build_backend, build_backends
from prospect_enricher.rate_limit import RateLimitedBackend

STATIC = "prospect_enricher.backends.sample.StaticContactBackend"

YAML_CONFIG = """
orchestrator:
  concurrent: true
  max_workers: 4
  timeout_seconds: 20
  max_contacts: 5
eligibility:
  refresh_after_days: 14
  max_attempts: 2
backends:
  - name: DuckDuckGo
    class: prospect_enricher.backends.duckduckgo.DuckDuckGoSearchBackend
    kind: search
    rate_limit_per_minute: 30
  - name: Static
    class: prospect_enricher.backends.sample.StaticContactBackend
    kind: scraping
    timeout_seconds: 3
  - name: Disabled
    class: prospect_enricher.backends.sample.StaticContactBackend
    enabled: false
"""


def test_yaml_configuration_builds_settings_and_backends(tmp_path) -> None:
    path = tmp_path / "enrichment.yaml"
    path.write_text(YAML_CONFIG, encoding="utf-8")

    config = load_configuration(path)
    orchestrator_config = orchestrator_config_from(config)
    policy = eligibility_policy_from(config)
    backends = build_backends(config)

    assert orchestrator_config.concurrent is True
    assert orchestrator_config.max_workers == 4
    assert orchestrator_config.timeout_seconds == 20.0
    assert orchestrator_config.max_contacts == 5
    assert orchestrator_config.enabled_backends == {"DuckDuckGo": True, "Static": True, "Disabled": False}
    assert policy.refresh_after_days == 14
    assert policy.max_attempts == 2
    assert policy.min_completeness_score == 80.0
    assert backends.names() == ["DuckDuckGo", "Static"]
    assert len(backends) == 2
    assert backends.scraping[0].timeout_seconds == 3.0
    assert backends.search[0].kind == "search"


def test_empty_yaml_file_is_an_empty_configuration(tmp_path) -> None:
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")

    assert load_configuration(path) == {}
    assert len(build_backends({})) == 0


@pytest.mark.parametrize(
    "filename, content, message",
    [
        ("config.toml", "x = 1", "Unsupported configuration format"),
        ("config.json", "{not json", "could not be parsed"),
        ("config.json", "[1, 2]", "mapping at the top level"),
    ],
)
def test_invalid_configuration_files(tmp_path, filename, content, message) -> None:
    path = tmp_path / filename
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError) as excinfo:
        load_configuration(path)

    assert message in str(excinfo.value)


def test_missing_configuration_file(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_configuration(tmp_path / "missing.json")


def test_unknown_backend_kind_is_rejected() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        build_backends({"backends": [{"name": "X", "class": STATIC, "kind": "magic"}]})

    assert "unknown kind" in str(excinfo.value)


def test_invalid_settings_raise_configuration_errors() -> None:
    with pytest.raises(ConfigurationError):
        orchestrator_config_from({"orchestrator": {"max_workers": "many"}})
    with pytest.raises(ConfigurationError):
        eligibility_policy_from({"eligibility": {"max_attempts": "often"}})
    with pytest.raises(ConfigurationError):
        orchestrator_config_from({"orchestrator": ["not", "a", "mapping"]})


def test_build_backend_wraps_instance_with_options(tmp_path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "backends": [
                    {
                        "name": "Static",
                        "class": STATIC,
                        "options": {"contacts": [{"type": "email", "value": "jean@example.fr"}]},
                        "delay_seconds": 0,
                    }
                ]
            }
        ),
        encoding="utf-8",
    )

    backend = build_backends(load_configuration(config_path)).search[0]

    assert isinstance(backend, RateLimitedBackend)
    assert backend.name == "Static"
    assert backend.wrapped.name == "static"


@pytest.mark.parametrize(
    "backend_cfg, message",
    [
        ({"name": "NoClass"}, "missing required 'class'"),
        ({"class": "NotAPath"}, "Invalid backend class path"),
        ({"class": "prospect_enricher.missing_module.Backend"}, "could not be imported"),
        ({"class": "prospect_enricher.backends.sample.Missing"}, "does not define"),
        ({"class": STATIC, "options": {"unexpected": True}}, "Invalid options"),
    ],
)
def test_build_backend_errors(backend_cfg, message) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        build_backend(backend_cfg)

    assert message in str(excinfo.value)
