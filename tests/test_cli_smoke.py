"""Smoke tests for the CLI entry point."""
from __future__ import annotations

import json

import pytest

from prospect_enricher import __main__
from prospect_enricher.cli import main


def _write_inputs(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "orchestrator": {"max_contacts": 5},
                "backends": [
                    {
                        "name": "Static",
                        "class": "prospect_enricher.backends.sample.StaticContactBackend",
                        "kind": "search",
                        "enabled": True,
                        "options": {
                            "contacts": [
                                {"type": "email", "value": "jean.dupont@example-corp.fr", "score": 85}
                            ]
                        },
                    }
                ],
            }
        ),
        encoding="utf-8",
    )

    input_path = tmp_path / "input.csv"
    input_path.write_text(
        "id,name,company,city\n1,Jean Dupont,Example Corp,Lyon\n",
        encoding="utf-8",
    )
    return config_path, input_path


def test_cli_smoke_runs_with_static_backend(tmp_path) -> None:
    config_path, input_path = _write_inputs(tmp_path)
    output_path = tmp_path / "results.csv"

    exit_code = main([str(input_path), str(output_path), "--config", str(config_path), "--mode", "concurrent"])

    assert exit_code == 0
    assert output_path.exists()
    contents = output_path.read_text(encoding="utf-8")
    assert "jean.dupont@example-corp.fr" in contents
    assert "enriched" in contents


def test_cli_dry_run_does_not_enrich(tmp_path) -> None:
    config_path, input_path = _write_inputs(tmp_path)
    output_path = tmp_path / "results.csv"

    exit_code = main([str(input_path), str(output_path), "--config", str(config_path), "--dry-run"])

    assert exit_code == 0
    contents = output_path.read_text(encoding="utf-8")
    assert "jean.dupont@example-corp.fr" not in contents
    assert "never" in contents


def test_cli_reports_invalid_configuration(tmp_path) -> None:
    _, input_path = _write_inputs(tmp_path)

    exit_code = main([str(input_path), str(tmp_path / "out.csv"), "--config", str(tmp_path / "missing.yaml")])

    assert exit_code == 1


def test_module_entry_point_delegates_to_cli(tmp_path) -> None:
    """The package entry point should behave like the CLI."""

    config_path, input_path = _write_inputs(tmp_path)
    output_path = tmp_path / "results.xlsx"

    exit_code = __main__.main([str(input_path), str(output_path), "--config", str(config_path)])

    assert exit_code == 0
    assert output_path.exists()


def test_module_entry_point_without_arguments_shows_help(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = __main__.main([])

    captured = capsys.readouterr()
    assert "python -m prospect_enricher" in captured.out
    assert exit_code == 2
