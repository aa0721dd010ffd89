from datetime import datetime, timezone

import pandas as pd
import pytest

from prospect_enricher.io import UnsupportedFileTypeError, export_results, load_prospects, result_row
from prospect_enricher.models import EnrichmentStatus, ProspectRecord
from prospect_enricher.service import EnrichmentReport


@pytest.fixture()
def sample_dataframe():
    return pd.DataFrame(
        [
            {
                "ID": "10",
                "Full Name": "Jean Dupont",
                "Entreprise": "Example Corp",
                "Ville": "Lyon",
                "Email": "",
                "Telephone": "01 23 45 67 89",
                "Enrichment Status": "failed",
                "Attempts": "2",
                "Last Enrichment At": "2026-01-15T10:00:00Z",
            },
            {
                "ID": "",
                "Full Name": "Marie Curie",
                "Entreprise": "",
                "Ville": "",
                "Email": "marie@radium.fr",
                "Telephone": "",
                "Enrichment Status": "",
                "Attempts": "",
                "Last Enrichment At": "",
            },
            {key: "" for key in ("ID", "Full Name", "Entreprise", "Ville", "Email")},
        ]
    )


def test_load_prospects_from_csv_with_synonyms(sample_dataframe, tmp_path):
    csv_path = tmp_path / "prospects.csv"
    sample_dataframe.to_csv(csv_path, index=False)

    prospects = load_prospects(csv_path)

    assert len(prospects) == 2
    first, second = prospects
    assert first.id == 10
    assert first.name == "Jean Dupont"
    assert first.company == "Example Corp"
    assert first.city == "Lyon"
    assert first.email is None
    assert first.phone == "01 23 45 67 89"
    assert first.enrichment_status is EnrichmentStatus.FAILED
    assert first.enrichment_attempts == 2
    assert first.last_enrichment_at == datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)
    assert second.id == 2
    assert second.email == "marie@radium.fr"
    assert second.enrichment_status is EnrichmentStatus.NEVER
    assert second.auto_enrich_enabled is True


def test_load_prospects_from_excel(sample_dataframe, tmp_path):
    excel_path = tmp_path / "prospects.xlsx"
    sample_dataframe.to_excel(excel_path, index=False, engine="openpyxl")

    prospects = load_prospects(excel_path)

    assert [prospect.name for prospect in prospects] == ["Jean Dupont", "Marie Curie"]


def test_unsupported_file_type(tmp_path):
    path = tmp_path / "prospects.txt"
    path.write_text("name\nJean", encoding="utf-8")

    with pytest.raises(UnsupportedFileTypeError):
        load_prospects(path)
    with pytest.raises(UnsupportedFileTypeError):
        export_results(path, [])


def test_result_row_flattens_report():
    record = ProspectRecord(
        id=1,
        name="Jean Dupont",
        company="Example Corp",
        contact_info={"email": "jean@example-corp.fr"},
        enrichment_status=EnrichmentStatus.COMPLETED,
    )
    report = EnrichmentReport(
        prospect_id=1,
        success=True,
        contacts={"emails": [{"value": "jean@example-corp.fr", "score": 91.4}], "phones": []},
    )

    row = result_row(record, report)

    assert row["outcome"] == "enriched"
    assert row["contacts_found"] == 1
    assert row["discovered_contacts"] == "emails:jean@example-corp.fr (91)"
    assert row["enrichment_status"] == "completed"


def test_export_results_to_csv_and_excel(tmp_path):
    records = [ProspectRecord(id=1, name="Jean Dupont", contact_info={"email": "jean@example-corp.fr"})]

    csv_path = export_results(tmp_path / "results.csv", records)
    excel_path = export_results(tmp_path / "results.xlsx", records)

    assert "jean@example-corp.fr" in csv_path.read_text(encoding="utf-8")
    exported = pd.read_excel(excel_path, sheet_name="Results", engine="openpyxl")
    assert exported.loc[0, "name"] == "Jean Dupont"
    assert exported.loc[0, "outcome"] != "enriched"
