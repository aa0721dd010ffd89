"""Spreadsheet import of prospects and export of enrichment results."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Sequence, Union

import pandas as pd

from .models import EnrichmentStatus, ProspectRecord

PathLike = Union[str, Path]

_CSV_SUFFIXES = {".csv", ".tsv"}
_EXCEL_SUFFIXES = {".xls", ".xlsx", ".xlsm", ".xlsb"}

_FIELD_SYNONYMS: Mapping[str, Sequence[str]] = {
    "id": ("id", "prospect_id", "record_id"),
    "name": ("name", "full_name", "contact_name"),
    "company": ("company", "organisation", "organization", "entreprise"),
    "city": ("city", "ville"),
    "address": ("address", "adresse"),
    "email": ("email", "email_address"),
    "phone": ("phone", "telephone", "phone_number"),
    "website": ("website", "site", "url"),
    "user_id": ("user_id", "owner_id"),
    "created_at": ("created_at",),
    "last_enrichment_at": ("last_enrichment_at",),
    "enrichment_attempts": ("enrichment_attempts", "attempts"),
    "enrichment_status": ("enrichment_status", "status"),
    "auto_enrich_enabled": ("auto_enrich_enabled",),
}


class UnsupportedFileTypeError(ValueError):
    """Raised when an unsupported file format is passed to the loader or exporter."""


def _normalise_key(value: Any) -> str:
    return str(value).strip().lower().replace(" ", "_")


def load_prospects(path: PathLike, *, sheet_name: Union[str, int] = 0) -> List[ProspectRecord]:
    """Load prospects from a CSV or Excel spreadsheet.

    Rows without any value are skipped. Missing ids are replaced by the
    1-based row position.
    """

    dataframe = _read_dataframe(path, sheet_name=sheet_name)
    columns = {_normalise_key(column): column for column in dataframe.columns}
    prospects: List[ProspectRecord] = []
    for position, (_, row) in enumerate(dataframe.iterrows(), start=1):
        if all(_clean(value) is None for value in row.values):
            continue
        values = {field: _lookup(row, columns, field) for field in _FIELD_SYNONYMS}
        prospects.append(_row_to_prospect(values, position))
    return prospects


def _read_dataframe(path: PathLike, *, sheet_name: Union[str, int] = 0) -> pd.DataFrame:
    path_obj = Path(path)
    suffix = path_obj.suffix.lower()
    if suffix in _CSV_SUFFIXES:
        return pd.read_csv(path_obj, sep="\t" if suffix == ".tsv" else ",", dtype=str, keep_default_na=False)
    if suffix in _EXCEL_SUFFIXES:
        return pd.read_excel(path_obj, sheet_name=sheet_name, engine="openpyxl", dtype=str)
    raise UnsupportedFileTypeError(f"Unsupported file extension: {path_obj.suffix}")


def _lookup(row: pd.Series, columns: Mapping[str, str], field: str) -> Optional[str]:
    for synonym in _FIELD_SYNONYMS[field]:
        column = columns.get(synonym)
        if column is not None:
            value = _clean(row[column])
            if value is not None:
                return value
    return None


def _clean(value: Any) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = pd.to_datetime(value, utc=True).to_pydatetime()
    return parsed.astimezone(timezone.utc)


def _parse_bool(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "oui"}


def _row_to_prospect(values: Mapping[str, Optional[str]], position: int) -> ProspectRecord:
    contact_info = {key: values[key] for key in ("email", "phone", "website") if values[key]}
    try:
        prospect_id = int(float(values["id"])) if values["id"] else position
        attempts = int(float(values["enrichment_attempts"])) if values["enrichment_attempts"] else 0
        user_id = int(float(values["user_id"])) if values["user_id"] else None
    except ValueError as exc:
        raise ValueError(f"Row {position}: {exc}") from exc
    return ProspectRecord(
        id=prospect_id,
        name=values["name"],
        company=values["company"],
        city=values["city"],
        address=values["address"],
        contact_info=contact_info,
        user_id=user_id,
        created_at=_parse_datetime(values["created_at"]),
        last_enrichment_at=_parse_datetime(values["last_enrichment_at"]),
        enrichment_attempts=attempts,
        enrichment_status=EnrichmentStatus(values["enrichment_status"] or EnrichmentStatus.NEVER.value),
        auto_enrich_enabled=_parse_bool(values["auto_enrich_enabled"]),
    )


def result_row(record: ProspectRecord, report: Optional[Any] = None) -> Dict[str, Any]:
    """Flatten a prospect and its latest enrichment report into one output row."""

    row: MutableMapping[str, Any] = {
        "id": record.id,
        "name": record.name,
        "company": record.company,
        "city": record.city,
        "email": record.email,
        "phone": record.phone,
        "website": record.website,
        "enrichment_status": record.enrichment_status.value,
        "enrichment_attempts": record.enrichment_attempts,
        "enrichment_score": record.enrichment_score,
        "data_completeness_score": record.data_completeness_score,
        "last_enrichment_at": record.last_enrichment_at.isoformat() if record.last_enrichment_at else None,
        "outcome": None,
        "reason": None,
        "contacts_found": 0,
        "discovered_contacts": "",
    }
    if report is not None:
        row["outcome"] = "enriched" if report.success else "not_enriched"
        row["reason"] = report.reason
        row["contacts_found"] = report.contacts_found
        row["discovered_contacts"] = "; ".join(
            f"{group}:{entry['value']} ({entry['score']:.0f})"
            for group, entries in report.contacts.items()
            for entry in entries
        )
    return dict(row)


def results_to_dataframe(
    records: Sequence[ProspectRecord], reports: Optional[Mapping[int, Any]] = None
) -> pd.DataFrame:
    """Convert enriched prospects into a :class:`pandas.DataFrame`, one row per prospect."""

    reports = reports or {}
    return pd.DataFrame([result_row(record, reports.get(record.id)) for record in records])


def export_results(
    path: PathLike,
    records: Sequence[ProspectRecord],
    reports: Optional[Mapping[int, Any]] = None,
    *,
    sheet_name: str = "Results",
) -> Path:
    """Write enrichment results to a CSV or Excel file."""

    dataframe = results_to_dataframe(records, reports)
    output_path = Path(path)
    suffix = output_path.suffix.lower()
    if suffix == ".csv":
        dataframe.to_csv(output_path, index=False)
    elif suffix in {".xlsx", ".xlsm"}:
        dataframe.to_excel(output_path, index=False, sheet_name=sheet_name, engine="openpyxl")
    else:
        raise UnsupportedFileTypeError(f"Unsupported output format '{output_path.suffix}'. Use CSV or Excel")
    return output_path


__all__ = ["UnsupportedFileTypeError", "export_results", "load_prospects", "result_row", "results_to_dataframe"]
