"""HYPOLAB — Volume Gate.

Measures how much sample a hypothesis has accumulated, in the unit the
hypothesis was configured with, and whether it reaches the minimum.
"""

from typing import Any, Dict, Mapping, Sequence, Tuple

from app.analyzer.derived_metrics import to_number
from app.core.metric_registry import METRICS_BLOB_COLUMN
from app.models.analysis_models import VolumeSnapshot
from app.reconciliation.resolver import parse_metrics_blob

# unit → record field
VOLUME_FIELDS: Dict[str, str] = {
    "videos": "videos",
    "sessions": "sessions",
    "views": "views",
    "clicks": "clicks",
    "ctr": "ctr",
    "cpc": "cpc",
    "initiate_checkout_rate": "initiate_checkout_rate",
    "view_content_rate": "view_content_rate",
    "lead_rate": "lead_rate",
    "purchase_rate": "purchase_rate",
    "initiatest": "initiatest",
    "duration_min": "duration_min",
    "duracion_min": "duration_min",
}

# Pooled rates: unit → (numerator field, denominator field)
POOLED_RATES: Dict[str, Tuple[str, str]] = {
    "initiate_checkout_rate": ("initiate_checkouts", "views"),
    "view_content_rate": ("view_content", "views"),
    "lead_rate": ("lead_form", "views"),
    "purchase_rate": ("purchase", "view_content"),
}

SESSION_KEYS = ("external_id", "session_id", "ad_id", "live_id")


def normalize_volume_unit(unit: Any) -> str:
    return str(unit or "").strip().lower() or "videos"


def get_volume_field(unit: Any) -> str:
    """Field a unit measures; unknown units count videos."""
    return VOLUME_FIELDS.get(normalize_volume_unit(unit), "videos")


def _field_value(record: Mapping[str, Any], field: str) -> float:
    """Column value, falling back to the metrics_json blob for extra fields."""
    if field in record:
        return to_number(record[field])
    return to_number(parse_metrics_blob(record.get(METRICS_BLOB_COLUMN)).get(field))


def _distinct_sessions(records: Sequence[Mapping[str, Any]]) -> int:
    unique = set()
    for record in records:
        for key in SESSION_KEYS:
            if record.get(key):
                unique.add(str(record[key]))
                break
    return len(unique) or len(records)


def _pooled_rate(records: Sequence[Mapping[str, Any]], numerator: str, denominator: str) -> float:
    num = sum(_field_value(r, numerator) for r in records)
    den = sum(_field_value(r, denominator) for r in records)
    return num / den if den > 0 else 0.0


def compute_current_volume(records: Sequence[Mapping[str, Any]], unit: Any = "videos") -> float:
    """Current volume of ``records`` measured in ``unit``."""
    field = get_volume_field(unit)
    if field == "videos":
        return len(records)
    if field == "sessions":
        return _distinct_sessions(records)
    if field in POOLED_RATES:
        return _pooled_rate(records, *POOLED_RATES[field])
    return sum(_field_value(r, field) for r in records)


def build_volume_snapshot(
    records: Sequence[Mapping[str, Any]],
    minimum: Any = 0,
    unit: Any = "videos",
    hypothesis_id: Any = "",
) -> VolumeSnapshot:
    current = compute_current_volume(records, unit)
    floor = to_number(minimum)
    return VolumeSnapshot(
        hypothesis_id=str(hypothesis_id or ""),
        unit=normalize_volume_unit(unit),
        minimum=floor,
        current=current,
        count_samples=len(records),
        meets_minimum=current >= floor,
    )
