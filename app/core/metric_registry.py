"""HYPOLAB — Bulk Metric Field Registry.

Defines every field a bulk metric update may carry, its value type, the
storage column that backs it (if any) and the aliases accepted on input.
Fields without a column are persisted in the video's ``metrics_json`` blob.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple


class FieldType(str, Enum):
    """How a raw value is coerced."""

    INT = "int"  # Counters: clicks, views, purchases
    FLOAT = "float"  # Rates and averages: ctr, cpc, retention
    TEXT = "text"  # Free-form identifiers and copy
    ENUM = "enum"  # Closed vocabulary, compared lowercase


@dataclass(frozen=True)
class MetricFieldSpec:
    """Describes a single bulk-updatable field."""

    name: str
    field_type: FieldType
    column_sql: Optional[str] = None
    enum_values: Tuple[str, ...] = ()

    @property
    def is_column(self) -> bool:
        return self.column_sql is not None

    def __repr__(self) -> str:
        return f"<Field {self.name} ({self.field_type.value})>"


def _text(name: str) -> MetricFieldSpec:
    return MetricFieldSpec(name, FieldType.TEXT, "TEXT")


def _int(name: str) -> MetricFieldSpec:
    return MetricFieldSpec(name, FieldType.INT, "INTEGER DEFAULT 0")


def _float(name: str) -> MetricFieldSpec:
    return MetricFieldSpec(name, FieldType.FLOAT, "REAL DEFAULT 0")


# ─────────────────────────────────────────────
# ALIASES
# ─────────────────────────────────────────────

# Identity keys on the update record itself
RECORD_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "record_id": "video_id",
        "record_name": "video_name",
        "name": "video_name",
    }
)

# Keys inside ``fields``
FIELD_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "leads": "lead_form",
        "tiempo_prom_sec": "avg_watch_time_sec",
    }
)


# ─────────────────────────────────────────────
# BULK FIELDS — Canonical Registry
# ─────────────────────────────────────────────

VIDEO_TYPES = ("paid", "organic", "live")

_FIELDS = [
    # Identifiers / attribution
    _text("campaign_id"),
    _text("adset_id"),
    _text("ad_id"),
    _text("creative_id"),
    _text("session_id"),
    _text("live_id"),
    _text("url"),
    # Counters
    _int("clicks"),
    _int("views"),
    _int("views_profile"),
    _int("new_followers"),
    _int("initiate_checkouts"),
    _int("view_content"),
    _int("lead_form"),
    _int("purchase"),
    _int("likes"),
    _int("comments"),
    _int("shares"),
    _int("saves"),
    _int("peak_viewers"),
    _int("duration_sec"),
    # Rates / averages
    _float("ctr"),
    _float("cpc"),
    _float("avg_viewers"),
    _float("duration_min"),
    _float("retention_pct"),
    _float("views_finish_pct"),
    _float("avg_watch_time_sec"),
    # Creative copy
    _text("hook_text"),
    _text("hook_type"),
    _text("cta_text"),
    _text("cta_type"),
    _text("context"),
    # Classification
    MetricFieldSpec("video_type", FieldType.ENUM, "TEXT", VIDEO_TYPES),
    # Extra fields — accepted, stored in metrics_json
    MetricFieldSpec("initiatest", FieldType.INT),
    MetricFieldSpec("organic_piece_type", FieldType.TEXT),
    MetricFieldSpec("notes", FieldType.TEXT),
]

BULK_FIELDS: Mapping[str, MetricFieldSpec] = MappingProxyType(
    {spec.name: spec for spec in _FIELDS}
)


# ─────────────────────────────────────────────
# STORAGE COLUMNS — ensured before every bulk apply
# ─────────────────────────────────────────────

METRICS_BLOB_COLUMN = "metrics_json"

REQUIRED_VIDEO_COLUMNS: Mapping[str, str] = MappingProxyType(
    {
        "name": "TEXT",
        **{spec.name: spec.column_sql for spec in _FIELDS if spec.is_column},
        "engagement": "REAL DEFAULT 0",
        METRICS_BLOB_COLUMN: "TEXT",
    }
)


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────


def resolve_alias(key: str) -> str:
    """Map an input key to its canonical field name."""
    return FIELD_ALIASES.get(key, key)


def get_field(name: str) -> MetricFieldSpec | None:
    """Look up a field by raw or canonical name."""
    return BULK_FIELDS.get(resolve_alias(name))


def is_column_field(name: str) -> bool:
    """True when the field is stored in its own column."""
    return name in REQUIRED_VIDEO_COLUMNS and name != METRICS_BLOB_COLUMN


def bulk_field_types() -> Dict[str, str]:
    """Return ``{field: type}`` for every accepted bulk field."""
    return {name: spec.field_type.value for name, spec in BULK_FIELDS.items()}
