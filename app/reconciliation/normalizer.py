"""HYPOLAB — Bulk Update Normalizer.

Turns one untrusted update record into a ``NormalizedUpdate`` or an
``invalid`` outcome. A record is accepted in full or not at all.
"""

import math
import re
from typing import Any, Dict, List, Mapping, Union

from app.core.metric_registry import (
    RECORD_ALIASES,
    FieldType,
    MetricFieldSpec,
    get_field,
    is_column_field,
)
from app.models.reconciliation_models import (
    NormalizedUpdate,
    OutcomeStatus,
    ReconciliationOutcome,
)


class CoercionError(ValueError):
    """A raw value could not be converted to its field type."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


DECIMAL_PATTERN = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", re.ASCII)
PREFIXED_PATTERN = re.compile(r"0([xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)", re.ASCII)

# Signed 64-bit, the widest INTEGER column the backends store
INT_MIN = -(2**63)
INT_MAX = 2**63 - 1


def _parse_number(value: Any) -> float:
    """Parse a number the lenient way spreadsheet exports need.

    Strings are trimmed, an empty string is 0, booleans are 1/0, and
    ``0x``/``0o``/``0b`` prefixes are honoured. Digit separators and
    non-ASCII digits are not. Returns NaN for anything unparseable or infinite.
    """
    if isinstance(value, bool):
        return float(value)
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return 0.0
            if DECIMAL_PATTERN.fullmatch(stripped):
                number = float(stripped)
            elif PREFIXED_PATTERN.fullmatch(stripped):
                number = float(int(stripped, 0))
            else:
                return math.nan
        else:
            return math.nan
    except (OverflowError, ValueError):
        return math.nan
    return number if math.isfinite(number) else math.nan


def coerce_value(spec: MetricFieldSpec, value: Any) -> Any:
    """Coerce ``value`` to the type declared by ``spec``. ``None`` passes through."""
    if value is None:
        return None
    if spec.field_type == FieldType.TEXT:
        return str(value)
    if spec.field_type == FieldType.ENUM:
        option = str(value).strip().lower()
        if option not in spec.enum_values:
            raise CoercionError(f"invalid_enum:{spec.name}")
        return option

    number = _parse_number(value)
    if math.isnan(number):
        raise CoercionError(f"invalid_number:{spec.name}")
    if spec.field_type == FieldType.INT:
        whole = math.trunc(number)
        if not INT_MIN <= whole <= INT_MAX:
            raise CoercionError(f"invalid_number:{spec.name}")
        return whole
    return number


def _invalid(input_index: int, reason: str) -> ReconciliationOutcome:
    return ReconciliationOutcome(
        input_index=input_index, status=OutcomeStatus.INVALID, reason=reason
    )


def normalize_update(
    item: Any, input_index: int
) -> Union[NormalizedUpdate, ReconciliationOutcome]:
    """Normalize one raw update, or return the ``invalid`` outcome explaining why."""
    record: Dict[str, Any] = dict(item) if isinstance(item, Mapping) else {}

    # Record-level aliases never overwrite a canonical key already present
    for source, target in RECORD_ALIASES.items():
        if source in record and target not in record:
            record[target] = record[source]

    raw_fields = record.get("fields")
    if not isinstance(raw_fields, Mapping):
        return _invalid(input_index, "missing_fields")

    canonical: Dict[str, Any] = {}
    extras: Dict[str, Any] = {}
    invalid_keys: List[str] = []

    for key, value in raw_fields.items():
        spec = get_field(str(key))
        if spec is None:
            invalid_keys.append(str(key))
            continue
        try:
            coerced = coerce_value(spec, value)
        except CoercionError as e:
            return _invalid(input_index, e.reason)

        if is_column_field(spec.name):
            canonical[spec.name] = coerced
        else:
            extras[spec.name] = coerced

    if invalid_keys:
        return _invalid(input_index, f"unknown_fields:{','.join(invalid_keys)}")

    if not canonical and not extras:
        return _invalid(input_index, "empty_fields")

    return NormalizedUpdate(
        input_index=input_index,
        video_id=record.get("video_id"),
        session_id=record.get("session_id"),
        video_name=record.get("video_name"),
        canonical_fields=canonical,
        extra_fields=extras,
    )
