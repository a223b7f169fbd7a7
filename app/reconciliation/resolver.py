"""HYPOLAB — Identity Resolver.

Maps a normalized update to exactly one video using a fixed precedence:
``video_id`` → ``session_id`` → ``video_name``. The first identifier that
matches wins; later ones are not consulted.
"""

import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, NamedTuple, Optional

from app.core.metric_registry import METRICS_BLOB_COLUMN
from app.models.reconciliation_models import NormalizedUpdate


def normalize_identifier(value: Any) -> str:
    """Trim + lowercase; falsy values become ``""``."""
    return str(value or "").strip().lower()


def parse_metrics_blob(raw: Any) -> Dict[str, Any]:
    """Parse a stored ``metrics_json`` value, ``{}`` when empty or malformed."""
    if not raw:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


@dataclass(frozen=True)
class IdentityIndex:
    """Lookup tables over one user's videos, built once per bulk call."""

    by_id: Mapping[str, int]
    by_session: Mapping[str, int]
    by_name: Mapping[str, int]
    metrics_blobs: Mapping[int, Dict[str, Any]]

    @classmethod
    def build(cls, rows: Iterable[Mapping[str, Any]]) -> "IdentityIndex":
        by_id: Dict[str, int] = {}
        by_session: Dict[str, int] = {}
        by_name: Dict[str, int] = {}
        blobs: Dict[int, Dict[str, Any]] = {}

        for row in rows:
            video_id = row["id"]
            by_id[str(video_id)] = video_id
            if row.get("session_id"):
                by_session[normalize_identifier(row["session_id"])] = video_id
            display_name = row.get("name") or row.get("title")
            if display_name:
                by_name[normalize_identifier(display_name)] = video_id
            blobs[video_id] = parse_metrics_blob(row.get(METRICS_BLOB_COLUMN))

        return cls(
            by_id=MappingProxyType(by_id),
            by_session=MappingProxyType(by_session),
            by_name=MappingProxyType(by_name),
            metrics_blobs=MappingProxyType(blobs),
        )

    def __len__(self) -> int:
        return len(self.by_id)


class Resolution(NamedTuple):
    video_id: int
    identifier: str  # "<kind>:<raw value>"


def resolve(update: NormalizedUpdate, index: IdentityIndex) -> Optional[Resolution]:
    """Resolve ``update`` to one video, or ``None`` when nothing matches."""
    if update.video_id and str(update.video_id) in index.by_id:
        return Resolution(
            index.by_id[str(update.video_id)], f"video_id:{update.video_id}"
        )

    session_key = normalize_identifier(update.session_id)
    if update.session_id and session_key in index.by_session:
        return Resolution(
            index.by_session[session_key], f"session_id:{update.session_id}"
        )

    name_key = normalize_identifier(update.video_name)
    if update.video_name and name_key in index.by_name:
        return Resolution(index.by_name[name_key], f"video_name:{update.video_name}")

    return None
