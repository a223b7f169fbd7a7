"""HYPOLAB — Bulk Reconciliation Models."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class OutcomeStatus(str, Enum):
    """Per-row status of a bulk update."""

    INVALID = "invalid"
    NOT_FOUND = "not_found"
    WILL_UPDATE = "will_update"
    UPDATED = "updated"
    SKIPPED = "skipped"


class NormalizedUpdate(BaseModel):
    """One update after alias substitution and type coercion."""

    input_index: int
    video_id: Any = None
    session_id: Any = None
    video_name: Any = None
    canonical_fields: Dict[str, Any] = {}
    extra_fields: Dict[str, Any] = {}


class ReconciliationOutcome(BaseModel):
    """One result row per input update, reported in input order."""

    input_index: int
    status: OutcomeStatus
    reason: Optional[str] = None
    identifier: Optional[str] = None  # e.g. "session_id:abc123"
    matched_video_id: Optional[int] = None


class BulkUpdateSummary(BaseModel):
    """Counts reported after a bulk update."""

    received: int = 0
    valid: int = 0
    matched: int = 0
    updated: int = 0
    skipped: int = 0


class BulkUpdateRequest(BaseModel):
    """Request body for POST /videos/bulk-update.

    ``updates`` items are left untyped: each row is validated individually so
    one bad row never fails the whole request.
    """

    updates: List[Any]
    dry_run: bool = False

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "updates": [
                        {"video_id": 12, "fields": {"views": "1200", "clicks": 48}},
                        {"session_id": "live-0415", "fields": {"leads": 3}},
                    ]
                }
            ]
        }
    }


class BulkUpdateResponse(BaseModel):
    """Response for POST /videos/bulk-update."""

    ok: bool = True
    dry_run: bool = False
    summary: BulkUpdateSummary
    warnings: List[str] = []
    results: List[ReconciliationOutcome] = []
