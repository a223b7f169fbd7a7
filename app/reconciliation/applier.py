"""HYPOLAB — Transactional Bulk Applier.

Runs the full bulk-update flow:
  validate body → migrate columns → scan user's videos → index →
  reconcile batch → apply in one transaction → summarize

Validation is per row; the apply phase is all-or-nothing.
"""

import json
import time
from typing import Any, Dict, List, Mapping

from app.core.metric_registry import METRICS_BLOB_COLUMN, REQUIRED_VIDEO_COLUMNS
from app.models.reconciliation_models import BulkUpdateResponse, OutcomeStatus
from app.reconciliation.batch import BatchPlan, reconcile_batch
from app.reconciliation.resolver import IdentityIndex
from app.storage.video_repository import VideoRepository
from app.core.logging import get_logger

logger = get_logger("reconciliation.applier")


class BulkUpdateRequestError(ValueError):
    """The request as a whole is malformed; nothing was validated or written."""


def ensure_video_columns(repo: VideoRepository) -> List[str]:
    """Add any missing metric column. Running it twice is a no-op."""
    return repo.ensure_columns(REQUIRED_VIDEO_COLUMNS)


def build_assignments(
    canonical_fields: Mapping[str, Any],
    extra_fields: Mapping[str, Any],
    existing_blob: Mapping[str, Any],
) -> Dict[str, Any]:
    """Column assignments for one video; extras merge into the JSON blob."""
    assignments = dict(canonical_fields)
    if extra_fields:
        merged = {**existing_blob, **extra_fields}
        assignments[METRICS_BLOB_COLUMN] = json.dumps(merged)
    return assignments


def apply_plan(
    repo: VideoRepository, user_id: str, plan: BatchPlan, index: IdentityIndex
) -> int:
    """Write every pending update in one transaction. Returns statements run."""
    written = 0
    with repo.transaction():
        for video_id, pending in plan.pending.items():
            assignments = build_assignments(
                pending.canonical_fields,
                pending.extra_fields,
                index.metrics_blobs.get(video_id, {}),
            )
            if not assignments:
                continue
            repo.update(video_id, user_id, assignments)
            written += 1
    return written


def execute_bulk_update(
    repo: VideoRepository,
    user_id: str,
    body: Any,
    dry_run: bool = False,
) -> BulkUpdateResponse:
    """Reconcile and apply a ``{"updates": [...]}`` body for ``user_id``.

    With ``dry_run`` the plan is computed and returned but nothing is written;
    rows keep the ``will_update`` status.
    """
    updates = body.get("updates") if isinstance(body, Mapping) else None
    if not isinstance(updates, list):
        raise BulkUpdateRequestError("Body must include updates array")

    started = time.monotonic()
    ensure_video_columns(repo)

    index = IdentityIndex.build(repo.select_for_user(user_id))
    plan = reconcile_batch(updates, index)

    if not dry_run:
        written = apply_plan(repo, user_id, plan, index)
        plan.outcomes = [
            o.model_copy(update={"status": OutcomeStatus.UPDATED})
            if o.status == OutcomeStatus.WILL_UPDATE
            else o
            for o in plan.outcomes
        ]
    else:
        written = 0

    summary = plan.summary()
    logger.info(
        f"Bulk update {'previewed' if dry_run else 'applied'}: "
        f"{summary.updated}/{summary.received} videos, {written} statements",
        extra={
            "user_id": user_id,
            "batch_size": summary.received,
            "duration_ms": round((time.monotonic() - started) * 1000, 1),
        },
    )
    return BulkUpdateResponse(
        ok=True,
        dry_run=dry_run,
        summary=summary,
        warnings=plan.warnings,
        results=plan.outcomes,
    )
