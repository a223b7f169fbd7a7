"""HYPOLAB — Reconciliation Batch.

Normalizes and resolves every update in a batch, then folds duplicates so
each video receives exactly one merged set of assignments. Pure: nothing
here touches the row store.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from app.models.reconciliation_models import (
    BulkUpdateSummary,
    NormalizedUpdate,
    OutcomeStatus,
    ReconciliationOutcome,
)
from app.reconciliation.normalizer import normalize_update
from app.reconciliation.resolver import IdentityIndex, resolve
from app.core.logging import get_logger

logger = get_logger("reconciliation.batch")


@dataclass
class PendingUpdate:
    """Merged assignments waiting to be applied to one video."""

    video_id: int
    input_index: int
    result_index: int
    canonical_fields: Dict[str, Any] = field(default_factory=dict)
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    def absorb(self, update: NormalizedUpdate, result_index: int) -> None:
        """Shallow-merge a later update over this one; later keys win."""
        self.canonical_fields = {**self.canonical_fields, **update.canonical_fields}
        self.extra_fields = {**self.extra_fields, **update.extra_fields}
        self.input_index = update.input_index
        self.result_index = result_index


@dataclass
class BatchPlan:
    """Outcome rows (input order), pending writes per video, and warnings."""

    received: int
    outcomes: List[ReconciliationOutcome] = field(default_factory=list)
    pending: Dict[int, PendingUpdate] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    def summary(self) -> BulkUpdateSummary:
        will_update = self.count(OutcomeStatus.WILL_UPDATE) + self.count(
            OutcomeStatus.UPDATED
        )
        invalid = self.count(OutcomeStatus.INVALID)
        return BulkUpdateSummary(
            received=self.received,
            valid=self.received - invalid,
            matched=will_update,
            updated=will_update,
            skipped=self.received - will_update,
        )


def reconcile_batch(updates: Sequence[Any], index: IdentityIndex) -> BatchPlan:
    """Build the apply plan for ``updates`` against ``index``."""
    plan = BatchPlan(received=len(updates))

    for input_index, item in enumerate(updates):
        normalized = normalize_update(item, input_index)
        if isinstance(normalized, ReconciliationOutcome):
            plan.outcomes.append(normalized)
            continue

        match = resolve(normalized, index)
        if match is None:
            plan.outcomes.append(
                ReconciliationOutcome(
                    input_index=input_index,
                    status=OutcomeStatus.NOT_FOUND,
                    reason="not_found",
                )
            )
            continue

        result_index = len(plan.outcomes)
        existing = plan.pending.get(match.video_id)
        if existing is not None:
            plan.warnings.append(
                f"Duplicate update detected for video {match.video_id}; "
                f"keeping last payload from index {input_index}."
            )
            previous = plan.outcomes[existing.result_index]
            plan.outcomes[existing.result_index] = previous.model_copy(
                update={
                    "status": OutcomeStatus.SKIPPED,
                    "reason": "duplicate_overridden",
                }
            )
            existing.absorb(normalized, result_index)
        else:
            plan.pending[match.video_id] = PendingUpdate(
                video_id=match.video_id,
                input_index=input_index,
                result_index=result_index,
                canonical_fields=dict(normalized.canonical_fields),
                extra_fields=dict(normalized.extra_fields),
            )

        plan.outcomes.append(
            ReconciliationOutcome(
                input_index=input_index,
                status=OutcomeStatus.WILL_UPDATE,
                identifier=match.identifier,
                matched_video_id=match.video_id,
            )
        )

    invalid = plan.count(OutcomeStatus.INVALID)
    if invalid:
        logger.warning(f"{invalid}/{plan.received} bulk updates rejected as invalid")
    if plan.warnings:
        logger.warning(f"{len(plan.warnings)} duplicate updates overridden")
    return plan
