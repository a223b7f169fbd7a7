"""HYPOLAB — Video Bulk Update Routes."""

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlmodel import Session

from app.database import get_session
from app.core.metric_registry import bulk_field_types
from app.models.reconciliation_models import BulkUpdateRequest, BulkUpdateResponse
from app.reconciliation.applier import BulkUpdateRequestError, execute_bulk_update
from app.storage.video_repository import StorageFailureError, VideoRepository
from app.core.logging import get_logger

logger = get_logger("api.videos")

router = APIRouter(prefix="/videos", tags=["Videos"])


@router.post("/bulk-update", response_model=BulkUpdateResponse)
async def bulk_update_videos(
    request: BulkUpdateRequest,
    user_id: str = Header(..., alias="X-User-Id"),
    session: Session = Depends(get_session),
):
    """Apply externally-sourced metric updates to the caller's videos.

    Each update is matched by ``video_id``, then ``session_id``, then
    ``video_name``. Invalid or unmatched rows are reported, not fatal;
    the writes themselves are all-or-nothing.
    """
    repo = VideoRepository(session)
    try:
        return execute_bulk_update(
            repo,
            user_id,
            request.model_dump(include={"updates"}),
            dry_run=request.dry_run,
        )
    except BulkUpdateRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageFailureError as e:
        logger.error(
            f"Bulk update rolled back: {e}",
            extra={"endpoint": "/videos/bulk-update", "user_id": user_id},
        )
        raise HTTPException(status_code=500, detail=f"Bulk update failed: {str(e)}")


@router.get("/bulk-fields")
async def get_bulk_fields():
    """List the fields a bulk update may set and their value types."""
    return {"status": "success", "fields": bulk_field_types()}
