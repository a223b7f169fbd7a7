"""HYPOLAB — Analysis API Routes."""

from typing import Literal

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.analyzer.comparison_engine import compare_videos
from app.analyzer.volume_gate import build_volume_snapshot
from app.models.analysis_models import ComparisonConfig, ComparisonResult, VolumeSnapshot
from app.models.video_models import Hypothesis
from app.storage.video_repository import VideoRepository
from app.core.logging import get_logger

logger = get_logger("api.analysis")

router = APIRouter(tags=["Analysis"])


class VideoNotFoundError(LookupError):
    """A compared video does not exist for this user."""


# ── Request Models ──


class CompareRequest(BaseModel):
    """Request body for POST /ab-test/compare."""

    video_a_id: int
    video_b_id: int
    primary_metric: str = settings.default_primary_metric
    """ctr | purchase_rate | clicks_per_1000_views | any stored metric column."""
    alpha: float = Field(default=settings.default_alpha, gt=0, lt=1)
    mde: float = Field(default=settings.default_mde, ge=0)
    min_exposure: float = Field(default=settings.default_min_exposure, ge=0)
    method: Literal["frequentist", "bayesian", "hybrid"] = settings.default_method

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"video_a_id": 3, "video_b_id": 7, "primary_metric": "ctr"},
            ]
        }
    }


def _load_video(repo: VideoRepository, video_id: int, user_id: str) -> dict:
    video = repo.get(video_id, user_id)
    if video is None:
        raise VideoNotFoundError(f"Video {video_id} not found")
    return video


# ── Endpoints ──


@router.post("/ab-test/compare", response_model=ComparisonResult)
async def compare(
    request: CompareRequest,
    user_id: str = Header(..., alias="X-User-Id"),
    session: Session = Depends(get_session),
):
    """Compare video B against video A on the primary metric."""
    repo = VideoRepository(session)
    try:
        video_a = _load_video(repo, request.video_a_id, user_id)
        video_b = _load_video(repo, request.video_b_id, user_id)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    config = ComparisonConfig(
        **request.model_dump(exclude={"video_a_id", "video_b_id"})
    )
    return compare_videos(video_a, video_b, config)


@router.get("/hypotheses/{hypothesis_id}/volume", response_model=VolumeSnapshot)
async def hypothesis_volume(
    hypothesis_id: int,
    user_id: str = Header(..., alias="X-User-Id"),
    session: Session = Depends(get_session),
):
    """Accumulated sample volume for a hypothesis against its minimum."""
    hypothesis = session.get(Hypothesis, hypothesis_id)
    if hypothesis is None or hypothesis.user_id != user_id:
        raise HTTPException(status_code=404, detail="Hypothesis not found")

    videos = VideoRepository(session).select_for_user(user_id, hypothesis_id)
    return build_volume_snapshot(
        videos,
        minimum=hypothesis.volume_minimum,
        unit=hypothesis.volume_unit,
        hypothesis_id=hypothesis_id,
    )
