"""HYPOLAB — Video & Hypothesis Tables.

Only the base columns live on the SQLModel classes. Metric columns are added
by the bulk-update migration (see ``REQUIRED_VIDEO_COLUMNS``) so existing
databases pick them up without a rebuild.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import text
from sqlmodel import SQLModel, Field

# Videos are also written through plain SQL, so base columns need DB defaults
_EMPTY = {"server_default": ""}
_NOW = {"server_default": text("CURRENT_TIMESTAMP")}


class Video(SQLModel, table=True):
    """One published piece (paid ad, organic post or live session)."""

    __tablename__ = "videos"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, description="Owning user / tenant")
    hypothesis_id: Optional[int] = Field(
        default=None, index=True, description="Hypothesis this video tests"
    )
    title: str = Field(default="", sa_column_kwargs=_EMPTY)
    video_type: str = Field(
        default="organic",
        sa_column_kwargs={"server_default": "organic"},
        description="paid | organic | live",
    )
    external_id: str = Field(
        default="", sa_column_kwargs=_EMPTY, description="session_id / ad_id / live_id"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), sa_column_kwargs=_NOW
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), sa_column_kwargs=_NOW
    )


class Hypothesis(SQLModel, table=True):
    """An "if X then Y" statement plus the sample volume needed to judge it."""

    __tablename__ = "hypotheses"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    title: str = Field(default="")
    statement: str = Field(default="", description="If X then Y")
    volume_minimum: float = Field(default=0, description="Minimum sample volume")
    volume_unit: str = Field(default="videos", description="Unit for volume_minimum")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
