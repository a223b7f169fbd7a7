"""HYPOLAB — Comparison & Volume Output Models."""

from enum import Enum
from typing import List, Literal, Optional, Tuple
from pydantic import BaseModel, Field

from app.config import settings


class Verdict(str, Enum):
    """Which arm a test favours."""

    A = "A"
    B = "B"
    INCONCLUSIVE = "Inconclusive"


class ComparisonConfig(BaseModel):
    """Parameters for one A/B comparison."""

    primary_metric: str = settings.default_primary_metric
    alpha: float = Field(default=settings.default_alpha, gt=0, lt=1)
    mde: float = Field(default=settings.default_mde, ge=0)
    min_exposure: float = Field(default=settings.default_min_exposure, ge=0)
    method: Literal["frequentist", "bayesian", "hybrid"] = settings.default_method


class DerivedMetrics(BaseModel):
    """Ratio metrics computed from a video's raw counters."""

    ctr: float = 0.0
    purchase_rate: float = 0.0
    clicks_per_1000_views: float = 0.0


class ArmValues(BaseModel):
    A: float
    B: float


class FrequentistResult(BaseModel):
    """z-test on the primary metric."""

    metric: str
    normalized_metric: Optional[str] = None
    p_value: float
    uplift_absolute: float
    uplift_relative: Optional[float] = None
    ci95_delta: Tuple[float, float]
    winner: Verdict


class BayesianResult(BaseModel):
    """Posterior comparison. For non-proportion metrics these are fixed heuristics."""

    p_b_gt_a: float
    p_uplift_gt_mde: float
    recommendation: str


class SequentialResult(BaseModel):
    """Stopping decision gated on exposure."""

    min_exposure: float
    exposure_a: float
    exposure_b: float
    exposure_ok: bool
    decision: Verdict


class ComparisonResult(BaseModel):
    """Full output of an A/B comparison."""

    primary_metric: str
    method: str
    values: ArmValues
    frequentist: FrequentistResult
    bayesian: BayesianResult
    sequential: SequentialResult
    quality_flags: List[str] = []
    decision: Verdict
    recommendations: List[str] = []


class VolumeSnapshot(BaseModel):
    """Accumulated sample volume against a hypothesis minimum."""

    hypothesis_id: str = ""
    unit: str
    minimum: float
    current: float
    count_samples: int
    meets_minimum: bool
