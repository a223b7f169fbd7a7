"""HYPOLAB — Derived Metrics.

Computes ratio metrics from a video's raw counters:
CTR, purchase rate, clicks per 1000 views.
"""

import math
from typing import Any, Mapping

from app.models.analysis_models import DerivedMetrics


def to_number(value: Any) -> float:
    """Coerce to float; unparseable or non-finite values become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def compute_derived_metrics(video: Mapping[str, Any]) -> DerivedMetrics:
    views = max(to_number(video.get("views")), 0)
    clicks = max(to_number(video.get("clicks")), 0)
    purchases = max(to_number(video.get("purchase")), 0)
    view_content = max(to_number(video.get("view_content")), 0)

    # Stored CTR is only trusted when there are no views to recompute it from
    ctr = clicks / views if views > 0 else to_number(video.get("ctr"))

    if view_content > 0:
        purchase_rate = purchases / view_content
    elif views > 0:
        purchase_rate = purchases / views
    else:
        purchase_rate = 0.0

    clicks_per_1000_views = 1000 * clicks / views if views > 0 else 0.0

    return DerivedMetrics(
        ctr=ctr,
        purchase_rate=purchase_rate,
        clicks_per_1000_views=clicks_per_1000_views,
    )
