"""HYPOLAB — A/B Comparison Engine.

Compares two videos on a primary metric and produces a decision:
  derived metrics → frequentist z-test → Bayesian P(B>A) →
  sequential stop rule → quality flags → verdict + recommendations

Proportion metrics (ctr, purchase_rate) get a pooled two-proportion z-test
and a Beta posterior. Every other metric is compared as clicks per 1000
views with a fixed heuristic in place of a posterior.
"""

import random
from typing import Any, List, Mapping, Optional

from app.config import settings
from app.analyzer.derived_metrics import compute_derived_metrics, to_number
from app.analyzer.stats import (
    probability_b_beats_a,
    rate_z_test,
    two_proportion_z_test,
)
from app.models.analysis_models import (
    ArmValues,
    BayesianResult,
    ComparisonConfig,
    ComparisonResult,
    FrequentistResult,
    SequentialResult,
    Verdict,
)
from app.core.logging import get_logger

logger = get_logger("analyzer.comparison")

PROPORTION_METRICS = {"ctr", "purchase_rate"}

# Posterior probability needed to call a winner
BAYES_WIN = 0.95
BAYES_LOSE = 0.05

RECOMMENDATIONS = {
    Verdict.B: [
        "Scale variant B",
        "Keep monitoring quality",
        "Document the creative learning",
    ],
    Verdict.A: [
        "Keep variant A",
        "Iterate on B's elements",
        "Repeat the test with a larger sample",
    ],
    Verdict.INCONCLUSIVE: [
        "Collect more sample",
        "Avoid early decisions",
        "Review CTA/hook based on signals",
    ],
}

FLAG_MIXED_TYPES = "Mixed video types (blocking recommended)"
FLAG_CTR_OVER_ONE = "Inconsistent CTR > 1"


def _winner(p_value: float, alpha: float, delta: float) -> Verdict:
    if p_value >= alpha:
        return Verdict.INCONCLUSIVE
    return Verdict.B if delta > 0 else Verdict.A


def _bayes_label(verdict: Verdict) -> str:
    return "Inconclusive" if verdict == Verdict.INCONCLUSIVE else f"{verdict.value} probable"


def _posterior_verdict(p_b_gt_a: float) -> Verdict:
    if p_b_gt_a > BAYES_WIN:
        return Verdict.B
    if p_b_gt_a < BAYES_LOSE:
        return Verdict.A
    return Verdict.INCONCLUSIVE


def _proportion_inputs(video: Mapping[str, Any], metric: str) -> tuple[float, float]:
    """(successes, trials) for a proportion metric."""
    if metric == "ctr":
        return to_number(video.get("clicks")), max(to_number(video.get("views")), 1)
    # view_content is the denominator unless it is missing or zero
    total = to_number(video.get("view_content")) or to_number(video.get("views"))
    return to_number(video.get("purchase")), max(total, 1)


def _quality_flags(video_a: Mapping[str, Any], video_b: Mapping[str, Any]) -> List[str]:
    flags = []
    if (video_a.get("video_type") or "") != (video_b.get("video_type") or ""):
        flags.append(FLAG_MIXED_TYPES)
    if to_number(video_a.get("ctr")) > 1 or to_number(video_b.get("ctr")) > 1:
        flags.append(FLAG_CTR_OVER_ONE)
    return flags


def compare_videos(
    video_a: Mapping[str, Any],
    video_b: Mapping[str, Any],
    config: Optional[ComparisonConfig] = None,
    rng: Optional[random.Random] = None,
) -> ComparisonResult:
    """Run the full A/B comparison of ``video_b`` against ``video_a``."""
    config = config or ComparisonConfig()
    metric = config.primary_metric

    derived_a = compute_derived_metrics(video_a).model_dump()
    derived_b = compute_derived_metrics(video_b).model_dump()

    exposure_a = max(to_number(video_a.get("views")), 0)
    exposure_b = max(to_number(video_b.get("views")), 0)
    exposure_ok = exposure_a >= config.min_exposure and exposure_b >= config.min_exposure

    if metric in derived_a:
        value_a, value_b = derived_a[metric], derived_b[metric]
    else:
        value_a, value_b = to_number(video_a.get(metric)), to_number(video_b.get(metric))

    if metric in PROPORTION_METRICS:
        success_a, total_a = _proportion_inputs(video_a, metric)
        success_b, total_b = _proportion_inputs(video_b, metric)
        test = two_proportion_z_test(success_a, total_a, success_b, total_b)
        p1 = success_a / total_a

        frequentist = FrequentistResult(
            metric=metric,
            p_value=test.p_value,
            uplift_absolute=test.delta,
            uplift_relative=test.delta / p1 if p1 else None,
            ci95_delta=test.ci95,
            winner=_winner(test.p_value, config.alpha, test.delta),
        )

        # Jeffreys prior Beta(0.5, 0.5)
        p_b_gt_a = probability_b_beats_a(
            0.5 + success_a,
            0.5 + (total_a - success_a),
            0.5 + success_b,
            0.5 + (total_b - success_b),
            samples=settings.bayes_samples,
            rng=rng,
        )
        bayesian = BayesianResult(
            p_b_gt_a=p_b_gt_a,
            p_uplift_gt_mde=p_b_gt_a,
            recommendation=_bayes_label(_posterior_verdict(p_b_gt_a)),
        )
    else:
        rate_a = 1000 * to_number(video_a.get("clicks")) / exposure_a if exposure_a > 0 else value_a
        rate_b = 1000 * to_number(video_b.get("clicks")) / exposure_b if exposure_b > 0 else value_b
        test = rate_z_test(rate_a, rate_b, exposure_a, exposure_b)

        frequentist = FrequentistResult(
            metric=metric,
            normalized_metric="clicks_per_1000_views",
            p_value=test.p_value,
            uplift_absolute=test.delta,
            uplift_relative=test.delta / rate_a if rate_a else None,
            ci95_delta=test.ci95,
            winner=_winner(test.p_value, config.alpha, test.delta),
        )

        # Placeholder, not a posterior: fixed values gated on sign and MDE
        beyond_mde = abs(test.delta) > config.mde
        if beyond_mde:
            heuristic = Verdict.B if test.delta > 0 else Verdict.A
        else:
            heuristic = Verdict.INCONCLUSIVE
        bayesian = BayesianResult(
            p_b_gt_a=0.8 if test.delta > 0 else 0.2,
            p_uplift_gt_mde=0.8 if beyond_mde else 0.4,
            recommendation=_bayes_label(heuristic),
        )

    sequential = SequentialResult(
        min_exposure=config.min_exposure,
        exposure_a=exposure_a,
        exposure_b=exposure_b,
        exposure_ok=exposure_ok,
        decision=_posterior_verdict(bayesian.p_b_gt_a)
        if exposure_ok
        else Verdict.INCONCLUSIVE,
    )

    if not exposure_ok:
        decision = Verdict.INCONCLUSIVE
    elif frequentist.winner != Verdict.INCONCLUSIVE:
        decision = frequentist.winner
    else:
        decision = sequential.decision

    result = ComparisonResult(
        primary_metric=metric,
        method=config.method,
        values=ArmValues(A=value_a, B=value_b),
        frequentist=frequentist,
        bayesian=bayesian,
        sequential=sequential,
        quality_flags=_quality_flags(video_a, video_b),
        decision=decision,
        recommendations=list(RECOMMENDATIONS[decision]),
    )
    logger.info(
        f"Compared on {metric}: p={frequentist.p_value:.4f}, "
        f"P(B>A)={bayesian.p_b_gt_a:.3f}, decision={decision.value}"
    )
    return result
