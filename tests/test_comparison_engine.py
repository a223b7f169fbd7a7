from __future__ import annotations

import random

import pytest

from app.analyzer.comparison_engine import (
    FLAG_CTR_OVER_ONE,
    FLAG_MIXED_TYPES,
    RECOMMENDATIONS,
    compare_videos,
)
from app.analyzer.stats import normal_cdf, probability_b_beats_a, two_proportion_z_test
from app.models.analysis_models import ComparisonConfig, Verdict


def _video(views, clicks, **extra):
    return {"views": views, "clicks": clicks, "video_type": "paid", **extra}


def test_normal_cdf_matches_known_points():
    assert normal_cdf(0) == pytest.approx(0.5, abs=1e-6)
    assert normal_cdf(1.96) == pytest.approx(0.975, abs=1e-4)
    assert normal_cdf(-1.96) == pytest.approx(0.025, abs=1e-4)
    assert normal_cdf(40) == 1.0


def test_two_proportion_z_test_example():
    test = two_proportion_z_test(50, 1000, 70, 1000)
    assert test.delta == pytest.approx(0.02)
    assert test.se == pytest.approx(0.0106, abs=1e-4)
    assert 0.05 < test.p_value < 0.07
    low, high = test.ci95
    assert low < 0 < high


def test_ctr_example_just_misses_significance():
    result = compare_videos(
        _video(1000, 50),
        _video(1000, 70),
        ComparisonConfig(primary_metric="ctr", alpha=0.05),
        rng=random.Random(7),
    )
    assert result.values.A == pytest.approx(0.05)
    assert result.values.B == pytest.approx(0.07)
    assert result.frequentist.winner == Verdict.INCONCLUSIVE
    assert result.frequentist.uplift_relative == pytest.approx(0.4)
    assert result.sequential.exposure_ok is True
    assert result.decision == Verdict.INCONCLUSIVE
    assert result.recommendations == RECOMMENDATIONS[Verdict.INCONCLUSIVE]


def test_clear_ctr_winner():
    result = compare_videos(
        _video(1000, 50), _video(1000, 100), rng=random.Random(1)
    )
    assert result.frequentist.p_value < 0.001
    assert result.frequentist.winner == Verdict.B
    assert result.decision == Verdict.B
    assert result.recommendations == RECOMMENDATIONS[Verdict.B]
    assert result.method == "hybrid"


def test_low_exposure_is_always_inconclusive():
    result = compare_videos(
        _video(500, 5),
        _video(500, 200),
        ComparisonConfig(min_exposure=1000),
        rng=random.Random(3),
    )
    assert result.frequentist.winner == Verdict.B
    assert result.sequential.exposure_ok is False
    assert result.sequential.decision == Verdict.INCONCLUSIVE
    assert result.decision == Verdict.INCONCLUSIVE


def test_low_exposure_overrides_extreme_posterior(monkeypatch):
    monkeypatch.setattr(
        "app.analyzer.comparison_engine.probability_b_beats_a",
        lambda *args, **kwargs: 0.999,
    )
    result = compare_videos(_video(10, 1), _video(10, 9))
    assert result.bayesian.p_b_gt_a == 0.999
    assert result.bayesian.recommendation == "B probable"
    assert result.decision == Verdict.INCONCLUSIVE


def test_sequential_decision_used_when_frequentist_inconclusive(monkeypatch):
    monkeypatch.setattr(
        "app.analyzer.comparison_engine.probability_b_beats_a",
        lambda *args, **kwargs: 0.01,
    )
    result = compare_videos(_video(1000, 50), _video(1000, 48))
    assert result.frequentist.winner == Verdict.INCONCLUSIVE
    assert result.sequential.decision == Verdict.A
    assert result.decision == Verdict.A
    assert result.recommendations == RECOMMENDATIONS[Verdict.A]


def test_purchase_rate_uses_view_content_denominator():
    a = _video(1000, 0, purchase=5, view_content=100)
    b = _video(1000, 0, purchase=20, view_content=0)
    result = compare_videos(
        a, b, ComparisonConfig(primary_metric="purchase_rate"), rng=random.Random(5)
    )
    assert result.values.A == pytest.approx(0.05)
    assert result.values.B == pytest.approx(0.02)
    assert result.frequentist.uplift_absolute == pytest.approx(-0.03)


def test_other_metric_compares_clicks_per_1000_views():
    result = compare_videos(
        _video(1000, 50, likes=3),
        _video(1000, 80, likes=9),
        ComparisonConfig(primary_metric="likes"),
    )
    assert result.values.A == 3
    assert result.values.B == 9
    assert result.frequentist.normalized_metric == "clicks_per_1000_views"
    assert result.frequentist.uplift_absolute == pytest.approx(30)
    assert result.frequentist.winner == Verdict.B
    assert result.bayesian.p_b_gt_a == 0.8
    assert result.bayesian.p_uplift_gt_mde == 0.8
    assert result.bayesian.recommendation == "B probable"
    # 0.8 never clears the sequential bar
    assert result.sequential.decision == Verdict.INCONCLUSIVE
    assert result.decision == Verdict.B


def test_other_metric_without_views_uses_raw_values():
    result = compare_videos(
        _video(0, 0, likes=10),
        _video(0, 0, likes=10),
        ComparisonConfig(primary_metric="likes"),
    )
    assert result.frequentist.uplift_absolute == 0
    assert result.frequentist.uplift_relative == 0
    assert result.frequentist.winner == Verdict.INCONCLUSIVE
    assert result.bayesian.p_b_gt_a == 0.2
    assert result.bayesian.p_uplift_gt_mde == 0.4
    assert result.bayesian.recommendation == "Inconclusive"


def test_quality_flags():
    a = _video(1000, 10, ctr=1.5)
    b = _video(1000, 10, video_type="organic")
    result = compare_videos(a, b, rng=random.Random(2))
    assert result.quality_flags == [FLAG_MIXED_TYPES, FLAG_CTR_OVER_ONE]

    clean = compare_videos(_video(1000, 10), _video(1000, 12), rng=random.Random(2))
    assert clean.quality_flags == []


def test_seeded_rng_is_reproducible():
    first = compare_videos(_video(1000, 50), _video(1000, 60), rng=random.Random(42))
    second = compare_videos(_video(1000, 50), _video(1000, 60), rng=random.Random(42))
    assert first.bayesian.p_b_gt_a == second.bayesian.p_b_gt_a


def test_probability_b_beats_a_extremes():
    rng = random.Random(0)
    assert probability_b_beats_a(0.5, 1000.5, 1000.5, 0.5, samples=500, rng=rng) > 0.99
    assert probability_b_beats_a(1000.5, 0.5, 0.5, 1000.5, samples=500, rng=rng) < 0.01
