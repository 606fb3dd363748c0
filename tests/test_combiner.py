"""Tests for the score combiner."""

import pytest

from event_merge.matching.combiner import combined_score
from event_merge.matching.config import WeightConfig


def _signals(title=1.0, venue=1.0, location=1.0, date=1.0, semantic=1.0) -> dict:
    return {"title": title, "venue": venue, "location": location, "date": date, "semantic": semantic}


class TestCombinedScore:
    """Tests for the weighted average combination."""

    def test_all_ones(self) -> None:
        assert combined_score(_signals()) == pytest.approx(1.0)

    def test_all_zeros(self) -> None:
        assert combined_score(_signals(0.0, 0.0, 0.0, 0.0, 0.0)) == pytest.approx(0.0)

    def test_default_weights(self) -> None:
        """Weighted average with default weights (0.35, 0.25, 0.20, 0.15, 0.05)."""
        signals = _signals(title=1.0, venue=0.0, location=1.0, date=0.0, semantic=0.0)
        # 0.35*1 + 0.20*1 = 0.55
        assert combined_score(signals) == pytest.approx(0.55)

    def test_missing_signal_renormalises(self) -> None:
        """A ``None`` signal is dropped and the rest re-weighted."""
        signals = _signals(title=1.0, venue=0.0, location=0.0, date=0.0, semantic=None)
        # 0.35 / 0.95
        assert combined_score(signals) == pytest.approx(0.35 / 0.95)

    def test_zero_signal_still_counts(self) -> None:
        with_zero = combined_score(_signals(location=0.0))
        assert with_zero == pytest.approx(0.80)

    def test_weight_normalization(self) -> None:
        """Weights that don't sum to 1.0 are normalised."""
        weights = WeightConfig(title=1.0, venue=1.0, location=1.0, date=1.0, semantic=0.0)
        signals = _signals(title=0.8, venue=0.6, location=0.4, date=0.2, semantic=0.9)
        assert combined_score(signals, weights) == pytest.approx((0.8 + 0.6 + 0.4 + 0.2) / 4.0)

    def test_zero_weights(self) -> None:
        weights = WeightConfig(title=0.0, venue=0.0, location=0.0, date=0.0, semantic=0.0)
        assert combined_score(_signals(), weights) == 0.0

    def test_only_semantic_missing_and_weighted(self) -> None:
        weights = WeightConfig(title=0.0, venue=0.0, location=0.0, date=0.0, semantic=1.0)
        assert combined_score(_signals(semantic=None), weights) == 0.0
