"""Tests for configuration loading, deep merging and overrides."""

from pathlib import Path

import pytest
import yaml

from event_merge.errors import ConfigurationError
from event_merge.matching.config import (
    DedupConfig,
    WeightConfig,
    apply_overrides,
    deep_merge,
    load_dedup_config,
)

SHIPPED_CONFIG = Path(__file__).resolve().parents[1] / "src" / "event_merge" / "config" / "dedup.yaml"


class TestDefaultValues:
    """Default configuration values when no YAML exists."""

    def test_missing_file_returns_defaults(self, tmp_path: Path) -> None:
        assert load_dedup_config(tmp_path / "nope.yaml") == DedupConfig()

    def test_thresholds(self) -> None:
        t = DedupConfig().thresholds
        assert (t.title, t.venue, t.location, t.date, t.semantic, t.overall) == (
            0.85,
            0.80,
            0.75,
            0.90,
            0.75,
            0.80,
        )

    def test_weights(self) -> None:
        w = DedupConfig().weights
        assert w.total() == pytest.approx(1.0)
        assert w.title == 0.35
        assert w.semantic == 0.05

    def test_performance(self) -> None:
        p = DedupConfig().performance
        assert p.batch_size == 100
        assert p.max_candidates == 50
        assert p.enable_caching is True
        assert p.parallel_processing is True


class TestLoadFromYaml:
    def test_shipped_config_matches_defaults(self) -> None:
        assert load_dedup_config(SHIPPED_CONFIG) == DedupConfig()

    def test_partial_override(self, tmp_path: Path) -> None:
        """Only keys present in the file change."""
        path = tmp_path / "dedup.yaml"
        path.write_text(yaml.dump({"thresholds": {"overall": 0.7}}))
        cfg = load_dedup_config(path)
        assert cfg.thresholds.overall == 0.7
        assert cfg.thresholds.title == 0.85
        assert cfg.weights == WeightConfig()

    def test_empty_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_dedup_config(path) == DedupConfig()

    def test_invalid_yaml_value(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"performance": {"batch_size": 0}}))
        with pytest.raises(ConfigurationError) as exc_info:
            load_dedup_config(path)
        assert any(e.startswith("performance.batch_size:") for e in exc_info.value.errors)


class TestDeepMerge:
    def test_nested_keys_preserved(self) -> None:
        base = {"a": {"x": 1, "y": 2}, "b": 3}
        assert deep_merge(base, {"a": {"y": 20}}) == {"a": {"x": 1, "y": 20}, "b": 3}

    def test_inputs_untouched(self) -> None:
        base = {"a": {"x": 1}}
        updates = {"a": {"x": 2}}
        deep_merge(base, updates)
        assert base == {"a": {"x": 1}}
        assert updates == {"a": {"x": 2}}

    def test_non_dict_replaces(self) -> None:
        assert deep_merge({"a": {"x": 1}}, {"a": 5}) == {"a": 5}

    def test_new_keys_added(self) -> None:
        assert deep_merge({"a": 1}, {"b": 2}) == {"a": 1, "b": 2}


class TestApplyOverrides:
    def test_unspecified_keys_keep_values(self) -> None:
        cfg = apply_overrides(DedupConfig(), {"performance": {"batch_size": 10}})
        assert cfg.performance.batch_size == 10
        assert cfg.performance.max_candidates == 50
        assert cfg.thresholds == DedupConfig().thresholds

    def test_original_not_modified(self) -> None:
        original = DedupConfig()
        apply_overrides(original, {"thresholds": {"overall": 0.5}})
        assert original.thresholds.overall == 0.80

    def test_out_of_range(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            apply_overrides(DedupConfig(), {"thresholds": {"overall": 1.5}})
        assert exc_info.value.errors[0].startswith("thresholds.overall:")

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            apply_overrides(DedupConfig(), {"weights": {"titel": 0.5}})
        assert any(e.startswith("weights.titel:") for e in exc_info.value.errors)

    def test_every_invalid_field_reported(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            apply_overrides(
                DedupConfig(),
                {"thresholds": {"title": -1}, "performance": {"max_candidates": 0}},
            )
        assert len(exc_info.value.errors) == 2

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ConfigurationError):
            apply_overrides(DedupConfig(), ["thresholds"])


class TestSourceTrust:
    def test_known_source(self) -> None:
        assert DedupConfig().conflicts.trust_for("Eventbrite") == 0.88

    def test_unknown_source(self) -> None:
        assert DedupConfig().conflicts.trust_for("somewhere") == 0.5
        assert DedupConfig().conflicts.trust_for(None) == 0.5
