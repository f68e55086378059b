"""Tests for Settings parsing, validation and per-run configs."""

from __future__ import annotations

from pathlib import Path

import pytest

from groundcheck.config import CITABLE_EXTENSIONS, EXTENSION_MAP, Settings
from groundcheck.constants import HEDGE_PREFIX, Confidence


def _settings(**kwargs: object) -> Settings:
    return Settings(_env_file=None, **kwargs)  # type: ignore[arg-type]


class TestSkipDirectoriesParsing:
    def test_comma_separated_string_parsed_to_list(self) -> None:
        """_parse_skip_dirs splits comma-separated strings."""
        s = _settings(skip_directories="node_modules , dist")
        assert s.skip_directories == ["node_modules", "dist"]

    def test_list_passthrough(self) -> None:
        s = _settings(skip_directories=["vendor"])
        assert s.skip_directories == ["vendor"]

    def test_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SKIP_DIRECTORIES", "a,b")
        assert _settings().skip_directories == ["a", "b"]


class TestValidation:
    @pytest.mark.parametrize(
        "field",
        [
            "flare_confidence_threshold",
            "minicheck_grounding_threshold",
            "minicheck_exact_match_weight",
            "cove_hedge_threshold",
        ],
    )
    def test_thresholds_must_be_unit_interval(self, field: str) -> None:
        with pytest.raises(ValueError, match="within"):
            _settings(**{field: 1.5})

    def test_negative_rounds_rejected(self) -> None:
        with pytest.raises(ValueError, match=">= 0"):
            _settings(retrieval_max_rounds=-1)

    def test_zero_rounds_allowed(self) -> None:
        assert _settings(retrieval_max_rounds=0).retrieval_max_rounds == 0

    def test_retry_attempts_positive(self) -> None:
        with pytest.raises(ValueError, match=">= 1"):
            _settings(probe_retry_attempts=0)

    def test_negative_coverage_gain_allowed(self) -> None:
        assert _settings(retrieval_min_coverage_gain=-1.0).retrieval_min_coverage_gain == -1.0


class TestRunConfigs:
    def test_defaults(self) -> None:
        s = _settings()
        assert s.iterative_config().max_rounds == 3
        assert s.active_config().confidence_threshold == Confidence.FLARE_TRIGGER
        assert s.minicheck_config().grounding_threshold == Confidence.GROUNDED
        cove = s.cove_config()
        assert cove.hedge_low_confidence is True
        assert cove.remove_unverified is False
        assert cove.hedge_prefix == HEDGE_PREFIX

    def test_overrides_flow_through(self) -> None:
        s = _settings(
            retrieval_term_expansion=False,
            flare_window_size=0,
            cove_remove_unverified=True,
            minicheck_exact_match_weight=0.5,
        )
        assert s.iterative_config().term_expansion is False
        assert s.active_config().window_size == 0
        assert s.cove_config().remove_unverified is True
        assert s.minicheck_config().exact_match_weight == 0.5

    def test_log_dir_is_path(self, tmp_path: Path) -> None:
        assert _settings(log_dir=str(tmp_path)).log_dir == tmp_path


def test_citable_extensions_longest_first() -> None:
    """Longer extensions come first so 'tsx' wins over 'ts'."""
    assert CITABLE_EXTENSIONS.index("tsx") < CITABLE_EXTENSIONS.index("ts")
    assert CITABLE_EXTENSIONS.index("pyi") < CITABLE_EXTENSIONS.index("py")
    assert len(CITABLE_EXTENSIONS) == len({e.lstrip(".") for e in EXTENSION_MAP})
