"""Tests for engine configuration and environment overrides.

Run from repo root:
    python -m pytest wealth_engine/tests/test_config.py -v
"""

from __future__ import annotations

import pytest

from wealth_engine.config import DEFAULT_CONFIG, EngineConfig


def test_defaults():
    assert DEFAULT_CONFIG.min_purchases == 2
    assert DEFAULT_CONFIG.round_to == 100
    assert DEFAULT_CONFIG.date_tolerance_days == 3
    assert DEFAULT_CONFIG.amount_tolerance == 0.10
    assert DEFAULT_CONFIG.safe_withdrawal_rate == 0.04
    assert DEFAULT_CONFIG.return_assumptions["stocks"] == 15.0
    assert "groww.iccl" in DEFAULT_CONFIG.provider_keywords


def test_empty_environment_keeps_defaults():
    assert EngineConfig.from_env({}) == EngineConfig()


def test_environment_overrides():
    config = EngineConfig.from_env({
        "WEALTH_ENGINE_MIN_PURCHASES": "3",
        "WEALTH_ENGINE_DATE_TOLERANCE_DAYS": "5",
        "WEALTH_ENGINE_SAFE_WITHDRAWAL_RATE": "0.035",
        "WEALTH_ENGINE_PROVIDER_KEYWORDS": "Zerodha, COIN ,,kuvera",
        "WEALTH_ENGINE_ROUND_TO": "",
    })
    assert config.min_purchases == 3
    assert config.date_tolerance_days == 5
    assert config.safe_withdrawal_rate == 0.035
    assert config.provider_keywords == ("zerodha", "coin", "kuvera")
    assert config.round_to == 100


def test_bad_environment_value_names_variable():
    with pytest.raises(ValueError, match="WEALTH_ENGINE_MIN_PURCHASES"):
        EngineConfig.from_env({"WEALTH_ENGINE_MIN_PURCHASES": "two"})


@pytest.mark.parametrize("changes", [
    {"min_purchases": 0},
    {"round_to": 0},
    {"date_tolerance_days": -1},
    {"safe_withdrawal_rate": 0},
    {"max_projection_years": 0},
])
def test_invalid_overrides_rejected(changes):
    with pytest.raises(ValueError):
        EngineConfig().with_overrides(**changes)


def test_with_overrides_leaves_original_untouched():
    loose = DEFAULT_CONFIG.with_overrides(amount_tolerance=0.2)
    assert loose.amount_tolerance == 0.2
    assert DEFAULT_CONFIG.amount_tolerance == 0.10


def test_return_assumptions_are_read_only():
    with pytest.raises(TypeError):
        DEFAULT_CONFIG.return_assumptions["stocks"] = 99.0
    assert DEFAULT_CONFIG.return_assumptions["stocks"] == 15.0


def test_config_is_hashable():
    assert hash(EngineConfig()) == hash(DEFAULT_CONFIG)
    assert EngineConfig() in {DEFAULT_CONFIG}


def test_return_assumption_override_copied():
    custom = {"stocks": 18.0, "portfolio": 10.0}
    config = EngineConfig().with_overrides(return_assumptions=custom)
    custom["stocks"] = 1.0
    assert config.return_assumptions["stocks"] == 18.0
