"""
Tests for the reconciliation configuration layer.

Covers:
- Shipped defaults
- Override files merged key by key (argument and environment variable)
- Validation failures surface at load time
- Deterministic checksum
- STOCK_CONFIG_TRACE audit log
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from stock_config import (
    CONFIG_ENV_VAR,
    DEFAULTS_PATH,
    ReconciliationConfig,
    compute_checksum,
    get_active_config,
)
from stock_config.loader import load_yaml_file, merge_settings
from stock_engines.valuation import CostMethod
from stock_kernel.exceptions import InvalidArgumentError, UnsupportedValuationMethodError


@pytest.fixture(autouse=True)
def _no_env_override(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


def _write(tmp_path: Path, data: dict, name: str = "override.yaml") -> Path:
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:

    def test_shipped_defaults(self):
        config = get_active_config()

        assert config.config_id == "stock-reconciliation-defaults"
        assert config.thresholds.percent == Decimal("5")
        assert config.thresholds.absolute_quantity == Decimal("10")
        assert config.thresholds.value == Decimal("1000")
        assert config.detection.recent_activity_days == 30
        assert config.detection.suspicious_recent_count == 100
        assert config.investigation.lookback_days == 90
        assert config.investigation.transaction_limit == 100
        assert config.investigation.balance_tolerance == Decimal("0.01")
        assert config.history_limit == 50
        assert config.valuation.default_method == CostMethod.WEIGHTED_AVG
        assert "purchase" in config.valuation.acquisition_movement_types

    def test_defaults_match_dataclass_defaults(self):
        loaded = get_active_config()
        built = ReconciliationConfig()

        assert loaded.thresholds == built.thresholds
        assert loaded.detection == built.detection
        assert loaded.investigation == built.investigation
        assert loaded.valuation == built.valuation

    def test_defaults_file_ships_next_to_package(self):
        assert DEFAULTS_PATH.exists()
        assert "thresholds" in load_yaml_file(DEFAULTS_PATH)


class TestOverrides:

    def test_partial_override_keeps_other_keys(self, tmp_path):
        path = _write(tmp_path, {"thresholds": {"percent": "2.5"}})

        config = get_active_config(path)

        assert config.thresholds.percent == Decimal("2.5")
        assert config.thresholds.absolute_quantity == Decimal("10")

    def test_env_var_override(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {"valuation": {"default_method": "FIFO"}})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert get_active_config().valuation.default_method == CostMethod.FIFO

    def test_argument_wins_over_env_var(self, tmp_path, monkeypatch):
        env_path = _write(tmp_path, {"history": {"limit": 5}}, "env.yaml")
        arg_path = _write(tmp_path, {"history": {"limit": 7}}, "arg.yaml")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(env_path))

        assert get_active_config(arg_path).history_limit == 7

    def test_movement_types_replaced_not_merged(self, tmp_path):
        path = _write(tmp_path, {"valuation": {"acquisition_movement_types": ["purchase"]}})

        config = get_active_config(path)

        assert config.valuation.acquisition_movement_types == frozenset({"purchase"})

    def test_merge_does_not_mutate_inputs(self):
        base = {"a": {"x": 1, "y": 2}}
        override = {"a": {"y": 3}}

        merged = merge_settings(base, override)

        assert merged == {"a": {"x": 1, "y": 3}}
        assert base == {"a": {"x": 1, "y": 2}}


class TestValidation:

    @pytest.mark.parametrize(
        "override",
        [
            {"thresholds": {"percent": "-1"}},
            {"thresholds": {"value": "lots"}},
            {"investigation": {"lookback_days": 0}},
            {"investigation": {"gap_days": "thirty"}},
            {"detection": {"recent_activity_days": -5}},
            {"history": {"limit": 0}},
            {"valuation": {"acquisition_movement_types": []}},
            {"valuation": {"acquisition_movement_types": "purchase"}},
        ],
    )
    def test_invalid_values_rejected(self, tmp_path, override):
        with pytest.raises(InvalidArgumentError):
            get_active_config(_write(tmp_path, override))

    def test_unknown_valuation_method(self, tmp_path):
        path = _write(tmp_path, {"valuation": {"default_method": "specific_id"}})

        with pytest.raises(UnsupportedValuationMethodError):
            get_active_config(path)

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(InvalidArgumentError):
            get_active_config(path)


class TestChecksum:

    def test_deterministic(self):
        assert get_active_config().checksum == get_active_config().checksum

    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_changes_with_settings(self, tmp_path):
        path = _write(tmp_path, {"thresholds": {"value": "500"}})

        assert get_active_config(path).checksum != get_active_config().checksum


class TestConfigTrace:

    def test_trace_emitted(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "STOCK_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["checksum"] == config.checksum
        assert traces[-1]["threshold_percent"] == "5"
        assert traces[-1]["override_path"] is None
