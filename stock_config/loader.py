"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Load the YAML defaults and an optional override file, merge them, and
parse the result into the frozen ``stock_config.schema`` dataclasses.
Runtime callers go through ``stock_config.get_active_config()``.

Invariants enforced
-------------------
* Decimal settings are parsed from their string form; floats never reach
  the threshold comparisons.
* An override file only needs the keys it changes; sections are merged
  key by key onto the defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the merged
  settings for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad value  -> ``InvalidArgumentError`` (from here or the schema).
* Unknown valuation method  -> ``UnsupportedValuationMethodError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    DetectionSettings,
    InvestigationSettings,
    ReconciliationConfig,
    ValuationSettings,
)
from stock_engines.valuation import CostMethod
from stock_engines.variance import VarianceThresholds
from stock_kernel.exceptions import InvalidArgumentError, UnsupportedValuationMethodError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        InvalidArgumentError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidArgumentError("config_file", str(path), "top level must be a mapping")
    return data


def merge_settings(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` on ``base``; neither input is mutated."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_decimal(name: str, value: Any) -> Decimal:
    """Parse a Decimal from a YAML scalar (string preferred)."""
    if isinstance(value, bool) or value is None:
        raise InvalidArgumentError(name, value, "expected a decimal number")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidArgumentError(name, value, "expected a decimal number") from None


def parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(name, value, "expected an integer")
    return value


def parse_cost_method(value: Any) -> CostMethod:
    try:
        return CostMethod(str(value).lower())
    except ValueError:
        raise UnsupportedValuationMethodError(str(value)) from None


def parse_thresholds(data: dict[str, Any]) -> VarianceThresholds:
    return VarianceThresholds(
        percent=parse_decimal("thresholds.percent", data.get("percent", "5")),
        absolute_quantity=parse_decimal(
            "thresholds.absolute_quantity", data.get("absolute_quantity", "10")
        ),
        value=parse_decimal("thresholds.value", data.get("value", "1000")),
    )


def parse_detection(data: dict[str, Any]) -> DetectionSettings:
    return DetectionSettings(
        recent_activity_days=parse_int(
            "detection.recent_activity_days", data.get("recent_activity_days", 30)
        ),
        suspicious_recent_count=parse_int(
            "detection.suspicious_recent_count", data.get("suspicious_recent_count", 100)
        ),
    )


def parse_investigation(data: dict[str, Any]) -> InvestigationSettings:
    return InvestigationSettings(
        lookback_days=parse_int("investigation.lookback_days", data.get("lookback_days", 90)),
        transaction_limit=parse_int(
            "investigation.transaction_limit", data.get("transaction_limit", 100)
        ),
        gap_days=parse_int("investigation.gap_days", data.get("gap_days", 30)),
        balance_tolerance=parse_decimal(
            "investigation.balance_tolerance", data.get("balance_tolerance", "0.01")
        ),
        max_corrections=parse_int(
            "investigation.max_corrections", data.get("max_corrections", 5)
        ),
    )


def parse_valuation(data: dict[str, Any]) -> ValuationSettings:
    method = parse_cost_method(data.get("default_method", CostMethod.WEIGHTED_AVG.value))
    types = data.get("acquisition_movement_types")
    if types is None:
        return ValuationSettings(default_method=method)
    if not isinstance(types, list):
        raise InvalidArgumentError(
            "valuation.acquisition_movement_types", types, "expected a list"
        )
    return ValuationSettings(
        default_method=method,
        acquisition_movement_types=frozenset(str(t) for t in types),
    )


def parse_config(data: dict[str, Any]) -> ReconciliationConfig:
    """Build a ReconciliationConfig from merged YAML data."""
    history = data.get("history") or {}
    return ReconciliationConfig(
        config_id=str(data.get("config_id", "stock-reconciliation")),
        version=parse_int("version", data.get("version", 1)),
        thresholds=parse_thresholds(data.get("thresholds") or {}),
        detection=parse_detection(data.get("detection") or {}),
        investigation=parse_investigation(data.get("investigation") or {}),
        valuation=parse_valuation(data.get("valuation") or {}),
        history_limit=parse_int("history.limit", history.get("limit", 50)),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
