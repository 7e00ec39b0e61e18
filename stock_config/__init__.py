"""
stock_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    Provides the way to obtain reconciliation settings at runtime through
    ``get_active_config()``: variance thresholds, detection windows,
    investigation rules, history limit and valuation defaults.

Architecture position:
    Configuration -- sits above ``stock_kernel`` and ``stock_engines``
    and below ``stock_services`` / ``scripts``.  The kernel and the
    engines never import from ``stock_config``; services receive the
    parsed settings as constructor arguments.

Invariants enforced:
    - Defaults ship in ``defaults.yaml`` next to this module.
    - An override file (argument, else ``STOCK_RECON_CONFIG``) is merged
      onto the defaults key by key.
    - Deterministic checksum: the same merged settings always produce the
      same ``ReconciliationConfig.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``InvalidArgumentError`` -- a value fails validation.
    - ``UnsupportedValuationMethodError`` -- unknown default method.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``STOCK_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each reconciliation run to the thresholds it used.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from stock_config.loader import compute_checksum, load_yaml_file, merge_settings, parse_config
from stock_config.schema import (
    DetectionSettings,
    InvestigationSettings,
    ReconciliationConfig,
    ValuationSettings,
)

_logger = logging.getLogger("stock_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_ENV_VAR = "STOCK_RECON_CONFIG"


def get_active_config(config_path: Path | str | None = None) -> ReconciliationConfig:
    """The public configuration entrypoint.

    Args:
        config_path: Optional override file.  When omitted, the path in
            ``STOCK_RECON_CONFIG`` is used if set; otherwise the shipped
            defaults apply unchanged.

    Returns:
        A frozen ReconciliationConfig.  Not cached; callers hold it for
        the duration of a run.
    """
    data = load_yaml_file(DEFAULTS_PATH)

    override_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if override_path:
        data = merge_settings(data, load_yaml_file(Path(override_path)))

    config = parse_config(data)

    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "trace_type": "STOCK_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "override_path": str(override_path) if override_path else None,
            "threshold_percent": str(config.thresholds.percent),
            "threshold_quantity": str(config.thresholds.absolute_quantity),
            "threshold_value": str(config.thresholds.value),
            "default_valuation_method": config.valuation.default_method.value,
        },
    )
    return config


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULTS_PATH",
    "DetectionSettings",
    "InvestigationSettings",
    "ReconciliationConfig",
    "ValuationSettings",
    "compute_checksum",
    "get_active_config",
]
