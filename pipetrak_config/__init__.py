"""
pipetrak_config -- single public entrypoint for report configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``: milestone templates per component type and
    version, default sort preferences per report, and category labels.
    YAML loading is internal tooling and never exposed to callers.

Architecture position:
    Configuration -- YAML-driven, validated at load time.  This package
    sits above ``pipetrak_kernel`` and ``pipetrak_engines``.  The engines
    MUST NEVER import from ``pipetrak_config``; bridges in this package
    translate the loaded set into engine objects.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Load-time validation: the set must pass ``validate_configuration``
      before any engine object is built.
    - Deterministic checksum: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set is missing.
    - ``ConfigValidationError`` (a ``ValueError``) -- validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PIPETRAK_CONFIG_TRACE`` log entry containing the config_id, version,
    checksum and template count, tying each report run to the exact
    template versions that governed its earned-value calculation.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pipetrak_config.bridges import ReportConfiguration, build_report_configuration
from pipetrak_config.loader import load_configuration_set
from pipetrak_config.validator import ConfigValidationError, validate_configuration

_logger = logging.getLogger("pipetrak.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    set_name: str = "default",
    config_dir: Path | None = None,
) -> ReportConfiguration:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``ReportConfiguration`` has passed validation.
        - A ``PIPETRAK_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - No caching across calls.

    Args:
        set_name: Name of the subdirectory under the sets directory.
        config_dir: Override path to the configuration sets directory.
            Defaults to pipetrak_config/sets/.

    Raises:
        FileNotFoundError: If the configuration set does not exist.
        ConfigValidationError: If configuration validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    set_dir = sets_dir / set_name
    if not set_dir.is_dir():
        raise FileNotFoundError(f"Configuration set not found: {set_dir}")

    config_set = load_configuration_set(set_dir)

    validation = validate_configuration(config_set)
    for warning in validation.warnings:
        _logger.warning(
            "config_validation_warning",
            extra={"config_set_id": config_set.config_id, "warning": warning},
        )
    if not validation.is_valid:
        raise ConfigValidationError(validation.errors)

    config = build_report_configuration(config_set)

    _logger.info(
        "PIPETRAK_CONFIG_TRACE",
        extra={
            "trace_type": "PIPETRAK_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.config_version,
            "checksum": config.checksum,
            "template_count": len(config.templates),
        },
    )
    return config


__all__ = [
    "ConfigValidationError",
    "ReportConfiguration",
    "get_active_config",
]
