"""
assessment_config -- single public entrypoint for assessment configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``: default rates, risk-tier boundaries, write-off
    percentages and money precision, loaded from YAML and validated.

Architecture position:
    Configuration -- sits above ``assessment_kernel`` and
    ``assessment_engines``.  The kernel MUST NEVER import from
    ``assessment_config``; ``bridges`` translates loaded sets into kernel
    value objects.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``KeyError`` -- a required key is missing.
    - ``ValueError`` -- a value is out of range.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``ASSESSMENT_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every calculation back to the configuration that
    governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from assessment_config.loader import load_configuration
from assessment_config.schema import AssessmentConfigurationSet

_logger = logging.getLogger("assessment_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> AssessmentConfigurationSet:
    """The ONLY public configuration entrypoint.

    Args:
        path: Configuration file to load.  Defaults to the bundled
            ``sets/default.yaml``.

    Returns:
        A validated, frozen ``AssessmentConfigurationSet``.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    config = load_configuration(config_path)

    _logger.info(
        "ASSESSMENT_CONFIG_TRACE",
        extra={
            "trace_type": "ASSESSMENT_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "scope_client": config.scope.client,
            "currency": config.scope.currency,
            "source": str(config_path),
        },
    )
    return config


__all__ = ["AssessmentConfigurationSet", "get_active_config"]
