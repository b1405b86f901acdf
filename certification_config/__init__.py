"""
certification_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  Sits beside ``certification_kernel``; neither imports
    the other.  ``certification_services.bootstrap`` translates the
    returned ``CertificationConfig`` into kernel constructor arguments.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``CERTIFICATION_CONFIG_TRACE`` log entry with the config id, version,
    checksum and source, tying a running process to the exact document
    that configured it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from certification_config.loader import apply_env_overrides, load_yaml_file, parse_config
from certification_config.schema import (
    CertificationConfig,
    DatabaseSettings,
    LoggingSettings,
    ScheduleSettings,
    WorkflowSettings,
)

_logger = logging.getLogger("certification_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> CertificationConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML document to load.  Defaults to the packaged
            ``sets/default.yaml``.
        environ: Environment used for overrides.  Defaults to
            ``os.environ``.

    Raises:
        FileNotFoundError: the document does not exist.
        KeyError: a required key is missing.
        ValueError: a value fails validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    data = apply_env_overrides(load_yaml_file(path), env)
    config = parse_config(data, source=str(path))

    _logger.info(
        "CERTIFICATION_CONFIG_TRACE",
        extra={
            "trace_type": "CERTIFICATION_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": config.source,
            "log_level": config.logging.level,
        },
    )
    return config


__all__ = [
    "CertificationConfig",
    "DEFAULT_CONFIG_PATH",
    "DatabaseSettings",
    "LoggingSettings",
    "ScheduleSettings",
    "WorkflowSettings",
    "get_active_config",
]
