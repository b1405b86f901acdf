"""
Configuration Loader (``certification_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into the frozen
``certification_config.schema`` dataclasses.  Runtime callers go through
``certification_config.get_active_config()``, never through this module.

Invariants enforced
-------------------
* Missing required keys raise ``KeyError``; bad values raise ``ValueError``.
  There are no silent defaults for required fields.
* ``compute_checksum`` is deterministic over the parsed document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from certification_config.schema import (
    CertificationConfig,
    DatabaseSettings,
    LoggingSettings,
    ScheduleSettings,
    WorkflowSettings,
)

_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())

# Environment variables that override the loaded document
ENV_DATABASE_URL = "CERTIFICATION_DATABASE_URL"
ENV_LOG_LEVEL = "CERTIFICATION_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields ``{}``.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    result = {k: dict(v) if isinstance(v, dict) else v for k, v in data.items()}
    if environ.get(ENV_DATABASE_URL):
        result.setdefault("database", {})["url"] = environ[ENV_DATABASE_URL]
    if environ.get(ENV_LOG_LEVEL):
        result.setdefault("logging", {})["level"] = environ[ENV_LOG_LEVEL]
    return result


def _positive_int(value: Any, name: str, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValueError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return value


def _flag(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    url = data["url"]
    if not isinstance(url, str) or not url.strip():
        raise ValueError("database.url must be a non-empty string")
    return DatabaseSettings(
        url=url.strip(),
        echo=_flag(data.get("echo", False), "database.echo"),
        pool_size=_positive_int(data.get("pool_size", 10), "database.pool_size"),
        max_overflow=_positive_int(data.get("max_overflow", 10), "database.max_overflow", 0),
        pool_timeout=_positive_int(data.get("pool_timeout", 30), "database.pool_timeout"),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level {level!r} is not a logging level")
    return LoggingSettings(level=level)


def parse_workflow(data: dict[str, Any]) -> WorkflowSettings:
    return WorkflowSettings(
        auto_commit=_flag(data.get("auto_commit", True), "workflow.auto_commit"),
        stale_retry_limit=_positive_int(
            data.get("stale_retry_limit", 1), "workflow.stale_retry_limit", 0
        ),
    )


def parse_schedule(data: dict[str, Any]) -> ScheduleSettings:
    raw = data.get("assignee_roles") or {}
    if not isinstance(raw, dict):
        raise ValueError("schedule.assignee_roles must be a mapping")
    roles: dict[str, tuple[str, ...]] = {}
    for schedule_type, tokens in raw.items():
        if not isinstance(tokens, list) or not tokens:
            raise ValueError(
                f"schedule.assignee_roles.{schedule_type} must be a non-empty list"
            )
        roles[str(schedule_type)] = tuple(str(t) for t in tokens)
    return ScheduleSettings(assignee_roles=roles)


def parse_config(data: dict[str, Any], source: str = "") -> CertificationConfig:
    """Parse a full configuration document.

    Raises:
        KeyError: missing ``config_id``, ``version`` or ``database.url``.
        ValueError: invalid values.
    """
    return CertificationConfig(
        config_id=str(data["config_id"]),
        version=_positive_int(data["version"], "version"),
        database=parse_database(data["database"]),
        logging=parse_logging(data.get("logging") or {}),
        workflow=parse_workflow(data.get("workflow") or {}),
        schedule=parse_schedule(data.get("schedule") or {}),
        checksum=compute_checksum(data),
        source=source,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
