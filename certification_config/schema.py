"""
Certification configuration schema.

Frozen dataclasses parsed from a YAML configuration set by
``certification_config.loader``.  Values stay as plain tokens (strings,
ints, bools); translating them into kernel types happens in
``certification_services.bootstrap``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    """Engine parameters passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class WorkflowSettings:
    """Orchestrator behaviour."""

    auto_commit: bool = True
    stale_retry_limit: int = 1


@dataclass(frozen=True)
class ScheduleSettings:
    """Assignee role tokens per schedule type token."""

    assignee_roles: dict[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class CertificationConfig:
    """The runtime configuration artifact returned by ``get_active_config``."""

    config_id: str
    version: int
    database: DatabaseSettings
    logging: LoggingSettings
    workflow: WorkflowSettings
    schedule: ScheduleSettings
    checksum: str
    source: str = ""
