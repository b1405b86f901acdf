"""
certification_services -- identity, event dispatch and wiring around the kernel.

Architecture position:
    Services.  May import ``certification_kernel`` and
    ``certification_config``; neither of them imports this package
    (enforced by tests/architecture/test_import_boundaries.py).
"""

from certification_services.bootstrap import (
    assignee_roles_from,
    build_orchestrator,
    init_database,
)
from certification_services.event_dispatch import (
    LoggingEventSink,
    LoggingNotifier,
    Notification,
    NotificationDispatcher,
    Notifier,
)
from certification_services.role_directory import (
    IdentityProvider,
    ProjectRoleDirectory,
    StaticIdentityProvider,
)

__all__ = [
    "IdentityProvider",
    "LoggingEventSink",
    "LoggingNotifier",
    "Notification",
    "NotificationDispatcher",
    "Notifier",
    "ProjectRoleDirectory",
    "StaticIdentityProvider",
    "assignee_roles_from",
    "build_orchestrator",
    "init_database",
]
