"""Services for the certification kernel (write side)."""

from certification_kernel.services.checklist_service import ChecklistService
from certification_kernel.services.project_service import ProjectService
from certification_kernel.services.report_approval_service import (
    ReportApprovalChain,
    ReportStepResult,
)
from certification_kernel.services.schedule_service import ScheduleCoordinator
from certification_kernel.services.team_assignment_service import TeamAssignmentService
from certification_kernel.services.workflow_orchestrator import (
    OutcomeStatus,
    TransitionOutcome,
    WorkflowOrchestrator,
)

__all__ = [
    "ChecklistService",
    "OutcomeStatus",
    "ProjectService",
    "ReportApprovalChain",
    "ReportStepResult",
    "ScheduleCoordinator",
    "TeamAssignmentService",
    "TransitionOutcome",
    "WorkflowOrchestrator",
]
