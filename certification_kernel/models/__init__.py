"""ORM models for the certification kernel."""

from certification_kernel.models.checklist_response import ChecklistResponse
from certification_kernel.models.inspection_report import InspectionReport
from certification_kernel.models.project import Project, TeamAssignment
from certification_kernel.models.schedule_event import ScheduleEvent
from certification_kernel.models.workflow_transition import WorkflowTransition

__all__ = [
    "ChecklistResponse",
    "InspectionReport",
    "Project",
    "ScheduleEvent",
    "TeamAssignment",
    "WorkflowTransition",
]
