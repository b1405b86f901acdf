"""
Certification Kernel

The workflow core for building-compliance (SLF) certification projects:
- Canonical status registry and phase table
- Pure role/order transition rules
- Checklist, report-approval, and schedule sub-workflows
- A single orchestrator owning every project status write
- Compare-and-set status writes with an append-only transition history
"""

__version__ = "0.1.0"
