"""
Schema migration helpers for the tenancy revisions

Public API:
    TenantColumnSpec  — shape of the isolation column
    SchemaInspector   — reflection-based existence checks
    StepReport        — per-target outcomes of one migration step
    operations        — idempotent, reversible schema helpers
"""

from .column_spec import TenantColumnSpec
from .inspection import SchemaInspector
from .reports import OutcomeStatus, StepReport, TargetOutcome

__all__ = ["OutcomeStatus", "SchemaInspector", "StepReport", "TargetOutcome", "TenantColumnSpec"]
