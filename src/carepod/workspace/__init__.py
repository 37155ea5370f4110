"""Per-session patient workspace."""

from carepod.workspace.context import CancelToken, PatientContext, PatientView, resolve_context
from carepod.workspace.workspace import PatientWorkspace

__all__ = [
    "CancelToken",
    "PatientContext",
    "PatientView",
    "PatientWorkspace",
    "resolve_context",
]
