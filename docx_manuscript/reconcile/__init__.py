"""Style and list-numbering reconciliation between two packages."""
from docx_manuscript.reconcile.lists import ListBinding, ListRegionMarker, add_new_numberings, apply_list_styles
from docx_manuscript.reconcile.styles import ReconcileResult, StyleReconciler

__all__ = [
    "ListBinding",
    "ListRegionMarker",
    "ReconcileResult",
    "StyleReconciler",
    "add_new_numberings",
    "apply_list_styles",
]
