"""
Violation detection.

Classifies tower update outcomes and freezes each violation into an
`Incident` carrying the evidence needed to verify it independently.
"""

from .detector import ViolationDetector, classify
from .incident import Incident, IncidentKind
from .report import render_report

__all__ = [
    "Incident",
    "IncidentKind",
    "ViolationDetector",
    "classify",
    "render_report",
]
