"""
PR→PO Triage Agent
"""

__version__ = "1.0.0"
__description__ = "Purchase requisition triage against PO history"

from prpo.main import run_triage, TriageService
from prpo.state import RunState
from prpo.schemas.output import TriageResult

__all__ = [
    "run_triage",
    "TriageService",
    "RunState",
    "TriageResult",
]
