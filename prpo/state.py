"""
Shared run context for the triage pipeline.
Every stage reads from and writes to this state object.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime
from prpo.schemas.requisition import RequisitionRecord
from prpo.schemas.po import PurchaseOrderHistory
from prpo.schemas.output import NotificationEntry, PricingCallLog, RunLogEntry


class RunState(BaseModel):
    """
    Mutable state object for one triage run.

    This state is passed between the pipeline stages. Each stage:
    1. Reads the sets produced by the stages before it
    2. Annotates the records it owns
    3. Appends to the run log
    4. Passes state to the next stage
    """

    run_id: str
    started_at: datetime

    # Input
    requisitions: List[RequisitionRecord] = Field(default_factory=list)
    po_history: List[PurchaseOrderHistory] = Field(default_factory=list)

    # Validation phase
    valid_requisitions: List[RequisitionRecord] = Field(default_factory=list)
    invalid_requisitions: List[RequisitionRecord] = Field(default_factory=list)

    # Notifications
    notifications: List[NotificationEntry] = Field(default_factory=list)

    # Matching phase (rebuilt per run)
    lookup_index: Dict[str, PurchaseOrderHistory] = Field(default_factory=dict)
    unit_price_groups: Dict[str, List[float]] = Field(default_factory=dict)
    matched_count: int = 0

    # Quotation phase
    pzaf_requisitions: List[RequisitionRecord] = Field(default_factory=list)
    quotations: List[RequisitionRecord] = Field(default_factory=list)

    # Pricing phase
    pricing_calls: List[PricingCallLog] = Field(default_factory=list)
    llm_call_count: int = 0

    # Per-stage counters
    contract_counts: Dict[str, int] = Field(default_factory=dict)

    # Audit trail
    log: List[RunLogEntry] = Field(default_factory=list)
    completed_at: Optional[datetime] = None

    def add_log(self, stage: str, message: str, level: str = "info") -> None:
        """Add an entry to the run log."""
        self.log.append(
            RunLogEntry(
                timestamp=datetime.utcnow(),
                stage=stage,
                message=message,
                level=level,
            )
        )

    def get_run_log(self) -> str:
        """Get a human-readable rendering of the run log."""
        if not self.log:
            return "No log entries."

        lines = []
        for entry in self.log:
            lines.append(f"[{entry.stage}] {entry.message}")

        return "\n".join(lines)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the current state."""
        return {
            "run_id": self.run_id,
            "requisitions": len(self.requisitions),
            "valid": len(self.valid_requisitions),
            "invalid": len(self.invalid_requisitions),
            "quotations": len(self.quotations),
            "llm_calls": self.llm_call_count,
        }
