"""
Output schemas for the triage results.
Defines what the reporting, export and approval consumers read.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

from prpo.schemas.requisition import RequisitionRecord


class NotificationItem(BaseModel):
    requisition_id: Optional[str] = None
    material_number: Optional[str] = None
    missing: str


class NotificationEntry(BaseModel):
    """A missing-field notice scheduled for one requester."""
    timestamp: datetime
    recipient: str
    email: str
    subject: str
    pr_count: int
    pr_list: List[NotificationItem] = Field(default_factory=list)
    status: str = "scheduled"


class PricingCallLog(BaseModel):
    """Audit entry for a successful external price estimate."""
    step: str = "price_estimation"
    requisition_id: Optional[str] = None
    material_number: Optional[str] = None
    result: Dict[str, Any]


class RunLogEntry(BaseModel):
    """A single entry in the run log."""
    timestamp: datetime
    stage: str
    message: str
    level: str = "info"


class ContractSummary(BaseModel):
    standard: int = 0
    non_standard: int = 0
    not_applicable: int = 0


class RunSummary(BaseModel):
    """Counters reported at the end of a run."""
    total: int
    urgent: int = 0
    normal: int = 0
    flexible: int = 0
    auto_complete: int = 0
    needs_review: int = 0
    contract_summary: ContractSummary = Field(default_factory=ContractSummary)
    price_method_summary: Dict[str, int] = Field(default_factory=dict)
    llm_calls: int = 0
    processing_time: float = 0.0

    total_requisitions: int = 0
    valid_count: int = 0
    invalid_count: int = 0
    matched_count: int = 0
    pzaf_count: int = 0


class TriageResult(BaseModel):
    """Snapshot of one completed run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    completed_at: datetime
    summary: RunSummary
    quotations: List[RequisitionRecord] = Field(default_factory=list)
    invalid_requisitions: List[RequisitionRecord] = Field(default_factory=list)
    notifications: List[NotificationEntry] = Field(default_factory=list)
    pricing_calls: List[PricingCallLog] = Field(default_factory=list)
    log: List[RunLogEntry] = Field(default_factory=list)

    def find_quotation(self, requisition_id: str) -> Optional[RequisitionRecord]:
        """First quotation record with the given requisition id."""
        for record in self.quotations:
            if record.requisition_id == requisition_id:
                return record
        return None


class RunStatus(BaseModel):
    """Live progress of the run in flight (or the last finished run)."""
    step: int = 0
    total_steps: int = 7
    current_step_name: str = ""
    progress: int = 0
    running: bool = False
    logs: List[RunLogEntry] = Field(default_factory=list)
