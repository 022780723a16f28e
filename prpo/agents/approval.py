"""
Post-run approval actions.
Human decisions applied to the records of a finished run.
"""

from typing import Any, Dict, Iterable
from datetime import datetime

from prpo.schemas.output import TriageResult
from prpo.schemas.requisition import ApprovalState, RequisitionRecord
from prpo.utils.logging import setup_logging, log_stage_action


logger = setup_logging(__name__)

STAGE_NAME = "Approval"


class QuotationNotFoundError(LookupError):
    """No quotation with the requested requisition id in the latest result."""


def _get_quotation(result: TriageResult, requisition_id: str) -> RequisitionRecord:
    record = result.find_quotation(requisition_id)
    if record is None:
        raise QuotationNotFoundError(f"Quotation {requisition_id} not found")
    return record


def approve_quotation(result: TriageResult, requisition_id: str) -> RequisitionRecord:
    """Mark one quotation approved."""
    record = _get_quotation(result, requisition_id)
    record.approval_state = ApprovalState.APPROVED
    record.approved_at = datetime.utcnow()

    log_stage_action(logger, STAGE_NAME, "approved", {"requisition_id": requisition_id})
    return record


def batch_approve(result: TriageResult, requisition_ids: Iterable[str]) -> int:
    """Approve every known id; unknown ids are skipped. Returns the count approved."""
    approved = 0
    for requisition_id in requisition_ids:
        try:
            approve_quotation(result, requisition_id)
        except QuotationNotFoundError:
            logger.warning(f"[{STAGE_NAME}] Skipping unknown quotation {requisition_id}")
            continue
        approved += 1
    return approved


def edit_quotation(
    result: TriageResult,
    requisition_id: str,
    updates: Dict[str, Any],
) -> RequisitionRecord:
    """Record manual overrides on a quotation without touching derived fields."""
    record = _get_quotation(result, requisition_id)
    record.manual_overrides.update(updates)
    record.modified_at = datetime.utcnow()

    log_stage_action(logger, STAGE_NAME, "edited", {
        "requisition_id": requisition_id,
        "fields": sorted(updates),
    })
    return record
