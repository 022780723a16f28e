"""
UI Utility Functions

Helper functions for Streamlit visualization.
These are purely for presentation - no business logic.
"""

from typing import Any, Dict, List, Optional

from prpo.schemas.requisition import ApprovalState, RequisitionRecord, Verdict
from prpo.schemas.output import RunSummary


VERDICT_EMOJI = {
    Verdict.APPROPRIATE.value: "🟢",
    Verdict.NEGOTIATION_REQUIRED.value: "🟡",
    Verdict.NEEDS_REVIEW.value: "🟡",
    Verdict.SUSPECTED_DUMPING.value: "🔴",
}

APPROVAL_LABELS = {
    ApprovalState.PENDING_APPROVAL.value: "⏳ Pending approval",
    ApprovalState.PENDING_REVIEW.value: "🔍 Pending review",
    ApprovalState.APPROVED.value: "✅ Approved",
}


def get_verdict_emoji(verdict: Optional[str]) -> str:
    """Get emoji for a review verdict."""
    return VERDICT_EMOJI.get(verdict, "⚪")


def format_approval_state(state: Optional[str]) -> str:
    return APPROVAL_LABELS.get(state, state or "-")


def format_amount(value: Optional[float]) -> str:
    """Format a KRW amount for display."""
    if value is None:
        return "-"
    return f"{value:,.0f}"


def quotation_row(record: RequisitionRecord) -> Dict[str, Any]:
    """Flatten one quotation for the review table."""
    review = record.review
    verdict = review.verdict.value if review else None
    return {
        "PR": record.requisition_id,
        "Material": record.material_number,
        "Description": (record.description or "")[:40],
        "Urgency": f"{record.urgency.signal} {record.urgency.tier.value}" if record.urgency else "-",
        "Contract method": record.contract_method.value if record.contract_method else "-",
        "Price method": record.price.method.value if record.price else "-",
        "Estimated total": format_amount(record.price.total if record.price else None),
        "Quoted total": format_amount(review.quoted_total if review else None),
        "Competitiveness": (
            f"{review.competitiveness_signal} {review.competitiveness.value}" if review else "-"
        ),
        "Verdict": f"{get_verdict_emoji(verdict)} {verdict}" if verdict else "-",
        "Approval": format_approval_state(record.approval_state.value if record.approval_state else None),
    }


def quotation_rows(records: List[RequisitionRecord]) -> List[Dict[str, Any]]:
    return [quotation_row(r) for r in records]


def summary_metrics(summary: RunSummary) -> List[Dict[str, Any]]:
    """Label/value pairs for the metric strip."""
    return [
        {"label": "Quotations", "value": summary.total},
        {"label": "🔴 Urgent", "value": summary.urgent},
        {"label": "🟡 Normal", "value": summary.normal},
        {"label": "🟢 Flexible", "value": summary.flexible},
        {"label": "Auto-complete", "value": summary.auto_complete},
        {"label": "Needs review", "value": summary.needs_review},
        {"label": "LLM calls", "value": summary.llm_calls},
    ]


def pending_approval_ids(records: List[RequisitionRecord]) -> List[str]:
    """Requisition ids that can be batch-approved."""
    return [
        r.requisition_id for r in records
        if r.approval_state == ApprovalState.PENDING_APPROVAL and r.requisition_id
    ]
