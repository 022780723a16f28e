"""
Appropriateness Reviewer
Compares quotations against the estimated price and decides whether each
quotation can auto-complete or needs a human.
"""

import random
from typing import Dict, List, Optional

from prpo.state import RunState
from prpo.schemas.requisition import (
    RequisitionRecord,
    AppropriatenessReview,
    ApprovalState,
    Competitiveness,
    ContractMethod,
    ProcessingState,
    UrgencyTier,
    Verdict,
    SIGNAL_RED,
    SIGNAL_YELLOW,
    SIGNAL_GREEN,
)
from prpo.agents.pricing import requested_quantity
from prpo.utils.logging import setup_logging, log_stage_action
from prpo.config import get_config


logger = setup_logging(__name__)
config = get_config()

STAGE_NAME = "AppropriatenessReviewer"

URGENCY_ORDER = {
    UrgencyTier.URGENT: 0,
    UrgencyTier.NORMAL: 1,
    UrgencyTier.FLEXIBLE: 2,
}


class QuotationSource:
    """Supplies the quoted total for a requisition."""

    def quoted_total(self, record: RequisitionRecord, estimated_total: float) -> float:
        raise NotImplementedError


class SimulatedQuotationSource(QuotationSource):
    """Simulated quote: estimated total times U(low, high)."""

    def __init__(self, seed: Optional[int] = None, low: float = None, high: float = None):
        self.low = low if low is not None else config.QUOTE_SIMULATION_LOW
        self.high = high if high is not None else config.QUOTE_SIMULATION_HIGH
        self.rng = random.Random(seed)

    def quoted_total(self, record, estimated_total):
        return estimated_total * self.rng.uniform(self.low, self.high)


class FixedQuotationSource(QuotationSource):
    """Real quotation amounts by requisition id; unknown ids are simulated."""

    def __init__(self, amounts: Dict[str, float], fallback: Optional[QuotationSource] = None):
        self.amounts = dict(amounts)
        self.fallback = fallback or SimulatedQuotationSource(config.QUOTE_SIMULATION_SEED)

    def quoted_total(self, record, estimated_total):
        if record.requisition_id in self.amounts:
            return float(self.amounts[record.requisition_id])
        return self.fallback.quoted_total(record, estimated_total)


def rate_competitiveness(
    quoted_unit: float,
    estimated_unit: float,
    reference_unit: float,
) -> Competitiveness:
    if quoted_unit <= estimated_unit:
        return Competitiveness.EXCELLENT
    if quoted_unit <= reference_unit:
        return Competitiveness.FAIR
    return Competitiveness.POOR


COMPETITIVENESS_SIGNALS = {
    Competitiveness.EXCELLENT: SIGNAL_GREEN,
    Competitiveness.FAIR: SIGNAL_YELLOW,
    Competitiveness.POOR: SIGNAL_RED,
}


def change_rate_pct(quoted_unit: float, reference_unit: float) -> float:
    """Percent change of the quote over the reference; 0 without a reference."""
    if reference_unit <= 0:
        return 0.0
    return round((quoted_unit / reference_unit - 1) * 100, 6)


def review_quotation(record: RequisitionRecord, quoted_total: float) -> AppropriatenessReview:
    """Review one priced quotation against its quoted total."""
    quantity = requested_quantity(record)
    quoted_unit = quoted_total / quantity
    estimated_unit = record.price.total / quantity
    reference_unit = record.price.reference_unit_price or estimated_unit

    competitiveness = rate_competitiveness(quoted_unit, estimated_unit, reference_unit)
    change_rate = None

    if record.contract_method == ContractMethod.PRIVATE_CONTRACT:
        change_rate = change_rate_pct(quoted_unit, reference_unit)
        if change_rate <= config.PRIVATE_CONTRACT_TOLERANCE_PCT:
            verdict = Verdict.APPROPRIATE
        else:
            verdict = Verdict.NEGOTIATION_REQUIRED
    else:
        dumping_threshold = estimated_unit * config.DUMPING_RATIO
        if competitiveness == Competitiveness.EXCELLENT and quoted_unit < dumping_threshold:
            verdict = Verdict.SUSPECTED_DUMPING
        elif competitiveness == Competitiveness.POOR:
            verdict = Verdict.NEEDS_REVIEW
        else:
            verdict = Verdict.APPROPRIATE

    review_required = verdict != Verdict.APPROPRIATE
    return AppropriatenessReview(
        quoted_total=quoted_total,
        quoted_unit_price=quoted_unit,
        estimated_unit_price=estimated_unit,
        competitiveness=competitiveness,
        competitiveness_signal=COMPETITIVENESS_SIGNALS[competitiveness],
        change_rate=change_rate,
        verdict=verdict,
        review_required=review_required,
        processing_state=ProcessingState.NEEDS_REVIEW if review_required else ProcessingState.AUTO_COMPLETE,
    )


def approval_state_for(review: AppropriatenessReview) -> ApprovalState:
    if review.processing_state == ProcessingState.AUTO_COMPLETE:
        return ApprovalState.PENDING_APPROVAL
    return ApprovalState.PENDING_REVIEW


def sort_by_urgency(records: List[RequisitionRecord]) -> List[RequisitionRecord]:
    """Stable sort: urgent, normal, flexible. Unscored records count as normal."""
    return sorted(
        records,
        key=lambda r: URGENCY_ORDER.get(r.urgency_tier, URGENCY_ORDER[UrgencyTier.NORMAL]),
    )


def make_review_appropriateness(source: Optional[QuotationSource] = None):
    """Build the review node with its quotation source bound."""
    quotation_source = source or SimulatedQuotationSource(config.QUOTE_SIMULATION_SEED)

    async def review_appropriateness(state: RunState) -> RunState:
        auto_complete = 0
        for record in state.quotations:
            quoted = quotation_source.quoted_total(record, record.price.total)
            record.review = review_quotation(record, quoted)
            record.approval_state = approval_state_for(record.review)
            if record.review.processing_state == ProcessingState.AUTO_COMPLETE:
                auto_complete += 1

        needs_review = len(state.quotations) - auto_complete
        log_stage_action(logger, STAGE_NAME, "review_complete", {
            "auto_complete": auto_complete,
            "needs_review": needs_review,
        })
        state.add_log(STAGE_NAME, f"Auto-complete {auto_complete}, needs review {needs_review}")
        return state

    return review_appropriateness
