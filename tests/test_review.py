"""
Tests for the appropriateness review.
"""

import pytest
from datetime import datetime

from prpo.agents.review import (
    FixedQuotationSource,
    SimulatedQuotationSource,
    change_rate_pct,
    make_review_appropriateness,
    review_quotation,
    sort_by_urgency,
)
from prpo.schemas.requisition import (
    RequisitionRecord,
    ApprovalState,
    Competitiveness,
    ContractMethod,
    PriceEstimate,
    PriceMethod,
    ProcessingState,
    QuotationPlan,
    UrgencyAssessment,
    UrgencyTier,
    Verdict,
)
from prpo.state import RunState


def make_quotation(
    method: ContractMethod,
    total: float = 1000.0,
    quantity=10,
    reference=None,
    requisition_id: str = "PR1",
) -> RequisitionRecord:
    return RequisitionRecord(
        requisition_id=requisition_id,
        requested_quantity=quantity,
        quotation=QuotationPlan(
            private_contract_eligible=method == ContractMethod.PRIVATE_CONTRACT,
            contract_method=method,
            response_window_days=3,
            non_approval_code="002_2",
            non_approval_reason="",
        ),
        price=PriceEstimate(method=PriceMethod.EXACT_MATCH, total=total, reference_unit_price=reference),
    )


class TestPrivateContract:

    def test_fifteen_percent_is_appropriate(self):
        record = make_quotation(ContractMethod.PRIVATE_CONTRACT, reference=100.0)
        review = review_quotation(record, quoted_total=1150.0)

        assert review.quoted_unit_price == 115.0
        assert review.change_rate == 15.0
        assert review.verdict == Verdict.APPROPRIATE
        assert review.review_required is False
        assert review.processing_state == ProcessingState.AUTO_COMPLETE

    def test_above_tolerance_needs_negotiation(self):
        record = make_quotation(ContractMethod.PRIVATE_CONTRACT, reference=100.0)
        review = review_quotation(record, quoted_total=1160.0)

        assert review.change_rate == 16.0
        assert review.verdict == Verdict.NEGOTIATION_REQUIRED
        assert review.review_required is True
        assert review.processing_state == ProcessingState.NEEDS_REVIEW

    def test_cheaper_quote_is_appropriate(self):
        record = make_quotation(ContractMethod.PRIVATE_CONTRACT, reference=100.0)
        review = review_quotation(record, quoted_total=500.0)

        assert review.change_rate == -50.0
        assert review.verdict == Verdict.APPROPRIATE

    def test_reference_defaults_to_estimate(self):
        record = make_quotation(ContractMethod.PRIVATE_CONTRACT, total=2000.0, reference=None)
        review = review_quotation(record, quoted_total=2400.0)

        # estimated unit 200, quoted unit 240
        assert review.change_rate == 20.0
        assert review.verdict == Verdict.NEGOTIATION_REQUIRED

    def test_change_rate_without_reference(self):
        assert change_rate_pct(120.0, 0.0) == 0.0


class TestCompetitiveBid:

    def test_suspected_dumping(self):
        record = make_quotation(ContractMethod.DESIGNATED_COMPETITIVE_BID)
        review = review_quotation(record, quoted_total=600.0)

        assert review.competitiveness == Competitiveness.EXCELLENT
        assert review.verdict == Verdict.SUSPECTED_DUMPING
        assert review.review_required is True
        assert review.change_rate is None

    def test_cheap_but_not_dumping(self):
        review = review_quotation(make_quotation(ContractMethod.DESIGNATED_COMPETITIVE_BID), quoted_total=750.0)

        assert review.competitiveness == Competitiveness.EXCELLENT
        assert review.competitiveness_signal == "🟢"
        assert review.verdict == Verdict.APPROPRIATE
        assert review.processing_state == ProcessingState.AUTO_COMPLETE

    def test_fair_quote_within_reference(self):
        record = make_quotation(ContractMethod.DESIGNATED_COMPETITIVE_BID, reference=120.0)
        review = review_quotation(record, quoted_total=1100.0)

        assert review.competitiveness == Competitiveness.FAIR
        assert review.competitiveness_signal == "🟡"
        assert review.verdict == Verdict.APPROPRIATE

    def test_poor_quote_needs_review(self):
        review = review_quotation(make_quotation(ContractMethod.NON_STANDARD_PRICE_CONTRACT), quoted_total=1200.0)

        assert review.competitiveness == Competitiveness.POOR
        assert review.competitiveness_signal == "🔴"
        assert review.verdict == Verdict.NEEDS_REVIEW
        assert review.processing_state == ProcessingState.NEEDS_REVIEW

    def test_zero_quantity_counts_as_one(self):
        record = make_quotation(ContractMethod.DESIGNATED_COMPETITIVE_BID, total=100.0, quantity=0)
        review = review_quotation(record, quoted_total=90.0)

        assert review.estimated_unit_price == 100.0
        assert review.quoted_unit_price == 90.0


class TestQuotationSources:

    def test_simulated_quotes_stay_in_band(self):
        source = SimulatedQuotationSource(seed=42)
        record = RequisitionRecord()
        for _ in range(200):
            quoted = source.quoted_total(record, 1000.0)
            assert 800.0 <= quoted <= 1200.0

    def test_seeded_sources_repeat(self):
        record = RequisitionRecord()
        first = [SimulatedQuotationSource(seed=7).quoted_total(record, 1000.0) for _ in range(3)]
        second = [SimulatedQuotationSource(seed=7).quoted_total(record, 1000.0) for _ in range(3)]
        assert first == second

    def test_fixed_source_falls_back_to_simulation(self):
        source = FixedQuotationSource({"PR1": 123.0}, fallback=SimulatedQuotationSource(seed=1, low=1.0, high=1.0))

        assert source.quoted_total(RequisitionRecord(requisition_id="PR1"), 999.0) == 123.0
        assert source.quoted_total(RequisitionRecord(requisition_id="PR2"), 999.0) == 999.0


def with_urgency(requisition_id: str, tier: UrgencyTier) -> RequisitionRecord:
    return RequisitionRecord(requisition_id=requisition_id, urgency=UrgencyAssessment(tier=tier, signal=""))


def test_sort_by_urgency_is_stable():
    records = [
        with_urgency("A", UrgencyTier.NORMAL),
        with_urgency("B", UrgencyTier.URGENT),
        with_urgency("C", UrgencyTier.FLEXIBLE),
        with_urgency("D", UrgencyTier.URGENT),
        with_urgency("E", UrgencyTier.NORMAL),
    ]
    assert [r.requisition_id for r in sort_by_urgency(records)] == ["B", "D", "A", "E", "C"]


@pytest.mark.asyncio
async def test_review_node_sets_approval_state():
    auto = make_quotation(ContractMethod.DESIGNATED_COMPETITIVE_BID, requisition_id="PR1")
    review = make_quotation(ContractMethod.DESIGNATED_COMPETITIVE_BID, requisition_id="PR2")
    state = RunState(run_id="T", started_at=datetime(2026, 1, 1), quotations=[auto, review])
    node = make_review_appropriateness(FixedQuotationSource({"PR1": 1000.0, "PR2": 5000.0}))

    result = await node(state)

    assert result.quotations[0].approval_state == ApprovalState.PENDING_APPROVAL
    assert result.quotations[1].approval_state == ApprovalState.PENDING_REVIEW
