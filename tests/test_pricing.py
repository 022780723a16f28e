"""
Tests for price estimation strategies and LLM response handling.
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock

from prpo.agents.pricing import (
    CallBudget,
    DefaultPriceStrategy,
    ExactMatchStrategy,
    ExternalEstimateStrategy,
    GroupAverageStrategy,
    PricingContext,
    build_price_prompt,
    estimate_price,
    make_estimate_prices,
    parse_llm_json,
)
from prpo.agents.matching import build_lookup_index, build_unit_price_groups
from prpo.schemas.requisition import RequisitionRecord, PriceMethod
from prpo.schemas.po import PurchaseOrderHistory
from prpo.state import RunState
from prpo.utils.llm import LLMPricingClient
from prpo.config import get_config


config = get_config()

FENCED_ANSWER = """Here is my estimate:
```json
{"estimated_unit_price": 2500, "rationale": "similar bolts", "confidence": "high"}
```"""


@pytest.fixture
def po_history():
    return [
        PurchaseOrderHistory(
            material_number="PZAFAB1234", material_key="AB1234", description="BOLT",
            ordered_quantity=10, ordered_amount=10000,
        ),
        PurchaseOrderHistory(
            material_number="PZAFAB1234", material_key="AB1234", description="BOLT M12",
            ordered_quantity=2, ordered_amount=4000,
        ),
    ]


def make_context(po_history, client=None, budget=None) -> PricingContext:
    return PricingContext(
        lookup_index=build_lookup_index(po_history),
        unit_price_groups=build_unit_price_groups(po_history),
        po_history=po_history,
        client=client,
        budget=budget,
    )


def make_client(*answers) -> AsyncMock:
    client = AsyncMock()
    if len(answers) == 1:
        client.estimate.return_value = answers[0]
    else:
        client.estimate.side_effect = list(answers)
    return client


class TestStrategies:
    """Each strategy in isolation."""

    @pytest.mark.asyncio
    async def test_exact_match(self, po_history):
        record = RequisitionRecord(material_key="AB1234", description="bolt", requested_quantity=10)
        estimate = await ExactMatchStrategy().estimate(record, make_context(po_history))

        assert estimate.method == PriceMethod.EXACT_MATCH
        assert estimate.unit_price == 1000
        assert estimate.total == 10000
        assert estimate.reference_unit_price == 1000

    @pytest.mark.asyncio
    async def test_exact_match_miss(self, po_history):
        record = RequisitionRecord(material_key="AB1234", description="WASHER", requested_quantity=10)
        assert await ExactMatchStrategy().estimate(record, make_context(po_history)) is None

    @pytest.mark.asyncio
    async def test_group_average(self, po_history):
        record = RequisitionRecord(material_key="AB1234", description="WASHER", requested_quantity=3)
        estimate = await GroupAverageStrategy().estimate(record, make_context(po_history))

        # (1000 + 2000) / 2
        assert estimate.method == PriceMethod.GROUP_AVERAGE
        assert estimate.unit_price == 1500
        assert estimate.total == 4500
        assert estimate.reference_unit_price == 1500

    @pytest.mark.asyncio
    async def test_group_average_miss(self, po_history):
        record = RequisitionRecord(material_key="ZZ0001", requested_quantity=3)
        assert await GroupAverageStrategy().estimate(record, make_context(po_history)) is None

    @pytest.mark.asyncio
    async def test_total_rounds_half_up(self):
        po = PurchaseOrderHistory(material_key="AB1234", description="PIN", ordered_quantity=2, ordered_amount=1)
        record = RequisitionRecord(material_key="AB1234", description="PIN", requested_quantity=1)
        estimate = await ExactMatchStrategy().estimate(record, make_context([po]))
        assert estimate.total == 1

    @pytest.mark.asyncio
    async def test_missing_quantity_counts_as_one(self, po_history):
        record = RequisitionRecord(material_key="AB1234", description="BOLT", requested_quantity=None)
        estimate = await ExactMatchStrategy().estimate(record, make_context(po_history))
        assert estimate.total == 1000

    @pytest.mark.asyncio
    async def test_external_estimate(self):
        client = make_client(FENCED_ANSWER)
        context = make_context([], client=client)
        record = RequisitionRecord(requisition_id="PR9", material_number="PZAFZZ0001", material_key="ZZ0001", requested_quantity=4)

        estimate = await ExternalEstimateStrategy().estimate(record, context)

        assert estimate.method == PriceMethod.LLM_ESTIMATED
        assert estimate.total == 10000
        assert estimate.reference_unit_price is None
        assert estimate.llm_response["estimated_unit_price"] == 2500
        assert estimate.llm_response["confidence"] == "high"
        assert context.budget.used == 1
        client.estimate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_external_estimate_with_korean_keys(self):
        client = make_client('{"예정단가": "3,000", "산정근거": "유사 자재", "신뢰도": "중"}')
        context = make_context([], client=client)
        record = RequisitionRecord(material_key="ZZ0001", requested_quantity=2)

        estimate = await ExternalEstimateStrategy().estimate(record, context)

        assert estimate.total == 6000
        assert estimate.llm_response["rationale"] == "유사 자재"
        assert estimate.llm_response["confidence"] == "medium"

    @pytest.mark.asyncio
    async def test_client_error_does_not_consume_budget(self):
        client = AsyncMock()
        client.estimate.side_effect = TimeoutError()
        context = make_context([], client=client)

        estimate = await ExternalEstimateStrategy().estimate(RequisitionRecord(material_key="ZZ0001"), context)

        assert estimate is None
        assert context.budget.used == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer", [
        "I cannot estimate this.",
        '{"estimated_unit_price": 0}',
        '{"estimated_unit_price": -5}',
        '{"estimated_unit_price": "unknown"}',
        '{"estimated_unit_price": 1e309}',
        '{"estimated_unit_price": "inf"}',
        None,
    ])
    async def test_unusable_answer_falls_through(self, answer):
        context = make_context([], client=make_client(answer))
        estimate = await ExternalEstimateStrategy().estimate(RequisitionRecord(material_key="ZZ0001"), context)

        assert estimate is None
        assert context.budget.used == 0

    @pytest.mark.asyncio
    async def test_total_overflow_falls_through(self):
        context = make_context([], client=make_client('{"estimated_unit_price": 1e308}'))
        record = RequisitionRecord(material_key="ZZ0001", requested_quantity=10)

        assert await ExternalEstimateStrategy().estimate(record, context) is None
        assert context.budget.used == 0

    @pytest.mark.asyncio
    async def test_exhausted_budget_skips_call(self):
        client = make_client(FENCED_ANSWER)
        context = make_context([], client=client, budget=CallBudget(limit=0))

        assert await ExternalEstimateStrategy().estimate(RequisitionRecord(material_key="ZZ0001"), context) is None
        client.estimate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_client_skips(self):
        assert await ExternalEstimateStrategy().estimate(RequisitionRecord(), make_context([])) is None

    @pytest.mark.asyncio
    async def test_default_price(self):
        estimate = await DefaultPriceStrategy().estimate(RequisitionRecord(requested_quantity=4), make_context([]))
        assert estimate.method == PriceMethod.DEFAULT_FALLBACK
        assert estimate.total == config.DEFAULT_ESTIMATED_TOTAL


class TestChain:

    @pytest.mark.asyncio
    async def test_exact_match_wins_over_llm(self, po_history):
        client = make_client(FENCED_ANSWER)
        record = RequisitionRecord(material_key="AB1234", description="BOLT", requested_quantity=1)

        estimate = await estimate_price(record, make_context(po_history, client=client))

        assert estimate.method == PriceMethod.EXACT_MATCH
        client.estimate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_to_default(self):
        estimate = await estimate_price(RequisitionRecord(material_key="ZZ0001"), make_context([]))
        assert estimate.method == PriceMethod.DEFAULT_FALLBACK

    @pytest.mark.asyncio
    async def test_mock_client_answer_is_used(self):
        record = RequisitionRecord(material_key="ZZ0001", requested_quantity=2)
        estimate = await estimate_price(record, make_context([], client=LLMPricingClient(mock=True)))

        assert estimate.method == PriceMethod.LLM_ESTIMATED
        assert estimate.total == config.LLM_MOCK_UNIT_PRICE * 2


def quotation_state(count: int) -> RunState:
    records = [
        RequisitionRecord(requisition_id=f"PR{i}", material_number=f"PZAFNEW{i:03d}", material_key=f"NEW{i:03d}")
        for i in range(count)
    ]
    return RunState(run_id="T", started_at=datetime(2026, 1, 1), quotations=records)


class TestEstimateNode:

    @pytest.mark.asyncio
    async def test_budget_caps_llm_calls(self):
        limit = config.LLM_MAX_CALLS_PER_RUN
        state = quotation_state(limit + 2)
        node = make_estimate_prices(client=make_client(FENCED_ANSWER))

        result = await node(state)

        methods = [r.price.method for r in result.quotations]
        assert methods.count(PriceMethod.LLM_ESTIMATED) == limit
        assert methods[limit:] == [PriceMethod.DEFAULT_FALLBACK] * 2
        assert result.llm_call_count == limit
        assert len(result.pricing_calls) == limit
        assert result.pricing_calls[0].requisition_id == "PR0"
        assert result.pricing_calls[0].step == "price_estimation"

    @pytest.mark.asyncio
    async def test_failed_calls_do_not_count(self):
        limit = config.LLM_MAX_CALLS_PER_RUN
        state = quotation_state(limit + 2)
        answers = ["no json here", "still nothing"] + [FENCED_ANSWER] * limit
        node = make_estimate_prices(client=make_client(*answers))

        result = await node(state)

        methods = [r.price.method for r in result.quotations]
        assert methods[:2] == [PriceMethod.DEFAULT_FALLBACK] * 2
        assert methods.count(PriceMethod.LLM_ESTIMATED) == limit
        assert result.llm_call_count == limit

    @pytest.mark.asyncio
    async def test_without_client_everything_defaults(self):
        result = await make_estimate_prices(client=None)(quotation_state(3))

        assert {r.price.method for r in result.quotations} == {PriceMethod.DEFAULT_FALLBACK}
        assert result.llm_call_count == 0
        assert result.pricing_calls == []


class TestParsing:

    def test_fenced_block(self):
        assert parse_llm_json(FENCED_ANSWER)["estimated_unit_price"] == 2500

    def test_flat_object(self):
        assert parse_llm_json('The answer is {"estimated_unit_price": 12} ok') == {"estimated_unit_price": 12}

    @pytest.mark.parametrize("text", [None, "", "no braces", "```json\n{broken\n```", "{not json}"])
    def test_unparseable_gives_empty_dict(self, text):
        assert parse_llm_json(text) == {}


class TestPrompt:

    def test_prompt_lists_similar_materials(self):
        history = [
            PurchaseOrderHistory(
                material_key=f"AB1234{i:02d}", description="X" * 50, ordered_quantity=1, ordered_amount=100 * (i + 1),
            )
            for i in range(7)
        ]
        history.append(PurchaseOrderHistory(material_key="QQ9999", description="UNRELATED", ordered_quantity=1))
        record = RequisitionRecord(
            material_number="PZAFAB123499", material_key="AB123499", description="TARGET",
            requested_quantity=5, unit_of_measure="EA", sourcing_group="SG1",
        )

        prompt = build_price_prompt(record, history)

        assert "PZAFAB123499" in prompt
        assert "TARGET" in prompt
        assert "5 EA" in prompt
        assert "SG1" in prompt
        assert prompt.count("- Material:") == 5
        assert "X" * 40 in prompt
        assert "X" * 41 not in prompt
        assert "UNRELATED" not in prompt
        assert '"estimated_unit_price"' in prompt

    def test_prompt_without_similar_materials(self):
        prompt = build_price_prompt(RequisitionRecord(material_key="ZZ0001"), [])
        assert "(no similar materials)" in prompt
