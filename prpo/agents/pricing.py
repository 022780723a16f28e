"""
Price Estimator
Derives the estimated bid price for each quotation through an ordered chain
of strategies: exact PO match, group average, LLM estimate, fixed default.
"""

import json
import math
import re
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.prompts import PromptTemplate
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from prpo.state import RunState
from prpo.schemas.requisition import RequisitionRecord, PriceEstimate, PriceMethod
from prpo.schemas.po import PurchaseOrderHistory
from prpo.schemas.output import PricingCallLog
from prpo.agents.matching import lookup_key
from prpo.utils import to_float, to_text, round_half_up
from prpo.utils.llm import PricingClient
from prpo.utils.logging import setup_logging, log_pricing_call
from prpo.config import get_config


logger = setup_logging(__name__)
config = get_config()

STAGE_NAME = "PriceEstimator"


PRICE_ESTIMATION_PROMPT_TEMPLATE = """You are a procurement specialist for the shipbuilding and offshore industry.

## Bid price estimation request

### Target material
- Material number: {material_number}
- Description: {description}
- Requested quantity: {quantity} {unit_of_measure}
- Sourcing group: {sourcing_group}

### Purchase history of similar materials{similar_materials}

### Request
Estimate an appropriate bid unit price for the material above.

Response format:
```json
{{
    "estimated_unit_price": <number>,
    "rationale": "<explanation>",
    "confidence": "<high/medium/low>"
}}
```"""

FENCED_JSON_PATTERN = re.compile(r"```json\s*([\s\S]*?)\s*```")
FLAT_OBJECT_PATTERN = re.compile(r"\{[^{}]*\}", re.DOTALL)

CONFIDENCE_LABELS = {"상": "high", "중": "medium", "하": "low"}


def requested_quantity(record: RequisitionRecord) -> float:
    """Requested quantity as float; 0 or missing counts as 1."""
    return to_float(record.requested_quantity) or 1.0


class LLMPriceEstimate(BaseModel):
    """Normalized LLM answer; accepts English or Korean keys."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    estimated_unit_price: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("estimated_unit_price", "예정단가")
    )
    rationale: Optional[str] = Field(default=None, validation_alias=AliasChoices("rationale", "산정근거"))
    confidence: Optional[str] = Field(default=None, validation_alias=AliasChoices("confidence", "신뢰도"))

    @field_validator("estimated_unit_price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> Optional[float]:
        return to_float(value)

    @field_validator("rationale", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return to_text(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return CONFIDENCE_LABELS.get(text, text.lower())


def parse_llm_json(text: Optional[str]) -> Dict[str, Any]:
    """
    Pull a JSON object out of model text.

    Tries a ```json fenced block first, then the first flat {...} object.
    Anything unparseable yields an empty dict.
    """
    if not text:
        return {}

    try:
        match = FENCED_JSON_PATTERN.search(text)
        if match:
            parsed = json.loads(match.group(1))
            return parsed if isinstance(parsed, dict) else {}

        match = FLAT_OBJECT_PATTERN.search(text)
        if match:
            parsed = json.loads(match.group(0))
            return parsed if isinstance(parsed, dict) else {}
    except json.JSONDecodeError as e:
        logger.warning(f"[{STAGE_NAME}] Could not parse LLM JSON: {e}")

    return {}


def find_similar_materials(
    material_key: str,
    po_history: List[PurchaseOrderHistory],
    limit: int = None,
) -> List[PurchaseOrderHistory]:
    """PO rows whose key shares the leading characters of ``material_key``."""
    limit = limit if limit is not None else config.SIMILAR_MATERIALS_LIMIT
    prefix = (material_key or "")[:config.SIMILAR_KEY_PREFIX_LENGTH]
    similar = [po for po in po_history if po.material_key[:config.SIMILAR_KEY_PREFIX_LENGTH] == prefix]
    return similar[:limit]


def format_similar_materials(similar: List[PurchaseOrderHistory]) -> str:
    if not similar:
        return "\n- (no similar materials)"

    lines = []
    for po in similar:
        lines.append(
            f"\n- Material: {(po.description or '')[:40]}"
            f"\n  Unit price: {po.unit_price:,.2f} KRW, ordered quantity: {to_text(po.ordered_quantity)}"
        )
    return "".join(lines)


def build_price_prompt(record: RequisitionRecord, po_history: List[PurchaseOrderHistory]) -> str:
    """Render the estimation prompt for one requisition."""
    prompt = PromptTemplate(
        input_variables=[
            "material_number",
            "description",
            "quantity",
            "unit_of_measure",
            "sourcing_group",
            "similar_materials",
        ],
        template=PRICE_ESTIMATION_PROMPT_TEMPLATE,
    )
    return prompt.format(
        material_number=record.material_number or "",
        description=record.description or "",
        quantity=to_text(record.requested_quantity) or "",
        unit_of_measure=record.unit_of_measure or "",
        sourcing_group=record.sourcing_group or "",
        similar_materials=format_similar_materials(find_similar_materials(record.material_key, po_history)),
    )


class CallBudget:
    """Caps the number of successful external calls in one run."""

    def __init__(self, limit: int):
        self.limit = limit
        self.used = 0

    @property
    def available(self) -> bool:
        return self.used < self.limit

    def consume(self) -> None:
        self.used += 1


class PricingContext:
    """Read-side data and collaborators shared by the strategies in one run."""

    def __init__(
        self,
        lookup_index: Dict[str, PurchaseOrderHistory],
        unit_price_groups: Dict[str, List[float]],
        po_history: List[PurchaseOrderHistory],
        client: Optional[PricingClient] = None,
        budget: Optional[CallBudget] = None,
    ):
        self.lookup_index = lookup_index
        self.unit_price_groups = unit_price_groups
        self.po_history = po_history
        self.client = client
        self.budget = budget or CallBudget(config.LLM_MAX_CALLS_PER_RUN)


class PriceStrategy:
    """One step in the estimation chain. Returns None to defer to the next."""

    method: PriceMethod

    async def estimate(self, record: RequisitionRecord, context: PricingContext) -> Optional[PriceEstimate]:
        raise NotImplementedError


class ExactMatchStrategy(PriceStrategy):
    method = PriceMethod.EXACT_MATCH

    async def estimate(self, record, context):
        po = context.lookup_index.get(lookup_key(record.material_key, record.description))
        if po is None:
            return None

        unit_price = po.unit_price
        return PriceEstimate(
            method=self.method,
            total=round_half_up(unit_price * requested_quantity(record)),
            unit_price=unit_price,
            reference_unit_price=unit_price,
        )


class GroupAverageStrategy(PriceStrategy):
    method = PriceMethod.GROUP_AVERAGE

    async def estimate(self, record, context):
        prices = context.unit_price_groups.get(record.material_key)
        if not prices:
            return None

        average = sum(prices) / len(prices)
        return PriceEstimate(
            method=self.method,
            total=round_half_up(average * requested_quantity(record)),
            unit_price=average,
            reference_unit_price=average,
        )


class ExternalEstimateStrategy(PriceStrategy):
    """
    Ask the pricing client for a unit price.

    Skipped when no client is configured or the call budget is spent. Only a
    usable answer consumes budget; errors, timeouts and answers without a
    positive price fall through to the next strategy.
    """

    method = PriceMethod.LLM_ESTIMATED

    async def estimate(self, record, context):
        if context.client is None or not context.budget.available:
            return None

        prompt = build_price_prompt(record, context.po_history)
        try:
            text = await context.client.estimate(prompt)
        except Exception as e:
            logger.warning(f"[{STAGE_NAME}] Pricing call failed for {record.material_number}: {e!r}")
            log_pricing_call(logger, record.requisition_id, record.material_number, "error")
            return None

        answer = LLMPriceEstimate.model_validate(parse_llm_json(text))
        unit_price = answer.estimated_unit_price
        if unit_price is None or unit_price <= 0 or not math.isfinite(unit_price * requested_quantity(record)):
            log_pricing_call(logger, record.requisition_id, record.material_number, "no_price")
            return None

        context.budget.consume()
        log_pricing_call(logger, record.requisition_id, record.material_number, "success", unit_price)
        return PriceEstimate(
            method=self.method,
            total=round_half_up(unit_price * requested_quantity(record)),
            unit_price=unit_price,
            llm_response=answer.model_dump(),
        )


class DefaultPriceStrategy(PriceStrategy):
    method = PriceMethod.DEFAULT_FALLBACK

    async def estimate(self, record, context):
        total = config.DEFAULT_ESTIMATED_TOTAL
        return PriceEstimate(
            method=self.method,
            total=total,
            unit_price=total / requested_quantity(record),
        )


def default_strategies() -> List[PriceStrategy]:
    return [
        ExactMatchStrategy(),
        GroupAverageStrategy(),
        ExternalEstimateStrategy(),
        DefaultPriceStrategy(),
    ]


async def estimate_price(
    record: RequisitionRecord,
    context: PricingContext,
    strategies: Sequence[PriceStrategy] = None,
) -> PriceEstimate:
    """Run the chain; the first strategy with an answer wins."""
    for strategy in strategies or default_strategies():
        estimate = await strategy.estimate(record, context)
        if estimate is not None:
            return estimate

    # The chain always ends in a default unless a caller supplied its own
    return await DefaultPriceStrategy().estimate(record, context)


def make_estimate_prices(
    client: Optional[PricingClient] = None,
    strategies: Sequence[PriceStrategy] = None,
):
    """Build the price-estimation node with its collaborators bound."""

    async def estimate_prices(state: RunState) -> RunState:
        context = PricingContext(
            lookup_index=state.lookup_index,
            unit_price_groups=state.unit_price_groups,
            po_history=state.po_history,
            client=client,
        )
        method_counts: Dict[str, int] = {}

        # Serial: the budget is checked before every call
        for record in state.quotations:
            record.price = await estimate_price(record, context, strategies)
            method = record.price.method.value
            method_counts[method] = method_counts.get(method, 0) + 1

            if record.price.method == PriceMethod.LLM_ESTIMATED:
                state.pricing_calls.append(
                    PricingCallLog(
                        requisition_id=record.requisition_id,
                        material_number=record.material_number,
                        result=record.price.llm_response or {},
                    )
                )
                state.add_log(STAGE_NAME, f"LLM price estimate for {record.material_number}")

        state.llm_call_count = context.budget.used

        for method, count in method_counts.items():
            state.add_log(STAGE_NAME, f"Price method {method}: {count}")
        logger.info(f"[{STAGE_NAME}] {method_counts} (llm calls: {state.llm_call_count})")
        return state

    return estimate_prices
