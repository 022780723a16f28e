"""
Order-Method & Contract-Method Resolver
Decides how each PZAF requisition is procured and fills the quotation request.
"""

from typing import Set

from prpo.state import RunState
from prpo.schemas.requisition import (
    RequisitionRecord,
    ContractClass,
    ContractMethod,
    OrderMethod,
    QuotationPlan,
)
from prpo.utils.logging import setup_logging
from prpo.config import get_config


logger = setup_logging(__name__)
config = get_config()

STAGE_NAME = "QuotationPlanner"


def resolve_order_method(record: RequisitionRecord) -> OrderMethod:
    if record.contract_class == ContractClass.STANDARD_PRICE:
        return OrderMethod.ALLOCATE_THEN_ORDER
    return OrderMethod.BID_QUOTATION


def resolve_contract_method(contract_class: ContractClass, eligible: bool) -> ContractMethod:
    if contract_class == ContractClass.NON_STANDARD_PRICE:
        return ContractMethod.NON_STANDARD_PRICE_CONTRACT
    if eligible:
        return ContractMethod.PRIVATE_CONTRACT
    return ContractMethod.DESIGNATED_COMPETITIVE_BID


def justification_for(method: ContractMethod) -> str:
    if method == ContractMethod.DESIGNATED_COMPETITIVE_BID:
        return config.REASON_DESIGNATED
    if method == ContractMethod.PRIVATE_CONTRACT:
        return config.REASON_PRIVATE
    return ""


def response_window_days(creation_type: str) -> int:
    if creation_type and creation_type.strip().lower() in config.URGENT_CREATION_TYPES:
        return config.URGENT_RESPONSE_WINDOW_DAYS
    return config.DEFAULT_RESPONSE_WINDOW_DAYS


def plan_quotation(record: RequisitionRecord, known_keys: Set[str]) -> QuotationPlan:
    """Build the quotation request for one bid/quotation record."""
    eligible = record.material_key in known_keys
    method = resolve_contract_method(record.contract_class, eligible)
    vendor_code = record.supplier.vendor_code if record.supplier else None

    return QuotationPlan(
        private_contract_eligible=eligible,
        contract_method=method,
        justification=justification_for(method),
        response_window_days=response_window_days(record.creation_type),
        non_approval_code=config.NON_APPROVAL_CODE,
        non_approval_reason=config.NON_APPROVAL_REASON,
        technical_evaluation_required=bool(
            vendor_code and vendor_code.startswith(config.TECH_EVALUATION_VENDOR_PREFIX)
        ),
    )


async def plan_quotations(state: RunState) -> RunState:
    """Resolve order methods and build the quotation set."""
    known_keys = {po.material_key for po in state.po_history}
    state.quotations = []
    allocated = 0

    for record in state.pzaf_requisitions:
        record.order_method = resolve_order_method(record)
        if record.order_method == OrderMethod.ALLOCATE_THEN_ORDER:
            allocated += 1
            continue
        record.quotation = plan_quotation(record, known_keys)
        state.quotations.append(record)

    private = sum(1 for r in state.quotations if r.contract_method == ContractMethod.PRIVATE_CONTRACT)
    logger.info(
        f"[{STAGE_NAME}] {len(state.quotations)} quotation(s), {allocated} allocate-then-order, "
        f"{private} private-contract eligible"
    )
    state.add_log(
        STAGE_NAME,
        f"{len(state.quotations)} bid/quotation item(s), {allocated} allocate-then-order",
    )
    return state
