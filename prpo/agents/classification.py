"""
Contract Classifier
Sorts valid requisitions by unit-price contract and auto-allocation group.
"""

from prpo.state import RunState
from prpo.schemas.requisition import RequisitionRecord, ContractClass
from prpo.utils import is_blank
from prpo.utils.logging import setup_logging


logger = setup_logging(__name__)

STAGE_NAME = "ContractClassifier"


def classify_contract(record: RequisitionRecord) -> ContractClass:
    """
    | contract | auto-alloc | class              |
    |----------|------------|--------------------|
    | yes      | yes        | standard-price     |
    | yes      | no         | non-standard-price |
    | no       | -          | not-applicable     |
    """
    if is_blank(record.unit_price_contract_no):
        return ContractClass.NOT_APPLICABLE
    if is_blank(record.auto_allocation_group):
        return ContractClass.NON_STANDARD_PRICE
    return ContractClass.STANDARD_PRICE


async def classify_contracts(state: RunState) -> RunState:
    counts = {cls.value: 0 for cls in ContractClass}

    for record in state.valid_requisitions:
        record.contract_class = classify_contract(record)
        counts[record.contract_class.value] += 1

    state.contract_counts = counts
    logger.info(f"[{STAGE_NAME}] {counts}")
    state.add_log(
        STAGE_NAME,
        f"Standard-price {counts[ContractClass.STANDARD_PRICE.value]}, "
        f"non-standard-price {counts[ContractClass.NON_STANDARD_PRICE.value]}, "
        f"not applicable {counts[ContractClass.NOT_APPLICABLE.value]}",
    )
    return state
