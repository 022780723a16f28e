"""
Supplier Matcher
Joins valid requisitions to PO history on material key + description.
"""

from typing import Dict, List, Optional

from prpo.state import RunState
from prpo.schemas.requisition import RequisitionRecord, SupplierMatch
from prpo.schemas.po import PurchaseOrderHistory
from prpo.utils.logging import setup_logging, log_stage_action


logger = setup_logging(__name__)

STAGE_NAME = "SupplierMatcher"


def lookup_key(material_key: str, description: Optional[str]) -> str:
    """Composite join key; keys are case-sensitive, descriptions are not."""
    return f"{material_key}_{(description or '').strip().upper()}"


def build_lookup_index(po_history: List[PurchaseOrderHistory]) -> Dict[str, PurchaseOrderHistory]:
    """Index PO rows by composite key. The first row seen for a key wins."""
    index: Dict[str, PurchaseOrderHistory] = {}
    for po in po_history:
        key = lookup_key(po.material_key, po.description)
        if key not in index:
            index[key] = po
    return index


def build_unit_price_groups(po_history: List[PurchaseOrderHistory]) -> Dict[str, List[float]]:
    """Unit prices per material key, in row order."""
    groups: Dict[str, List[float]] = {}
    for po in po_history:
        groups.setdefault(po.material_key, []).append(po.unit_price)
    return groups


def match_supplier(
    record: RequisitionRecord,
    index: Dict[str, PurchaseOrderHistory],
) -> SupplierMatch:
    po = index.get(lookup_key(record.material_key, record.description))
    if po is None:
        return SupplierMatch(matched=False)

    return SupplierMatch(
        matched=True,
        vendor_code=po.vendor_code,
        vendor_name=po.vendor_name,
        ordered_quantity=po.ordered_quantity,
        ordered_amount=po.ordered_amount,
        weight=po.resolved_weight,
    )


async def match_suppliers(state: RunState) -> RunState:
    """Annotate valid requisitions with vendor data and collect the PZAF subset."""
    state.lookup_index = build_lookup_index(state.po_history)
    state.unit_price_groups = build_unit_price_groups(state.po_history)

    logger.info(
        f"[{STAGE_NAME}] Index built: {len(state.lookup_index)} keys from {len(state.po_history)} PO rows"
    )

    matched = 0
    for record in state.valid_requisitions:
        record.supplier = match_supplier(record, state.lookup_index)
        if record.supplier.matched:
            matched += 1

    state.matched_count = matched
    state.pzaf_requisitions = [r for r in state.valid_requisitions if r.is_pzaf]

    log_stage_action(logger, STAGE_NAME, "matching_complete", {
        "matched": matched,
        "valid": len(state.valid_requisitions),
        "pzaf": len(state.pzaf_requisitions),
    })
    state.add_log(
        STAGE_NAME,
        f"Matched {matched}/{len(state.valid_requisitions)} requisitions; "
        f"{len(state.pzaf_requisitions)} PZAF item(s) go to quotation planning",
    )
    return state
