"""
Key Normalizer
Derives the join key and PZAF flag from raw material numbers.
"""

from typing import Optional, Tuple

from prpo.state import RunState
from prpo.utils.logging import setup_logging, log_stage_action
from prpo.config import get_config


logger = setup_logging(__name__)
config = get_config()

STAGE_NAME = "KeyNormalizer"


def normalize_material_number(raw: Optional[str]) -> Tuple[str, bool]:
    """
    Strip the plant prefix from a material number.

    The first characters encode the plant/prefix, so keys shorter than or
    equal to the prefix are kept as-is.

    Returns:
        (material_key, is_pzaf)
    """
    if raw is None:
        return "", False

    text = str(raw)
    prefix = config.MATERIAL_PREFIX_LENGTH
    key = text[prefix:] if len(text) > prefix else text
    return key, config.PZAF_MARKER in text


async def normalize_keys(state: RunState) -> RunState:
    """Attach material keys to every requisition and PO history row."""
    for record in state.requisitions:
        record.material_key, record.is_pzaf = normalize_material_number(record.material_number)

    for po in state.po_history:
        po.material_key, _ = normalize_material_number(po.material_number)

    pzaf_count = sum(1 for r in state.requisitions if r.is_pzaf)
    log_stage_action(logger, STAGE_NAME, "keys_normalized", {
        "requisitions": len(state.requisitions),
        "po_rows": len(state.po_history),
        "pzaf": pzaf_count,
    })
    state.add_log(
        STAGE_NAME,
        f"Normalized {len(state.requisitions)} PR keys and {len(state.po_history)} PO keys ({pzaf_count} PZAF)",
    )
    return state
