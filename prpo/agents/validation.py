"""
Validator
Checks requisitions for the fields every later stage depends on.
"""

from typing import List, Sequence

from prpo.state import RunState
from prpo.schemas.requisition import RequisitionRecord, ValidationResult, ValidationStatus
from prpo.utils import is_blank
from prpo.utils.logging import setup_logging
from prpo.config import get_config


logger = setup_logging(__name__)
config = get_config()

STAGE_NAME = "Validator"


def validate_requisition(
    record: RequisitionRecord,
    required_fields: Sequence[str] = None,
) -> ValidationResult:
    """Return PASS/FAIL plus the missing fields, in declaration order."""
    fields = required_fields if required_fields is not None else config.REQUIRED_FIELDS
    missing: List[str] = [name for name in fields if is_blank(getattr(record, name, None))]

    if missing:
        return ValidationResult(status=ValidationStatus.FAIL, missing_fields=missing)
    return ValidationResult(status=ValidationStatus.PASS)


async def validate_requisitions(state: RunState) -> RunState:
    """Partition requisitions into valid and invalid sets."""
    logger.info(f"[{STAGE_NAME}] Validating {len(state.requisitions)} requisitions")

    state.valid_requisitions = []
    state.invalid_requisitions = []

    for record in state.requisitions:
        record.validation = validate_requisition(record)
        if record.validation.status == ValidationStatus.PASS:
            state.valid_requisitions.append(record)
        else:
            state.invalid_requisitions.append(record)
            logger.debug(
                f"[{STAGE_NAME}] {record.requisition_id} missing: {record.validation.missing_text}"
            )

    state.add_log(
        STAGE_NAME,
        f"Validation complete: {len(state.valid_requisitions)} passed, "
        f"{len(state.invalid_requisitions)} failed",
        level="warning" if state.invalid_requisitions else "info",
    )
    return state
