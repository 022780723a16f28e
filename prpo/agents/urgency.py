"""
Urgency Scorer
Scores delivery pressure against the fixed simulation date.
"""

import math
from typing import Any
from datetime import datetime

from prpo.state import RunState
from prpo.schemas.requisition import (
    UrgencyAssessment,
    UrgencyTier,
    SIGNAL_RED,
    SIGNAL_YELLOW,
    SIGNAL_GREEN,
)
from prpo.utils import to_datetime, to_int
from prpo.utils.logging import setup_logging
from prpo.config import get_config


logger = setup_logging(__name__)
config = get_config()

STAGE_NAME = "UrgencyScorer"

SECONDS_PER_DAY = 86400


def tier_for_remaining_days(remaining: int) -> UrgencyTier:
    if remaining <= config.URGENCY_URGENT:
        return UrgencyTier.URGENT
    if remaining <= config.URGENCY_NORMAL:
        return UrgencyTier.NORMAL
    return UrgencyTier.FLEXIBLE


TIER_SIGNALS = {
    UrgencyTier.URGENT: SIGNAL_RED,
    UrgencyTier.NORMAL: SIGNAL_YELLOW,
    UrgencyTier.FLEXIBLE: SIGNAL_GREEN,
}


def score_urgency_for(
    required_by: Any,
    lead_time: Any,
    simulation_date: datetime = None,
) -> UrgencyAssessment:
    """
    Compute the urgency tier for one requisition.

    days_until_deadline is the ceiling of the day difference; remaining days
    subtract the lead time. A required-by date that cannot be read counts as
    "normal" with no deadline figures.
    """
    reference = simulation_date or config.SIMULATION_DATE
    deadline = to_datetime(required_by)

    if deadline is None:
        return UrgencyAssessment(tier=UrgencyTier.NORMAL, signal=SIGNAL_YELLOW)

    delta = (deadline - reference).total_seconds() / SECONDS_PER_DAY
    days_until_deadline = math.ceil(delta)
    remaining = days_until_deadline - to_int(lead_time, default=0)
    tier = tier_for_remaining_days(remaining)

    return UrgencyAssessment(
        tier=tier,
        signal=TIER_SIGNALS[tier],
        days_until_deadline=days_until_deadline,
        remaining_days=remaining,
    )


async def score_urgency(state: RunState) -> RunState:
    counts = {tier: 0 for tier in UrgencyTier}

    for record in state.valid_requisitions:
        record.urgency = score_urgency_for(record.required_by_date, record.lead_time)
        counts[record.urgency.tier] += 1

    logger.info(
        f"[{STAGE_NAME}] urgent={counts[UrgencyTier.URGENT]} "
        f"normal={counts[UrgencyTier.NORMAL]} flexible={counts[UrgencyTier.FLEXIBLE]}"
    )
    state.add_log(
        STAGE_NAME,
        f"Urgent {counts[UrgencyTier.URGENT]}, normal {counts[UrgencyTier.NORMAL]}, "
        f"flexible {counts[UrgencyTier.FLEXIBLE]}",
    )
    return state
