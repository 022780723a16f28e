"""
Notifier
Schedules missing-field notices for the requesters of invalid requisitions.
No e-mail leaves the process; the entries are the notification audit log.
"""

from typing import Dict, List
from datetime import datetime

from prpo.state import RunState
from prpo.schemas.requisition import RequisitionRecord
from prpo.schemas.output import NotificationEntry, NotificationItem
from prpo.utils import is_blank
from prpo.utils.logging import setup_logging, log_stage_action
from prpo.config import get_config


logger = setup_logging(__name__)
config = get_config()

STAGE_NAME = "Notifier"


def group_by_requester(records: List[RequisitionRecord]) -> Dict[str, List[RequisitionRecord]]:
    """Group records by requester, keeping first-seen requester order."""
    groups: Dict[str, List[RequisitionRecord]] = {}
    for record in records:
        requester = config.UNASSIGNED_REQUESTER if is_blank(record.requester) else record.requester
        groups.setdefault(requester, []).append(record)
    return groups


def build_notification(requester: str, records: List[RequisitionRecord]) -> NotificationEntry:
    items = [
        NotificationItem(
            requisition_id=record.requisition_id,
            material_number=record.material_number,
            missing=record.validation.missing_text if record.validation else "",
        )
        for record in records
    ]
    return NotificationEntry(
        timestamp=datetime.utcnow(),
        recipient=requester,
        email=f"{requester}@{config.NOTIFY_EMAIL_DOMAIN}",
        subject=f"[PR missing required fields] {len(records)} item(s) need updating",
        pr_count=len(records),
        pr_list=items,
    )


async def notify_requesters(state: RunState) -> RunState:
    """One notification entry per requester with invalid requisitions."""
    groups = group_by_requester(state.invalid_requisitions)
    state.notifications = [build_notification(requester, records) for requester, records in groups.items()]

    for entry in state.notifications:
        log_stage_action(logger, STAGE_NAME, "notification_scheduled", {
            "recipient": entry.recipient,
            "pr_count": entry.pr_count,
        })

    state.add_log(STAGE_NAME, f"Scheduled {len(state.notifications)} notification(s)")
    return state
