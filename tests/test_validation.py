"""
Tests for required-field validation and missing-field notifications.
"""

import pytest
from datetime import datetime

from prpo.agents.validation import validate_requisition, validate_requisitions
from prpo.agents.notifier import notify_requesters
from prpo.schemas.requisition import RequisitionRecord, ValidationStatus
from prpo.state import RunState
from prpo.config import get_config


config = get_config()


def make_record(**overrides) -> RequisitionRecord:
    fields = {
        "requisition_id": "PR001",
        "material_number": "PZAFAB1234",
        "description": "BOLT",
        "requisition_date": "2025-12-20",
        "required_by_date": "2026-01-10",
        "lead_time": 3,
        "sourcing_group": "SG1",
        "material_group": "MG1",
        "requester": "kim",
    }
    fields.update(overrides)
    return RequisitionRecord(**fields)


def test_complete_record_passes():
    result = validate_requisition(make_record())
    assert result.status == ValidationStatus.PASS
    assert result.missing_fields == []


def test_missing_fields_reported_in_declaration_order():
    record = make_record(sourcing_group="   ", description=None)
    result = validate_requisition(record)

    assert result.status == ValidationStatus.FAIL
    assert result.missing_fields == ["description", "sourcing_group"]
    assert result.missing_text == "description, sourcing_group"


def test_zero_lead_time_is_present():
    assert validate_requisition(make_record(lead_time=0)).status == ValidationStatus.PASS


def test_nan_counts_as_missing():
    result = validate_requisition(make_record(lead_time=float("nan"), material_group=float("nan")))
    assert result.missing_fields == ["lead_time", "material_group"]


def test_korean_headers_are_accepted():
    record = RequisitionRecord.model_validate({
        "구매요청": 100234,
        "자재번호": "PZAFAB1234",
        "내역": "BOLT",
        "구매요청일": "2025-12-20",
        "PR납기일": "2026-01-10",
        "LEAD_TIME": 3,
        "소싱그룹": "SG1",
        "자재그룹": "MG1",
    })
    assert record.requisition_id == "100234"
    assert validate_requisition(record).status == ValidationStatus.PASS


@pytest.mark.asyncio
async def test_validate_node_partitions_records():
    records = [make_record(), make_record(requisition_id="PR002", description=""), make_record(requisition_id="PR003")]
    state = RunState(run_id="T", started_at=datetime(2026, 1, 1), requisitions=records)

    result = await validate_requisitions(state)

    assert [r.requisition_id for r in result.valid_requisitions] == ["PR001", "PR003"]
    assert [r.requisition_id for r in result.invalid_requisitions] == ["PR002"]
    assert all(r.validation is not None for r in result.requisitions)


@pytest.mark.asyncio
async def test_notifications_grouped_by_requester():
    invalid = [
        make_record(requisition_id="PR002", description=None),
        make_record(requisition_id="PR003", lead_time=None),
        make_record(requisition_id="PR004", requester=None, material_group=None),
    ]
    state = RunState(run_id="T", started_at=datetime(2026, 1, 1), requisitions=invalid)
    state = await validate_requisitions(state)

    result = await notify_requesters(state)

    assert len(result.notifications) == 2
    kim, unassigned = result.notifications
    assert kim.recipient == "kim"
    assert kim.email == f"kim@{config.NOTIFY_EMAIL_DOMAIN}"
    assert kim.subject == "[PR missing required fields] 2 item(s) need updating"
    assert kim.pr_count == 2
    assert kim.status == "scheduled"
    assert [item.missing for item in kim.pr_list] == ["description", "lead_time"]
    assert unassigned.recipient == "unassigned"
    assert unassigned.pr_list[0].requisition_id == "PR004"


@pytest.mark.asyncio
async def test_no_notifications_without_invalid_records():
    state = RunState(run_id="T", started_at=datetime(2026, 1, 1), requisitions=[make_record()])
    state = await validate_requisitions(state)
    result = await notify_requesters(state)
    assert result.notifications == []
