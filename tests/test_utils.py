"""
Tests for coercion helpers, configuration and display helpers.
"""

import pytest
from datetime import date, datetime

from prpo.utils import is_blank, round_half_up, to_datetime, to_float, to_int, to_text
from prpo.config import get_config, TestConfig
from prpo.schemas.output import RunSummary
from prpo.schemas.requisition import ApprovalState, RequisitionRecord
from prpo.ui.ui_utils import pending_approval_ids, quotation_row, summary_metrics


@pytest.mark.parametrize("value, expected", [
    (None, True),
    ("", True),
    ("   ", True),
    (float("nan"), True),
    (0, False),
    ("x", False),
])
def test_is_blank(value, expected):
    assert is_blank(value) is expected


@pytest.mark.parametrize("value, expected", [
    ("1,234.5", 1234.5),
    (12, 12.0),
    ("abc", None),
    (None, None),
    (float("nan"), None),
    (True, None),
    ("inf", None),
    (float("inf"), None),
    ("1e309", None),
])
def test_to_float(value, expected):
    assert to_float(value) == expected


@pytest.mark.parametrize("value, expected", [
    ("7 days", 7),
    ("7", 7),
    (3.9, 3),
    ("abc", 0),
    (None, 0),
    ("-2", -2),
])
def test_to_int(value, expected):
    assert to_int(value) == expected


def test_to_text():
    assert to_text(12.0) == "12"
    assert to_text(12.5) == "12.5"
    assert to_text(float("nan")) is None
    assert to_text("ABC") == "ABC"
    assert to_text(None) is None


@pytest.mark.parametrize("value, expected", [
    (46023, datetime(2026, 1, 1)),
    (20260105, datetime(2026, 1, 5)),
    ("2026-01-05", datetime(2026, 1, 5)),
    ("2026-01-05T10:30:00", datetime(2026, 1, 5, 10, 30)),
    ("2026.01.05", datetime(2026, 1, 5)),
    (date(2026, 1, 5), datetime(2026, 1, 5)),
    ("garbage", None),
    (3000000, None),
    (20260105.5, None),
    (float("inf"), None),
    (None, None),
])
def test_to_datetime(value, expected):
    assert to_datetime(value) == expected


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


def test_test_config():
    config = get_config("test")
    assert isinstance(config, TestConfig)
    assert config.LOG_FILE == ""
    assert config.URGENCY_URGENT <= config.URGENCY_NORMAL


def test_invalid_provider_rejected(monkeypatch):
    monkeypatch.setattr(TestConfig, "LLM_PROVIDER", "nope")
    with pytest.raises(ValueError):
        get_config("test")


def test_quotation_row_without_stages():
    row = quotation_row(RequisitionRecord(requisition_id="PR1"))
    assert row["PR"] == "PR1"
    assert row["Verdict"] == "-"
    assert row["Estimated total"] == "-"


def test_pending_approval_ids():
    records = [
        RequisitionRecord(requisition_id="A", approval_state=ApprovalState.PENDING_APPROVAL),
        RequisitionRecord(requisition_id="B", approval_state=ApprovalState.PENDING_REVIEW),
        RequisitionRecord(requisition_id="C", approval_state=ApprovalState.APPROVED),
    ]
    assert pending_approval_ids(records) == ["A"]


def test_summary_metrics():
    labels = [m["label"] for m in summary_metrics(RunSummary(total=3))]
    assert labels[0] == "Quotations"
    assert "Needs review" in labels
