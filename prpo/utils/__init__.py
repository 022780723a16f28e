"""
Shared utilities and helpers.
"""

import json
import math
from typing import Any, Dict, Optional
from datetime import date, datetime, timedelta


# Day zero of the spreadsheet serial-date system
EXCEL_EPOCH = datetime(1899, 12, 30)

DATE_FORMATS = ("%Y-%m-%d", "%Y.%m.%d", "%Y/%m/%d", "%Y%m%d")


def serialize_for_json(obj: Any) -> Any:
    """Serialize objects that aren't JSON-serializable by default."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif hasattr(obj, 'model_dump'):  # Pydantic model
        return obj.model_dump(mode="json")
    elif hasattr(obj, '__dict__'):
        return obj.__dict__
    return str(obj)


def dict_to_json_string(data: Dict) -> str:
    """Convert dict to JSON string, handling non-serializable types."""
    return json.dumps(data, default=serialize_for_json, indent=2, ensure_ascii=False)


def is_blank(value: Any) -> bool:
    """True for None, NaN and strings that are empty after trimming."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip() == ""


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Coerce spreadsheet values to float; malformed input yields ``default``."""
    if is_blank(value) or isinstance(value, bool):
        return default
    try:
        if isinstance(value, (int, float)):
            result = float(value)
        else:
            result = float(str(value).replace(",", "").strip())
    except (ValueError, OverflowError):
        return default
    if not math.isfinite(result):
        return default
    return result


def to_int(value: Any, default: int = 0) -> int:
    """
    Coerce to int the way ``parseInt`` reads a leading number.

    "7 days" -> 7, "abc" -> default, 3.9 -> 3.
    """
    number = to_float(value)
    if number is None:
        text = str(value).strip() if value is not None else ""
        digits = ""
        for idx, char in enumerate(text):
            if char.isdigit() or (idx == 0 and char in "+-"):
                digits += char
            else:
                break
        try:
            return int(digits)
        except ValueError:
            return default
    if math.isinf(number):
        return default
    return int(number)


def to_text(value: Any) -> Optional[str]:
    """Stringify identifiers; integral floats lose their ``.0``."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    return str(value)


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Parse dates coming from spreadsheets.

    Accepts datetime/date objects, ISO-like strings and serial day numbers.
    Returns None when the value cannot be read as a date.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # 20260105-style numbers are compact dates, not serials
        if float(value).is_integer() and 19000101 <= value <= 29991231:
            return to_datetime(str(int(value)))
        try:
            return EXCEL_EPOCH + timedelta(days=float(value))
        except (OverflowError, ValueError):
            return None

    text = str(value).strip()
    try:
        return datetime.fromisoformat(text).replace(tzinfo=None)
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text[:10], fmt)
        except ValueError:
            continue
    return None


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))
