"""
Spreadsheet ingestion and export.
Reads uploaded workbooks into raw rows and writes the review workbook.
"""

import io
import os
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd
from pydantic import BaseModel

from prpo.schemas.output import TriageResult
from prpo.schemas.requisition import RequisitionRecord
from prpo.utils import is_blank
from prpo.utils.logging import setup_logging


logger = setup_logging(__name__)

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls")
REQUISITION_ID_HEADERS = ("구매요청", "requisition_id")
PR_FILE_MARKERS = ("구매요청", "1P0K", "1P0M")
PO_FILE_MARKER = "PZAF"

EXPORT_FILENAME = "PR_PO_Agent_Result.xlsx"
EXPORT_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

Row = Dict[str, Any]


class FileLoadResult(BaseModel):
    """How one uploaded file was interpreted."""
    filename: str
    type: str  # po_history, pr_data, skipped
    source: Optional[str] = None
    rows: int = 0


def _clean_cell(value: Any) -> Any:
    """Plain Python values only: NaN -> None, numpy scalars unwrapped."""
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if value is pd.NaT or (not isinstance(value, str) and is_blank(value)):
        return None
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        return value.item()
    return value


def read_spreadsheet(source: Union[str, bytes, io.BytesIO]) -> List[Row]:
    """Read the first sheet of a workbook into a list of row dicts."""
    if isinstance(source, bytes):
        source = io.BytesIO(source)

    df = pd.read_excel(source, sheet_name=0)
    df.columns = [str(col).strip() for col in df.columns]

    rows = []
    for record in df.to_dict(orient="records"):
        rows.append({key: _clean_cell(value) for key, value in record.items()})
    return rows


def requisition_source_for(filename: str) -> str:
    if "1P0K02" in filename:
        return "1P0K02"
    if "1P0M01" in filename:
        return "1P0M01"
    return "Unknown"


def _looks_like_requisitions(rows: List[Row]) -> bool:
    return bool(rows) and any(not is_blank(rows[0].get(header)) for header in REQUISITION_ID_HEADERS)


def classify_file(filename: str, rows: List[Row]) -> Tuple[str, Optional[str]]:
    """
    Route a file by name.

    Returns:
        (type, source) where type is po_history, pr_data or skipped
    """
    if PO_FILE_MARKER in filename:
        return "po_history", None
    if any(marker in filename for marker in PR_FILE_MARKERS):
        return "pr_data", requisition_source_for(filename)
    if filename.lower().endswith(SPREADSHEET_EXTENSIONS) and _looks_like_requisitions(rows):
        return "pr_data", "Generic"
    return "skipped", None


def ingest_files(
    files: Iterable[Tuple[str, Union[str, bytes]]],
) -> Tuple[List[Row], List[Row], List[FileLoadResult]]:
    """
    Load a batch of (filename, content-or-path) pairs.

    PR rows from every PR file are concatenated and tagged with their source;
    the last PO history file wins. Unreadable or unknown files are skipped.
    """
    pr_rows: List[Row] = []
    po_rows: List[Row] = []
    results: List[FileLoadResult] = []

    for filename, content in files:
        try:
            rows = read_spreadsheet(content)
        except Exception as e:
            logger.warning(f"Skipping {filename}: could not read spreadsheet ({e})")
            results.append(FileLoadResult(filename=filename, type="skipped"))
            continue

        file_type, source = classify_file(filename, rows)
        logger.info(f"Processing file: {filename}, rows: {len(rows)} -> {file_type}")

        if file_type == "po_history":
            po_rows = rows
        elif file_type == "pr_data":
            for row in rows:
                row["데이터소스"] = source
            pr_rows.extend(rows)
        else:
            logger.warning(f"Skipping {filename}: unknown format")

        results.append(
            FileLoadResult(
                filename=filename,
                type=file_type,
                source=source,
                rows=len(rows) if file_type != "skipped" else 0,
            )
        )

    return pr_rows, po_rows, results


def list_sample_files(directory: str) -> List[str]:
    """Spreadsheet files in ``directory``, sorted by name."""
    if not os.path.isdir(directory):
        return []
    return sorted(
        name for name in os.listdir(directory)
        if name.lower().endswith(SPREADSHEET_EXTENSIONS)
    )


def flatten_record(record: RequisitionRecord) -> Row:
    """One flat export row: nested stage fields become dotted columns."""
    flat: Row = {}

    def _walk(prefix: str, value: Any) -> None:
        if isinstance(value, dict):
            for key, inner in value.items():
                _walk(f"{prefix}.{key}" if prefix else key, inner)
        elif isinstance(value, list):
            flat[prefix] = ", ".join(str(item) for item in value)
        else:
            flat[prefix] = value

    _walk("", record.model_dump(mode="json"))
    return flat


def build_summary_rows(result: TriageResult) -> List[List[Any]]:
    summary = result.summary
    return [
        ["PR→PO Agent results", ""],
        ["", ""],
        ["Total processed", summary.total],
        ["Urgent", summary.urgent],
        ["Normal", summary.normal],
        ["Flexible", summary.flexible],
        ["", ""],
        ["Auto-complete", summary.auto_complete],
        ["Needs review", summary.needs_review],
        ["", ""],
        ["LLM calls", summary.llm_calls],
        ["Processing time (s)", summary.processing_time],
    ]


def build_export_workbook(result: TriageResult) -> bytes:
    """Write the review workbook and return its bytes."""
    output = io.BytesIO()

    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        if result.quotations:
            pd.DataFrame([flatten_record(r) for r in result.quotations]).to_excel(
                writer, sheet_name="Review Results", index=False
            )
        pd.DataFrame(build_summary_rows(result)).to_excel(
            writer, sheet_name="Summary", index=False, header=False
        )

    return output.getvalue()
