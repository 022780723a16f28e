"""
FastAPI REST endpoints for the PR→PO triage agent.
Can be run with: uvicorn prpo.api:app --reload
"""

from typing import Any, Dict, List

from fastapi import FastAPI, UploadFile, File, Body
from fastapi.responses import JSONResponse, Response
from datetime import datetime

from prpo.main import (
    TriageService,
    NoRequisitionDataError,
    NoResultsError,
    RunInProgressError,
)
from prpo.agents.approval import QuotationNotFoundError
from prpo.utils.spreadsheet import EXPORT_FILENAME, EXPORT_MEDIA_TYPE, build_export_workbook
from prpo.utils.logging import setup_logging
from prpo.config import get_config

app = FastAPI(
    title="PR→PO Triage API",
    description="Purchase requisition triage against PO history",
    version="1.0.0",
)

config = get_config()
logger = setup_logging(__name__)

service = TriageService()


def error_response(message: str, status_code: int, error: str = None) -> JSONResponse:
    content = {"error": error or message}
    if error:
        content["message"] = message
    return JSONResponse(content=content, status_code=status_code)


def _file_results(results) -> Dict[str, Any]:
    return {
        "success": True,
        "files": [r.model_dump() for r in results],
        "summary": {
            "total_pr": len(service.pr_rows),
            "total_po": len(service.po_rows),
        },
    }


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "pricing_enabled": service.pricing_client is not None,
    }


@app.post("/api/upload")
async def upload_endpoint(files: List[UploadFile] = File(...)):
    """
    Load PR and PO history workbooks, replacing the loaded data.

    Files are routed by name: "PZAF" files are PO history; files naming a
    requisition export are PR data; other spreadsheets with a requisition
    column are loaded as generic PR data.
    """
    if not files:
        return error_response("No files uploaded", 400)

    try:
        payload = []
        for upload in files:
            payload.append((upload.filename or "", await upload.read()))
        results = service.load_files(payload)
        return JSONResponse(content=_file_results(results), status_code=200)

    except Exception as e:
        logger.exception(f"Upload error: {e}")
        return error_response("Failed to load files", 500, error=str(e))


@app.post("/api/load-sample")
async def load_sample_endpoint():
    """Load the bundled sample workbooks."""
    try:
        results = service.load_sample()
        return JSONResponse(content=_file_results(results), status_code=200)

    except FileNotFoundError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.exception(f"Load sample error: {e}")
        return error_response("Failed to load sample data", 500, error=str(e))


@app.get("/api/status")
async def status_endpoint():
    return JSONResponse(content=service.status.model_dump(mode="json"))


@app.get("/api/summary")
async def summary_endpoint():
    return service.data_summary()


@app.post("/api/process")
async def process_endpoint():
    """Run the triage pipeline over the loaded data."""
    try:
        result = await service.process()
        return JSONResponse(
            content={"success": True, "results": result.model_dump(mode="json")},
            status_code=200,
        )

    except NoRequisitionDataError as e:
        return error_response(str(e), 400)
    except RunInProgressError as e:
        return error_response(str(e), 409)
    except Exception as e:
        return error_response("Failed to process PR data", 500, error=str(e))


@app.get("/api/results")
async def results_endpoint():
    try:
        return JSONResponse(content=service.require_result().model_dump(mode="json"))
    except NoResultsError as e:
        return error_response(str(e), 404)


@app.get("/api/quotations")
async def quotations_endpoint():
    try:
        result = service.require_result()
    except NoResultsError as e:
        return error_response(str(e), 404)
    return JSONResponse(content=[q.model_dump(mode="json") for q in result.quotations])


@app.put("/api/quotations/{requisition_id}")
async def update_quotation_endpoint(requisition_id: str, updates: Dict[str, Any] = Body(...)):
    try:
        record = service.edit(requisition_id, updates)
        return {"success": True, "data": record.model_dump(mode="json")}
    except (NoResultsError, QuotationNotFoundError) as e:
        return error_response(str(e), 404)


@app.post("/api/quotations/batch-approve")
async def batch_approve_endpoint(ids: List[str] = Body(..., embed=True)):
    try:
        approved = service.batch_approve(ids)
        return {"success": True, "approved": approved}
    except NoResultsError as e:
        return error_response(str(e), 404)


@app.post("/api/quotations/{requisition_id}/approve")
async def approve_quotation_endpoint(requisition_id: str):
    try:
        service.approve(requisition_id)
        return {"success": True}
    except (NoResultsError, QuotationNotFoundError) as e:
        return error_response(str(e), 404)


@app.get("/api/export")
async def export_endpoint():
    """Download the review workbook."""
    try:
        result = service.require_result()
    except NoResultsError:
        return error_response("No results to export", 404)

    return Response(
        content=build_export_workbook(result),
        media_type=EXPORT_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )


@app.get("/api/emails")
async def emails_endpoint():
    if service.result is None:
        return []
    return JSONResponse(content=[n.model_dump(mode="json") for n in service.result.notifications])


@app.get("/api/llm-logs")
async def llm_logs_endpoint():
    if service.result is None:
        return []
    return JSONResponse(content=[c.model_dump(mode="json") for c in service.result.pricing_calls])


@app.get("/api/config")
async def get_config_endpoint():
    """Get current configuration (sanitized)."""
    return {
        "llm_provider": config.LLM_PROVIDER,
        "llm_model": config.LLM_MODEL,
        "llm_max_calls_per_run": config.LLM_MAX_CALLS_PER_RUN,
        "simulation_date": config.SIMULATION_DATE.date().isoformat(),
        "urgency_urgent": config.URGENCY_URGENT,
        "urgency_normal": config.URGENCY_NORMAL,
        "private_contract_tolerance_pct": config.PRIVATE_CONTRACT_TOLERANCE_PCT,
        "dumping_ratio": config.DUMPING_RATIO,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=config.API_HOST,
        port=config.API_PORT,
        log_level=config.LOG_LEVEL.lower(),
    )
