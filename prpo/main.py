"""
Main entry point for the PR→PO triage agent.
"""

import asyncio
import os
import sys
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from prpo.state import RunState
from prpo.graph import build_triage_graph
from prpo.schemas.requisition import RequisitionRecord, ProcessingState, UrgencyTier
from prpo.schemas.po import PurchaseOrderHistory
from prpo.schemas.output import (
    ContractSummary,
    RunLogEntry,
    RunStatus,
    RunSummary,
    TriageResult,
)
from prpo.agents.approval import approve_quotation, batch_approve, edit_quotation
from prpo.agents.review import QuotationSource, SimulatedQuotationSource
from prpo.utils.llm import PricingClient, get_pricing_client
from prpo.utils.spreadsheet import FileLoadResult, ingest_files, list_sample_files
from prpo.utils.logging import setup_logging
from prpo.utils import dict_to_json_string
from prpo.config import get_config


logger = setup_logging(__name__)
config = get_config()


class NoRequisitionDataError(ValueError):
    """A run was requested before any PR rows were loaded."""


class RunInProgressError(RuntimeError):
    """A run was requested while another one is still in flight."""


class NoResultsError(LookupError):
    """No run has completed yet."""


def build_summary(state: RunState) -> RunSummary:
    """Build the run summary from the final state."""
    tiers = [r.urgency_tier for r in state.valid_requisitions]
    methods: Dict[str, int] = {}
    for record in state.quotations:
        if record.price:
            methods[record.price.method.value] = methods.get(record.price.method.value, 0) + 1

    auto_complete = sum(
        1 for r in state.quotations
        if r.review and r.review.processing_state == ProcessingState.AUTO_COMPLETE
    )
    needs_review = sum(
        1 for r in state.quotations
        if r.review and r.review.processing_state == ProcessingState.NEEDS_REVIEW
    )

    completed_at = state.completed_at or datetime.utcnow()
    counts = state.contract_counts
    return RunSummary(
        total=len(state.quotations),
        urgent=tiers.count(UrgencyTier.URGENT),
        normal=tiers.count(UrgencyTier.NORMAL),
        flexible=tiers.count(UrgencyTier.FLEXIBLE),
        auto_complete=auto_complete,
        needs_review=needs_review,
        contract_summary=ContractSummary(
            standard=counts.get("standard-price", 0),
            non_standard=counts.get("non-standard-price", 0),
            not_applicable=counts.get("not-applicable", 0),
        ),
        price_method_summary=methods,
        llm_calls=state.llm_call_count,
        processing_time=round((completed_at - state.started_at).total_seconds(), 2),
        total_requisitions=len(state.requisitions),
        valid_count=len(state.valid_requisitions),
        invalid_count=len(state.invalid_requisitions),
        matched_count=state.matched_count,
        pzaf_count=sum(1 for r in state.requisitions if r.is_pzaf),
    )


def build_result(state: RunState) -> TriageResult:
    """Freeze the final state into the result snapshot."""
    return TriageResult(
        run_id=state.run_id,
        completed_at=state.completed_at or datetime.utcnow(),
        summary=build_summary(state),
        quotations=list(state.quotations),
        invalid_requisitions=list(state.invalid_requisitions),
        notifications=list(state.notifications),
        pricing_calls=list(state.pricing_calls),
        log=list(state.log),
    )


async def run_triage(
    pr_rows: List[Dict[str, Any]],
    po_rows: List[Dict[str, Any]],
    pricing_client: Optional[PricingClient] = None,
    quotation_source: Optional[QuotationSource] = None,
    reporter: Optional[Callable[[int, str, int], None]] = None,
    run_id: str = None,
) -> TriageResult:
    """
    Run the triage pipeline over raw PR and PO rows.

    Fresh records are built from the rows on every call, so a run never sees
    the mutations of an earlier one.

    Args:
        pr_rows: Requisition rows (attribute names or spreadsheet headers)
        po_rows: PO history rows
        pricing_client: External price estimator; None disables LLM pricing
        quotation_source: Where quoted totals come from (simulated by default)
        reporter: Progress callback (step, step name, percent)
        run_id: Optional run ID (auto-generated if not provided)

    Returns:
        TriageResult snapshot
    """
    if not pr_rows:
        raise NoRequisitionDataError("No PR data loaded. Please upload files first.")

    if not run_id:
        run_id = f"RUN-{datetime.utcnow().strftime('%Y%m%d%H%M%S%f')}"

    state = RunState(
        run_id=run_id,
        started_at=datetime.utcnow(),
        requisitions=[RequisitionRecord.model_validate(row) for row in pr_rows],
        po_history=[PurchaseOrderHistory.model_validate(row) for row in po_rows],
    )

    logger.info(f"Starting triage run {run_id}")
    logger.info(f"Requisitions: {len(state.requisitions)}, PO history rows: {len(state.po_history)}")

    graph = build_triage_graph(
        pricing_client=pricing_client,
        quotation_source=quotation_source,
        reporter=reporter,
    )

    result = await graph.ainvoke(state, config={"recursion_limit": config.GRAPH_RECURSION_LIMIT})
    final_state = RunState(**result) if isinstance(result, dict) else result

    output = build_result(final_state)
    logger.info(
        f"Triage run {run_id} complete: {output.summary.total} quotation(s), "
        f"{output.summary.needs_review} need review"
    )
    return output


class TriageService:
    """
    Holds the loaded data and the latest result for the HTTP and UI surfaces.

    Only one run may be in flight; the latest result is replaced when a run
    finishes successfully.
    """

    def __init__(
        self,
        pricing_client: Optional[PricingClient] = None,
        quotation_source_factory: Optional[Callable[[], QuotationSource]] = None,
        use_configured_client: bool = True,
    ):
        if pricing_client is None and use_configured_client:
            pricing_client = get_pricing_client()
        self.pricing_client = pricing_client
        self.quotation_source_factory = quotation_source_factory or (
            lambda: SimulatedQuotationSource(config.QUOTE_SIMULATION_SEED)
        )

        self.pr_rows: List[Dict[str, Any]] = []
        self.po_rows: List[Dict[str, Any]] = []
        self.result: Optional[TriageResult] = None
        self.status = RunStatus()
        self._lock = asyncio.Lock()

    # Data loading

    def load_files(self, files: Iterable[Tuple[str, Union[str, bytes]]]) -> List[FileLoadResult]:
        """Replace the loaded data with the contents of ``files``."""
        pr_rows, po_rows, results = ingest_files(files)
        self.pr_rows = pr_rows
        self.po_rows = po_rows
        logger.info(f"Loaded {len(pr_rows)} PR rows and {len(po_rows)} PO rows")
        return results

    def load_rows(self, pr_rows: List[Dict[str, Any]], po_rows: List[Dict[str, Any]]) -> None:
        self.pr_rows = list(pr_rows)
        self.po_rows = list(po_rows)

    def load_sample(self, directory: str = None) -> List[FileLoadResult]:
        """Load every spreadsheet in the sample directory."""
        directory = directory or config.SAMPLE_DATA_DIR
        names = list_sample_files(directory)
        if not names:
            raise FileNotFoundError(f"No sample spreadsheets found in {directory}")
        return self.load_files((name, os.path.join(directory, name)) for name in names)

    def data_summary(self) -> Dict[str, Any]:
        pzaf_count = sum(
            1 for row in self.pr_rows
            if config.PZAF_MARKER in str(row.get("자재번호", row.get("material_number")) or "")
        )
        return {
            "pr_total": len(self.pr_rows),
            "po_history_total": len(self.po_rows),
            "pzaf_count": pzaf_count,
            "has_data": bool(self.pr_rows),
        }

    # Running

    def _report(self, step: int, name: str, progress: int) -> None:
        self.status.step = step
        self.status.current_step_name = name
        self.status.progress = progress
        self.status.logs.append(
            RunLogEntry(timestamp=datetime.utcnow(), stage="Progress", message=name)
        )

    async def process(self) -> TriageResult:
        """Run the pipeline over the loaded rows and keep the result."""
        if self._lock.locked():
            raise RunInProgressError("A triage run is already in progress")

        async with self._lock:
            if not self.pr_rows:
                raise NoRequisitionDataError("No PR data loaded. Please upload files first.")

            self.status = RunStatus(current_step_name="Initializing", running=True)
            try:
                result = await run_triage(
                    self.pr_rows,
                    self.po_rows,
                    pricing_client=self.pricing_client,
                    quotation_source=self.quotation_source_factory(),
                    reporter=self._report,
                )
            except Exception as e:
                logger.exception(f"Triage run failed: {e}")
                self.status.running = False
                self.status.logs.append(
                    RunLogEntry(timestamp=datetime.utcnow(), stage="Error", message=str(e), level="error")
                )
                raise

            self.result = result
            self.status.running = False
            self.status.logs.extend(result.log)
            return result

    # Post-run actions

    def require_result(self) -> TriageResult:
        if self.result is None:
            raise NoResultsError("No results available. Run processing first.")
        return self.result

    def approve(self, requisition_id: str) -> RequisitionRecord:
        return approve_quotation(self.require_result(), requisition_id)

    def batch_approve(self, requisition_ids: Iterable[str]) -> int:
        return batch_approve(self.require_result(), requisition_ids)

    def edit(self, requisition_id: str, updates: Dict[str, Any]) -> RequisitionRecord:
        return edit_quotation(self.require_result(), requisition_id, updates)


def format_output_json(result: TriageResult) -> str:
    """Format output as JSON string."""
    return dict_to_json_string(result.model_dump(mode="json"))


if __name__ == "__main__":
    # Example usage
    if len(sys.argv) > 1:
        service = TriageService()
        service.load_files((os.path.basename(path), path) for path in sys.argv[1:])
        output = asyncio.run(service.process())
        print(format_output_json(output))
    else:
        print("Usage: python -m prpo.main <workbook.xlsx> [<workbook.xlsx> ...]")
