"""
LangGraph orchestration for the triage pipeline.
Defines the graph structure; stages run strictly in sequence.
"""

from datetime import datetime
from typing import Callable, Optional

from langgraph.graph import StateGraph, START, END

from prpo.state import RunState
from prpo.agents.normalizer import normalize_keys
from prpo.agents.validation import validate_requisitions
from prpo.agents.notifier import notify_requesters
from prpo.agents.classification import classify_contracts
from prpo.agents.urgency import score_urgency
from prpo.agents.matching import match_suppliers
from prpo.agents.quotation import plan_quotations
from prpo.agents.pricing import make_estimate_prices
from prpo.agents.review import QuotationSource, make_review_appropriateness, sort_by_urgency
from prpo.utils.llm import PricingClient
from prpo.utils.logging import setup_logging


logger = setup_logging(__name__)

TOTAL_STEPS = 7

# reporter(step, step_name, progress_percent)
ProgressReporter = Callable[[int, str, int], None]


async def finalize_run(state: RunState) -> RunState:
    """Order the quotation set by urgency and close the run."""
    state.quotations = sort_by_urgency(state.quotations)
    state.completed_at = datetime.utcnow()

    elapsed = (state.completed_at - state.started_at).total_seconds()
    state.add_log("Finalizer", f"Total processing time: {elapsed:.2f}s")
    return state


def with_progress(node, step: int, name: str, reporter: Optional[ProgressReporter], progress: int = None):
    """Report progress before running ``node``."""
    if reporter is None:
        return node

    percent = progress if progress is not None else round(step / TOTAL_STEPS * 100)

    async def wrapped(state: RunState) -> RunState:
        reporter(step, name, percent)
        return await node(state)

    wrapped.__name__ = getattr(node, "__name__", name)
    return wrapped


def build_triage_graph(
    pricing_client: Optional[PricingClient] = None,
    quotation_source: Optional[QuotationSource] = None,
    reporter: Optional[ProgressReporter] = None,
):
    """
    Build the LangGraph workflow for PR triage.

    Flow:
    0. Key Normalizer - material keys and PZAF flag
    1. Validator - required fields
    2. Notifier - missing-field notices
    3. Contract Classifier
    4. Urgency Scorer
    5. Supplier Matcher
    6. Quotation Planner, then Price Estimator
    7. Appropriateness Reviewer, then Finalizer
    """

    graph = StateGraph(RunState)

    graph.add_node("normalize_keys", normalize_keys)
    graph.add_node("validate_requisitions", with_progress(validate_requisitions, 1, "Data validation", reporter))
    graph.add_node("notify_requesters", with_progress(notify_requesters, 2, "Missing-field notifications", reporter))
    graph.add_node("classify_contracts", with_progress(classify_contracts, 3, "Contract classification", reporter))
    graph.add_node("score_urgency", with_progress(score_urgency, 4, "Urgency scoring", reporter))
    graph.add_node("match_suppliers", with_progress(match_suppliers, 5, "Supplier matching", reporter))
    graph.add_node(
        "plan_quotations",
        with_progress(plan_quotations, 6, "Quotation planning and price estimation", reporter),
    )
    graph.add_node("estimate_prices", make_estimate_prices(pricing_client))
    graph.add_node(
        "review_appropriateness",
        with_progress(make_review_appropriateness(quotation_source), 7, "Appropriateness review", reporter),
    )
    graph.add_node("finalize_run", with_progress(finalize_run, 7, "Complete", reporter, progress=100))

    graph.add_edge(START, "normalize_keys")
    graph.add_edge("normalize_keys", "validate_requisitions")
    graph.add_edge("validate_requisitions", "notify_requesters")
    graph.add_edge("notify_requesters", "classify_contracts")
    graph.add_edge("classify_contracts", "score_urgency")
    graph.add_edge("score_urgency", "match_suppliers")
    graph.add_edge("match_suppliers", "plan_quotations")
    graph.add_edge("plan_quotations", "estimate_prices")
    graph.add_edge("estimate_prices", "review_appropriateness")
    graph.add_edge("review_appropriateness", "finalize_run")
    graph.add_edge("finalize_run", END)

    return graph.compile()
