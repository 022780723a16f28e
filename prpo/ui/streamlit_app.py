"""
Streamlit UI for the PR→PO Triage Agent

This is a thin review dashboard that:
- Accepts PR and PO history workbook uploads
- Calls the existing triage pipeline
- Displays the summary, the quotation review table and the run log
- Applies approval actions and offers the export download

NO BUSINESS LOGIC IS IMPLEMENTED HERE.
All logic is in prpo.agents and prpo.main.
"""

# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import asyncio

import pandas as pd
import streamlit as st

from prpo.main import TriageService, NoRequisitionDataError, RunInProgressError
from prpo.utils.spreadsheet import EXPORT_FILENAME, EXPORT_MEDIA_TYPE, build_export_workbook
from prpo.ui.ui_utils import pending_approval_ids, quotation_rows, summary_metrics
from prpo.config import get_config


config = get_config()


# ============================================================================
# PAGE CONFIGURATION
# ============================================================================

st.set_page_config(
    page_title="PR→PO Triage",
    page_icon="📦",
    layout="wide",
    initial_sidebar_state="expanded"
)


def get_service() -> TriageService:
    if "service" not in st.session_state:
        st.session_state.service = TriageService()
    return st.session_state.service


service = get_service()

st.title("📦 PR→PO Triage Agent")
st.markdown("""
Upload purchase requisition exports and the PZAF PO history, then run the
pipeline to see which items auto-complete and which need a buyer's review.
""")

st.divider()


# ============================================================================
# SIDEBAR - SETTINGS & INFO
# ============================================================================

with st.sidebar:
    st.header("⚙️ Settings")

    with st.expander("System Configuration", expanded=False):
        st.info(f"""
        **LLM Provider**: {config.LLM_PROVIDER}
        **Model**: {config.LLM_MODEL}
        **LLM pricing**: {"enabled" if service.pricing_client else "disabled"}
        **Simulation date**: {config.SIMULATION_DATE.date().isoformat()}
        **Max LLM calls per run**: {config.LLM_MAX_CALLS_PER_RUN}
        """)

    with st.expander("Loaded data", expanded=True):
        data = service.data_summary()
        st.metric("PR rows", data["pr_total"])
        st.metric("PO history rows", data["po_history_total"])
        st.metric("PZAF items", data["pzaf_count"])


# ============================================================================
# FILE UPLOAD SECTION
# ============================================================================

st.header("📤 Load Data")

col1, col2 = st.columns([3, 1])

with col1:
    uploaded_files = st.file_uploader(
        "PR exports and PZAF PO history",
        type=["xlsx", "xls"],
        accept_multiple_files=True,
    )
    if uploaded_files and st.button("Load uploaded files"):
        results = service.load_files((f.name, f.getvalue()) for f in uploaded_files)
        st.dataframe(pd.DataFrame([r.model_dump() for r in results]), hide_index=True)

with col2:
    st.write("")
    if st.button("Load sample data"):
        try:
            service.load_sample()
            st.success("✅ Sample data loaded")
        except FileNotFoundError as e:
            st.error(str(e))

st.divider()


# ============================================================================
# PIPELINE EXECUTION
# ============================================================================

if st.button("🚀 Run triage", type="primary", disabled=not service.pr_rows):
    with st.spinner("Running pipeline..."):
        try:
            asyncio.run(service.process())
            st.success("✅ Run complete")
        except (NoRequisitionDataError, RunInProgressError) as e:
            st.warning(str(e))
        except Exception as e:
            st.error(f"Pipeline Error: {str(e)}")

result = service.result

if result is None:
    st.info("👈 Load data and run the pipeline to see results")
    st.stop()


# ============================================================================
# RESULTS
# ============================================================================

st.header("📊 Summary")

metrics = summary_metrics(result.summary)
for column, metric in zip(st.columns(len(metrics)), metrics):
    column.metric(metric["label"], metric["value"])

st.caption(f"Processing time: {result.summary.processing_time:.2f}s")

st.header("📋 Quotation Review")

if result.quotations:
    st.dataframe(pd.DataFrame(quotation_rows(result.quotations)), hide_index=True, width="stretch")

    col1, col2 = st.columns(2)
    with col1:
        selected = st.selectbox("Approve a quotation", [q.requisition_id for q in result.quotations])
        if st.button("✅ Approve selected"):
            service.approve(selected)
            st.rerun()
    with col2:
        pending = pending_approval_ids(result.quotations)
        if st.button(f"✅ Approve all auto-complete ({len(pending)})", disabled=not pending):
            approved = service.batch_approve(pending)
            st.success(f"Approved {approved} quotation(s)")
            st.rerun()
else:
    st.info("No bid/quotation items in this run")

st.download_button(
    "⬇️ Download results",
    data=build_export_workbook(result),
    file_name=EXPORT_FILENAME,
    mime=EXPORT_MEDIA_TYPE,
)

with st.expander(f"📧 Missing-field notifications ({len(result.notifications)})"):
    for note in result.notifications:
        st.markdown(f"**{note.recipient}** ({note.email}): {note.subject}")
        st.dataframe(pd.DataFrame([item.model_dump() for item in note.pr_list]), hide_index=True)

with st.expander(f"🧠 LLM price estimates ({len(result.pricing_calls)})"):
    for call in result.pricing_calls:
        st.json(call.model_dump(mode="json"))

with st.expander("📝 Run log"):
    for entry in result.log:
        st.caption(f"[{entry.stage}] {entry.message}")
