"""
Entry point for Streamlit Cloud deployment.

Streamlit Cloud looks for an app in the repository root; this file runs the
dashboard from prpo/ui/streamlit_app.py.
"""

import os

os.environ["STREAMLIT_SERVER_HEADLESS"] = "true"

from prpo.ui.streamlit_app import *  # noqa: F401, F403
