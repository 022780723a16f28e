#!/usr/bin/env python
"""
Launch the PR→PO triage dashboard, or the REST API.

Usage:
    python run_ui.py          # Streamlit dashboard on :8501
    python run_ui.py api      # FastAPI server on API_HOST:API_PORT
"""

import subprocess
import sys
from pathlib import Path

DASHBOARD = Path(__file__).parent / "prpo" / "ui" / "streamlit_app.py"


def dashboard_command():
    return [sys.executable, "-m", "streamlit", "run", str(DASHBOARD)]


def api_command():
    from prpo.config import get_config

    config = get_config()
    return [
        sys.executable, "-m", "uvicorn", "prpo.api:app",
        "--host", config.API_HOST,
        "--port", str(config.API_PORT),
    ]


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    target = argv[0] if argv else "ui"

    if target == "api":
        command = api_command()
        print("🚀 Starting PR→PO Triage API...")
    elif target == "ui":
        if not DASHBOARD.exists():
            print(f"❌ Dashboard not found at {DASHBOARD}")
            return 1
        command = dashboard_command()
        print("🚀 Starting PR→PO Triage dashboard at http://localhost:8501")
    else:
        print(__doc__)
        return 2

    print("Press Ctrl+C to stop")
    try:
        return subprocess.run(command, check=False).returncode
    except KeyboardInterrupt:
        print("\n✅ Stopped")
        return 0


if __name__ == "__main__":
    sys.exit(main())
