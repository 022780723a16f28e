"""
Shared test setup.
"""

import os

# Must run before any prpo module reads its configuration
os.environ.setdefault("ENV", "test")
os.environ.setdefault("SIMULATION_DATE", "2026-01-01")
