"""
Pytest configuration for Verified Inference tests.

The store singleton reads VERINFER_DB_PATH at import time, so the
environment is set here before any verinfer module is imported.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="verinfer-tests-")

os.environ["VERINFER_DB_PATH"] = os.path.join(_DB_DIR, "test.db")
# Empty, not unset: load_dotenv() does not override it from a local .env
os.environ["VERINFER_API_KEYS"] = ""
os.environ.setdefault("VERINFER_LOG_FORMAT", "text")
