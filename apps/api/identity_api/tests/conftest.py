from __future__ import annotations

import os
import tempfile
from pathlib import Path

# Settings and the engine are built at import time, so point them at a
# throwaway database before any identity_api module is imported.
os.environ["DATABASE_URL"] = f"sqlite:///{Path(tempfile.gettempdir()) / 'identity_api_tests.db'}"
os.environ["API_PREFIX"] = ""
