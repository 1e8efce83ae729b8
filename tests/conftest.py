"""Pytest configuration.

The package lives in the top-level `mail_autoconfig/` directory. Depending on
how pytest is invoked, the repository root may not be on `sys.path`, which
breaks imports like `from mail_autoconfig.modules...`.

This file adds the repo root to `sys.path` during test collection.
"""

from __future__ import annotations

import sys
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]

# NOTE: Insert at the front so local imports win over an installed copy.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
