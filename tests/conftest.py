"""Pytest configuration helpers for the PTME test suite.

Puts the repository root on ``sys.path`` so that running ``pytest`` directly
(instead of ``python -m pytest``) can import the ``PTME`` package without an
install.
"""

from __future__ import annotations

import sys
from pathlib import Path


def _ensure_project_root_on_path() -> None:
    """Insert the repository root at the front of ``sys.path`` if needed."""
    root = Path(__file__).resolve().parents[1]
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_ensure_project_root_on_path()
