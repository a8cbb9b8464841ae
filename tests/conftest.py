"""Test configuration helpers."""

from __future__ import annotations

import os
import sys
from pathlib import Path

# expensebot.db builds its engine at import time from these settings.
TEST_ENVIRONMENT = {
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "AUTO_RUN_MIGRATIONS": "false",
    "TIMEZONE": "Africa/Algiers",
    "CURRENCY": "DZD",
}


def _ensure_project_root_on_path() -> None:
    root = str(Path(__file__).resolve().parents[1])
    if root not in sys.path:
        sys.path.insert(0, root)


def _pin_test_environment() -> None:
    """Keep a developer's .env from leaking a real database or zone into the tests."""
    for key, value in TEST_ENVIRONMENT.items():
        os.environ.setdefault(key, value)


_ensure_project_root_on_path()
_pin_test_environment()
