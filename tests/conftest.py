"""Pytest configuration shared across the suite."""

from pathlib import Path

import pytest

try:
    from . import _bootstrap  # noqa: F401
    from . import _samples
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    import _samples  # type: ignore

from app.clients.local_crm import SQLiteCRMClient


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def local_crm(tmp_path: Path) -> SQLiteCRMClient:
    """SQLite CRM isolated to the test's temporary directory."""
    return SQLiteCRMClient(str(tmp_path / "crm.db"))


@pytest.fixture
def scripted_gemini() -> "_samples.ScriptedGemini":
    return _samples.ScriptedGemini()
