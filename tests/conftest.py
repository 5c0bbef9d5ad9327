from datetime import datetime, timezone
from pathlib import Path

import pytest

from core_prune.config import RetentionPolicy

NOW = datetime(2024, 3, 15, tzinfo=timezone.utc)


def policy(company_id, days, name=None):
    return RetentionPolicy(companyId=company_id, companyName=name or company_id.title(), retentionDays=days)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def policies():
    """acme keeps 30 days, everyone else falls back to 7."""
    return {
        "default": policy("default", "7"),
        "acme": policy("acme", "30"),
    }


@pytest.fixture
def make_dirs():
    def _make(root: Path, *relative: str) -> None:
        for rel in relative:
            (root / rel).mkdir(parents=True, exist_ok=True)

    return _make
