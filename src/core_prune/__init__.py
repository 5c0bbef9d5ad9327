"""Retention-based pruning of dated company directory trees."""

from __future__ import annotations

from .config import load_config, PruneConfig  # noqa: F401
from .orchestrator import SweepOrchestrator  # noqa: F401
