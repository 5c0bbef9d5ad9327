from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .boundary import as_utc
from .config import PolicyMap, PruneConfig
from .retention import InvalidRetentionValue, cutoff_for
from .walker import PruneStats, prune

LOG = logging.getLogger(__name__)

Pruner = Callable[[Path, datetime, datetime], PruneStats]


class SweepRootError(Exception):
    """Raised when the sweep root cannot be listed."""


@dataclass
class TenantResult:
    tenant_id: str
    status: str
    started_at: datetime
    completed_at: datetime
    cutoff: Optional[datetime] = None
    deleted: List[Path] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == "success"


def _default_pruner(root: Path, cutoff: datetime, now: datetime) -> PruneStats:
    return prune(root, cutoff, now=now)


class SweepOrchestrator:
    """Runs one prune task per company directory and waits for all of them."""

    def __init__(self, policies: PolicyMap, pruner: Pruner = _default_pruner) -> None:
        self._policies = policies
        self._pruner = pruner

    @classmethod
    def from_config(cls, config: PruneConfig) -> "SweepOrchestrator":
        return cls(config.policy_map())

    def run(self, sweep_root: Path, now: Optional[datetime] = None) -> List[TenantResult]:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        tenants = self._list_tenants(Path(sweep_root))
        results: Dict[str, TenantResult] = {}
        cutoffs: Dict[str, datetime] = {}

        for tenant_id in tenants:
            try:
                cutoffs[tenant_id] = cutoff_for(tenant_id, self._policies, now)
            except InvalidRetentionValue as exc:
                LOG.error(
                    "Error, retention time [%s] for company %s [%s] is not a number.",
                    exc.raw_value,
                    exc.tenant_name,
                    exc.tenant_id,
                )
                results[tenant_id] = TenantResult(
                    tenant_id=tenant_id,
                    status="skipped",
                    started_at=now,
                    completed_at=now,
                    errors=[str(exc)],
                )

        if cutoffs:
            with ThreadPoolExecutor(max_workers=len(cutoffs), thread_name_prefix="prune") as pool:
                futures: Dict[str, Future] = {
                    tenant_id: pool.submit(
                        self._run_tenant, tenant_id, Path(sweep_root) / tenant_id, cutoff, now
                    )
                    for tenant_id, cutoff in cutoffs.items()
                }
                for tenant_id, future in futures.items():
                    results[tenant_id] = future.result()

        return [results[tenant_id] for tenant_id in tenants]

    def _list_tenants(self, sweep_root: Path) -> List[str]:
        try:
            with os.scandir(sweep_root) as entries:
                tenants = [entry.name for entry in entries if entry.is_dir(follow_symlinks=False)]
        except OSError as exc:
            raise SweepRootError(f"Could not open base directory {sweep_root}: {exc}") from exc
        return sorted(tenants)

    def _run_tenant(self, tenant_id: str, root: Path, cutoff: datetime, now: datetime) -> TenantResult:
        started_at = datetime.now(timezone.utc)
        LOG.debug("Pruning %s with cutoff %s", root, cutoff.isoformat())
        try:
            stats = self._pruner(root, cutoff, now)
        except Exception as exc:  # noqa: BLE001
            LOG.error("Prune of %s aborted: %s", root, exc)
            return TenantResult(
                tenant_id=tenant_id,
                status="failed",
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
                cutoff=cutoff,
                errors=[str(exc)],
            )

        return TenantResult(
            tenant_id=tenant_id,
            status="partial" if stats.errors else "success",
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            cutoff=cutoff,
            deleted=list(stats.deleted),
            errors=list(stats.errors),
        )
