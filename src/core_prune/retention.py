from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from .boundary import as_utc, parse_decimal
from .config import DEFAULT_POLICY_KEY, PolicyMap, RetentionPolicy

LOG = logging.getLogger(__name__)

EARLIEST_CUTOFF = datetime.min.replace(tzinfo=timezone.utc)


class InvalidRetentionValue(Exception):
    """Raised when a company's retention value is not a non-negative integer."""

    def __init__(self, raw_value: str, tenant_id: str, tenant_name: str) -> None:
        super().__init__(
            f"retention time [{raw_value}] for company {tenant_name} [{tenant_id}] is not a number"
        )
        self.raw_value = raw_value
        self.tenant_id = tenant_id
        self.tenant_name = tenant_name


def policy_for(tenant_id: str, policies: PolicyMap) -> RetentionPolicy:
    policy = policies.get(tenant_id)
    if policy is None:
        LOG.debug("No policy for %s; using %s", tenant_id, DEFAULT_POLICY_KEY)
        policy = policies[DEFAULT_POLICY_KEY]
    return policy


def resolve(tenant_id: str, policies: PolicyMap) -> int:
    """Return the retention days that apply to ``tenant_id``.

    Falls back to the ``default`` policy for unlisted tenants. Raises
    :class:`InvalidRetentionValue` when the configured value does not parse
    as a non-negative integer.
    """
    policy = policy_for(tenant_id, policies)
    raw = policy.retention_days
    days = parse_decimal(raw)
    if days is None or days < 0:
        raise InvalidRetentionValue(raw, tenant_id, policy.company_name)
    return days


def cutoff(retention_days: int, now: datetime) -> datetime:
    """Return ``now`` minus ``retention_days`` whole days."""
    try:
        return as_utc(now) - timedelta(days=retention_days)
    except OverflowError:
        return EARLIEST_CUTOFF


def cutoff_for(tenant_id: str, policies: PolicyMap, now: datetime) -> datetime:
    return cutoff(resolve(tenant_id, policies), now)
