from __future__ import annotations

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from croniter import CroniterBadCronError, croniter

DEFAULT_POLICY_KEY = "default"


class ConfigurationError(Exception):
    """Raised when the prune configuration is missing or invalid."""


# --- Retention policies ------------------------------------------------------


class RetentionPolicy(BaseModel):
    """Retention settings for one company directory under the sweep root."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    company_id: str = Field(alias="companyId")
    company_name: str = Field(default="", alias="companyName")
    retention_days: str = Field(default="", alias="retentionDays", description="Raw value; parsed per tenant.")

    @field_validator("retention_days", mode="before")
    @classmethod
    def _stringify_retention(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


PolicyMap = Dict[str, RetentionPolicy]


# --- Scheduler ---------------------------------------------------------------


class SchedulerConfig(BaseModel):
    cron: str
    timezone: str = "UTC"
    run_on_startup: bool = True

    @field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        try:
            croniter(value, datetime.now(ZoneInfo("UTC")))
        except (CroniterBadCronError, ValueError) as exc:  # pragma: no cover - library errors
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:  # pragma: no cover - library errors
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value


# --- Root configuration ------------------------------------------------------


class PruneConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sweep_root: Optional[Path] = None
    default: RetentionPolicy
    companies: List[RetentionPolicy] = Field(default_factory=list)
    scheduler: Optional[SchedulerConfig] = None

    @field_validator("sweep_root")
    @classmethod
    def _expand_sweep_root(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value else value

    @model_validator(mode="after")
    def _unique_companies(self) -> "PruneConfig":
        seen = set()
        for policy in self.companies:
            if policy.company_id in seen:
                raise ValueError(f"Company '{policy.company_id}' is configured more than once.")
            seen.add(policy.company_id)
        return self

    def policy_map(self) -> PolicyMap:
        policies: PolicyMap = {DEFAULT_POLICY_KEY: self.default}
        for policy in self.companies:
            policies[policy.company_id] = policy
        return policies


def load_config(path: Path) -> PruneConfig:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not read configuration {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration {path} must be a mapping at the top level")

    try:
        return PruneConfig.model_validate(raw)
    except Exception as exc:  # noqa: BLE001
        raise ConfigurationError(str(exc)) from exc
