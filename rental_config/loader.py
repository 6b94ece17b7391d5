"""
Configuration Loader (``rental_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the typed
``rental_config.schema`` dataclasses.  Runtime callers go through
``rental_config.get_active_config()``; this module is its internals.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` is deterministic over the raw YAML content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from the schema's ``__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from rental_config.schema import (
    DatabaseConfig,
    DefaultPolicyConfig,
    JobConfig,
    PaymentConfig,
    RentalConfig,
    SchedulerConfig,
    TerminationConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_scheduler(data: dict[str, Any]) -> SchedulerConfig:
    jobs_raw = data.get("jobs", {}) or {}
    jobs = tuple(
        JobConfig(
            name=name,
            cron=str(spec["cron"]),
            enabled=bool(spec.get("enabled", True)),
        )
        for name, spec in jobs_raw.items()
    )
    return SchedulerConfig(
        enabled=bool(data.get("enabled", True)),
        tick_interval_seconds=int(data.get("tick_interval_seconds", 30)),
        jobs=jobs,
    )


def parse_default_policy(data: dict[str, Any]) -> DefaultPolicyConfig:
    return DefaultPolicyConfig(
        minimum_notice_days=int(data.get("minimum_notice_days", 30)),
        grace_period_days=int(data.get("grace_period_days", 60)),
        allow_emergency_waiver=bool(data.get("allow_emergency_waiver", True)),
        emergency_categories=tuple(data.get("emergency_categories", ()) or ()),
        penalty_rules=tuple(dict(r) for r in data.get("penalty_rules", ()) or ()),
    )


def parse_termination(data: dict[str, Any]) -> TerminationConfig:
    return TerminationConfig(
        no_penalty_days=int(data.get("no_penalty_days", 60)),
        half_penalty_days=int(data.get("half_penalty_days", 30)),
        high_penalty_threshold=str(data.get("high_penalty_threshold", "50")),
        default_policy=parse_default_policy(data.get("default_policy", {}) or {}),
    )


def parse_config(data: dict[str, Any]) -> RentalConfig:
    """Parse the whole document.  Missing sections take their defaults."""
    db = data.get("database", {}) or {}
    payments = data.get("payments", {}) or {}
    return RentalConfig(
        database=DatabaseConfig(
            url=str(db.get("url", "sqlite:///rental.db")),
            echo=bool(db.get("echo", False)),
            pool_size=int(db.get("pool_size", 10)),
        ),
        scheduler=parse_scheduler(data.get("scheduler", {}) or {}),
        payments=PaymentConfig(
            reminder_lead_days=int(payments.get("reminder_lead_days", 3)),
        ),
        termination=parse_termination(data.get("termination", {}) or {}),
        log_level=str(data.get("log_level", "INFO")).upper(),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
