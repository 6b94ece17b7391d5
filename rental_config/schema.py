"""
Rental configuration schema.

Frozen dataclasses the YAML configuration is parsed into.  Each section
validates itself in ``__post_init__`` so an invalid file fails at load time
rather than at the first scheduled run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobConfig:
    """One scheduled job: its name, cron expression and on/off switch."""

    name: str
    cron: str
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Job name must be non-empty")
        if len(self.cron.split()) != 5:
            raise ValueError(f"Job {self.name}: cron must have 5 fields, got {self.cron!r}")


@dataclass(frozen=True)
class SchedulerConfig:
    enabled: bool = True
    tick_interval_seconds: int = 30
    jobs: tuple[JobConfig, ...] = ()

    def __post_init__(self) -> None:
        if self.tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be positive")
        names = [j.name for j in self.jobs]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate job names in scheduler config: {names}")

    def job(self, name: str) -> JobConfig | None:
        for job in self.jobs:
            if job.name == name:
                return job
        return None


# ---------------------------------------------------------------------------
# Payments / termination
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentConfig:
    reminder_lead_days: int = 3

    def __post_init__(self) -> None:
        if self.reminder_lead_days < 0:
            raise ValueError("reminder_lead_days must be >= 0")


@dataclass(frozen=True)
class DefaultPolicyConfig:
    """The policy given to a property that has none."""

    minimum_notice_days: int = 30
    grace_period_days: int = 60
    allow_emergency_waiver: bool = True
    emergency_categories: tuple[str, ...] = ()
    penalty_rules: tuple[dict[str, Any], ...] = ()

    def __post_init__(self) -> None:
        if self.minimum_notice_days < 0:
            raise ValueError("minimum_notice_days must be >= 0")
        if self.grace_period_days < 0:
            raise ValueError("grace_period_days must be >= 0")


@dataclass(frozen=True)
class TerminationConfig:
    no_penalty_days: int = 60
    half_penalty_days: int = 30
    high_penalty_threshold: str = "50"
    default_policy: DefaultPolicyConfig = field(default_factory=DefaultPolicyConfig)

    def __post_init__(self) -> None:
        if self.half_penalty_days > self.no_penalty_days:
            raise ValueError(
                "half_penalty_days must not exceed no_penalty_days "
                f"({self.half_penalty_days} > {self.no_penalty_days})"
            )


# ---------------------------------------------------------------------------
# Database / root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///rental.db"
    echo: bool = False
    pool_size: int = 10


@dataclass(frozen=True)
class RentalConfig:
    """Root configuration object returned by ``get_active_config``."""

    database: DatabaseConfig
    scheduler: SchedulerConfig
    payments: PaymentConfig
    termination: TerminationConfig
    log_level: str = "INFO"
    checksum: str = ""
