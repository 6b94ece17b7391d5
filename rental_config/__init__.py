"""
rental_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``RentalConfig``.

Architecture position:
    Configuration -- YAML-driven.  Sits beside ``rental_kernel``; the
    kernel never imports from here.  The API and batch wiring read the
    config and pass plain values into services.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ValueError`` -- a section failed validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``RENTAL_CONFIG_TRACE`` log entry with the source path and the SHA-256
    checksum of the parsed document, so every scheduled run can be tied to
    the configuration that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rental_config.loader import load_yaml_file, parse_config
from rental_config.schema import (
    DatabaseConfig,
    DefaultPolicyConfig,
    JobConfig,
    PaymentConfig,
    RentalConfig,
    SchedulerConfig,
    TerminationConfig,
)

_logger = logging.getLogger("rental_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "rental.yaml"


def get_active_config(path: Path | str | None = None) -> RentalConfig:
    """Load, validate and return the configuration.

    Args:
        path: YAML file to read.  Defaults to the packaged
            ``rental_config/defaults/rental.yaml``.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(source))

    _logger.info(
        "RENTAL_CONFIG_TRACE",
        extra={
            "trace_type": "RENTAL_CONFIG_TRACE",
            "source": str(source),
            "checksum": config.checksum,
            "job_count": len(config.scheduler.jobs),
            "scheduler_enabled": config.scheduler.enabled,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "DefaultPolicyConfig",
    "JobConfig",
    "PaymentConfig",
    "RentalConfig",
    "SchedulerConfig",
    "TerminationConfig",
    "get_active_config",
]
