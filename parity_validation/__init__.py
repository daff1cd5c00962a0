"""
Parity Validation Module.

Checks the local flow model against confirmed on-chain state and
reports drift.

Components:
- models: ToleranceConfig, BucketMismatch, ParityReport, ParitySummary
- validator: ParityValidator (store listener)

Usage:
    validator = ParityValidator()
    unsubscribe = validator.attach(store)
    ...
    validator.summary.match_rate
"""

from .models import (
    BucketMismatch,
    MismatchSeverity,
    ParityReport,
    ParitySummary,
    ToleranceConfig,
)
from .validator import ParityValidator

__all__ = [
    "BucketMismatch",
    "MismatchSeverity",
    "ParityReport",
    "ParitySummary",
    "ToleranceConfig",
    "ParityValidator",
]
