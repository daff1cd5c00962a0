"""
Parity Validation Data Models.

============================================================
PURPOSE
============================================================
Defines the data structures for checking local predictions
against confirmed on-chain state:
- Tolerance definitions
- Per-bucket mismatches
- Parity reports and running summary

PHILOSOPHY:
-----------
"The prediction is a hypothesis.
 The confirmed account is the ground truth.
 Unexplained divergence is a modeling bug."

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from snapshot_store.types import GameEventType


# ============================================================
# SEVERITY
# ============================================================

class MismatchSeverity(Enum):
    """Severity of a parity mismatch."""
    INFO = "info"            # Within tolerance
    WARNING = "warning"      # Beyond tolerance, below the critical ratio
    CRITICAL = "critical"    # Far beyond tolerance, the model is wrong


# ============================================================
# TOLERANCE DEFINITIONS
# ============================================================

@dataclass(frozen=True)
class ToleranceConfig:
    """
    Explicit per-bucket tolerance for parity checks.

    The program distributes spillover with fractional remainders
    while the local model truncates each share, so a bucket may
    legitimately differ by up to one token per other bucket.
    `allow_truncation` adds that allowance on top of
    `absolute_tokens`.
    """
    absolute_tokens: int = 0
    relative_tolerance: Decimal = Decimal("0")
    allow_truncation: bool = True
    critical_multiplier: int = 10

    @classmethod
    def default(cls) -> "ToleranceConfig":
        return cls()

    @classmethod
    def strict(cls) -> "ToleranceConfig":
        return cls(allow_truncation=False)

    @classmethod
    def loose(cls) -> "ToleranceConfig":
        return cls(absolute_tokens=10, relative_tolerance=Decimal("0.01"))

    def allowed_difference(self, confirmed: int, bucket_count: int) -> int:
        """Largest tolerated |predicted - confirmed| for one bucket."""
        allowed = self.absolute_tokens
        if self.allow_truncation:
            allowed += bucket_count
        if self.relative_tolerance and confirmed:
            allowed = max(allowed, int(abs(Decimal(confirmed)) * self.relative_tolerance))
        return allowed

    def severity(self, difference: int, allowed: int) -> MismatchSeverity:
        """Classify an absolute difference against the allowance."""
        if difference <= allowed:
            return MismatchSeverity.INFO
        if difference > max(allowed, 1) * self.critical_multiplier:
            return MismatchSeverity.CRITICAL
        return MismatchSeverity.WARNING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "absolute_tokens": self.absolute_tokens,
            "relative_tolerance": str(self.relative_tolerance),
            "allow_truncation": self.allow_truncation,
            "critical_multiplier": self.critical_multiplier,
        }


# ============================================================
# RESULTS
# ============================================================

@dataclass(frozen=True)
class BucketMismatch:
    """A bucket whose expected and confirmed balances disagree."""
    bucket_index: int
    expected: int
    confirmed: int
    allowed: int
    severity: MismatchSeverity

    @property
    def difference(self) -> int:
        return self.confirmed - self.expected

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket_index": self.bucket_index,
            "expected": self.expected,
            "confirmed": self.confirmed,
            "difference": self.difference,
            "allowed": self.allowed,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class ParityReport:
    """Outcome of one prediction-vs-confirmed comparison."""
    game_id: str
    event_type: GameEventType
    from_version: int
    to_version: int
    from_as_of: float
    to_as_of: float
    expected_balances: Tuple[int, ...]
    confirmed_balances: Tuple[int, ...]
    mismatches: Tuple[BucketMismatch, ...] = ()
    effect: str = ""
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_match(self) -> bool:
        return not any(m.severity != MismatchSeverity.INFO for m in self.mismatches)

    @property
    def drifted(self) -> List[BucketMismatch]:
        return [m for m in self.mismatches if m.severity != MismatchSeverity.INFO]

    @property
    def highest_severity(self) -> MismatchSeverity:
        order = [MismatchSeverity.INFO, MismatchSeverity.WARNING, MismatchSeverity.CRITICAL]
        worst = MismatchSeverity.INFO
        for m in self.mismatches:
            if order.index(m.severity) > order.index(worst):
                worst = m.severity
        return worst

    @property
    def max_difference(self) -> int:
        return max((abs(m.difference) for m in self.mismatches), default=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "event_type": self.event_type.value,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "from_as_of": self.from_as_of,
            "to_as_of": self.to_as_of,
            "expected_balances": list(self.expected_balances),
            "confirmed_balances": list(self.confirmed_balances),
            "mismatches": [m.to_dict() for m in self.mismatches],
            "effect": self.effect,
            "is_match": self.is_match,
            "highest_severity": self.highest_severity.value,
            "checked_at": self.checked_at.isoformat(),
        }


@dataclass
class ParitySummary:
    """Running totals across all checks."""
    total_checks: int = 0
    matches: int = 0
    warnings: int = 0
    critical: int = 0
    skipped: int = 0
    last_drift_at: Optional[datetime] = None

    @property
    def match_rate(self) -> float:
        """Share of checks that matched, 1.0 when nothing was checked."""
        if self.total_checks == 0:
            return 1.0
        return self.matches / self.total_checks

    def record(self, report: ParityReport) -> None:
        self.total_checks += 1
        severity = report.highest_severity
        if severity == MismatchSeverity.CRITICAL:
            self.critical += 1
        elif severity == MismatchSeverity.WARNING:
            self.warnings += 1
        else:
            self.matches += 1
            return
        self.last_drift_at = report.checked_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_checks": self.total_checks,
            "matches": self.matches,
            "warnings": self.warnings,
            "critical": self.critical,
            "skipped": self.skipped,
            "match_rate": round(self.match_rate, 4),
            "last_drift_at": self.last_drift_at.isoformat() if self.last_drift_at else None,
        }
