"""
Flow Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the bucket token-flow engine.

Inputs are the game configuration (immutable once a game exists)
and the last confirmed on-chain snapshot. The output is a
prediction of every bucket's balance at a query time.

============================================================
DESIGN PRINCIPLES
============================================================
- All types are immutable
- Integer amounts in the smallest token unit, never floats
- Bucket identity is a tagged value, not a magic index
- Snapshots are replaced wholesale, never mutated

============================================================
BUCKET LAYOUT
============================================================
Index 0 is the HOLDING bucket. Its occupancy is the total
number of players in the game. Indices 1..bucket_count are
PLAYABLE buckets.

The holding bucket spills into every playable bucket.
A playable bucket spills into every other playable bucket.
Nothing spills into the holding bucket.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.constants import (
    FIRST_PLAYABLE_BUCKET_INDEX,
    GAME_BUCKETS_MAX,
    GAME_BUCKETS_MIN,
    GAME_MAX_PLAYERS_MAX,
    GAME_MAX_PLAYERS_MIN,
    HOLDING_BUCKET_INDEX,
)


# ============================================================
# ENUMS
# ============================================================


class BucketRole(str, Enum):
    """Role of a bucket within a game."""

    HOLDING = "holding"
    PLAYABLE = "playable"


class FlowDirection(IntEnum):
    """
    Sign of a bucket's net flow.

    Values are the arithmetic sign so they can be compared or
    multiplied directly.
    """

    DOWN = -1
    FLAT = 0
    UP = 1

    @classmethod
    def from_net(cls, net: int) -> "FlowDirection":
        """Classify a net token change."""
        if net > 0:
            return cls.UP
        if net < 0:
            return cls.DOWN
        return cls.FLAT

    @property
    def label(self) -> str:
        return self.name.lower()


# ============================================================
# BUCKET IDENTITY
# ============================================================


@dataclass(frozen=True)
class BucketId:
    """
    Tagged bucket identity: Holding or Playable(index).

    The peer-set rule is defined on the tag, so there is no
    conditional on index 0 anywhere else in the engine.
    """

    role: BucketRole
    index: int

    def __post_init__(self):
        if self.role == BucketRole.HOLDING and self.index != HOLDING_BUCKET_INDEX:
            raise ValueError(f"Holding bucket must have index {HOLDING_BUCKET_INDEX}")
        if self.role == BucketRole.PLAYABLE and self.index < FIRST_PLAYABLE_BUCKET_INDEX:
            raise ValueError(f"Playable bucket index must be >= {FIRST_PLAYABLE_BUCKET_INDEX}")

    @classmethod
    def holding(cls) -> "BucketId":
        return cls(BucketRole.HOLDING, HOLDING_BUCKET_INDEX)

    @classmethod
    def playable(cls, index: int) -> "BucketId":
        return cls(BucketRole.PLAYABLE, index)

    @classmethod
    def from_index(cls, index: int) -> "BucketId":
        """Map a position in the snapshot's bucket sequence to its tag."""
        if index == HOLDING_BUCKET_INDEX:
            return cls.holding()
        return cls.playable(index)

    @property
    def is_holding(self) -> bool:
        return self.role == BucketRole.HOLDING

    def peers(self, bucket_count: int) -> List["BucketId"]:
        """
        Buckets that receive this bucket's spillover.

        Args:
            bucket_count: Number of playable buckets in the game

        Returns:
            All playable buckets for the holding bucket, all other
            playable buckets for a playable bucket.
        """
        playable = range(FIRST_PLAYABLE_BUCKET_INDEX, bucket_count + 1)
        if self.is_holding:
            return [BucketId.playable(i) for i in playable]
        return [BucketId.playable(i) for i in playable if i != self.index]

    def peer_count(self, bucket_count: int) -> int:
        if self.is_holding:
            return bucket_count
        return bucket_count - 1

    def __str__(self) -> str:
        if self.is_holding:
            return "holding"
        return f"playable[{self.index}]"


# ============================================================
# INPUT DATA CONTRACTS
# ============================================================


@dataclass(frozen=True)
class GameConfig:
    """
    Immutable game parameters, as set when the game was created.

    All amounts are in the smallest token unit.
    """

    entry_fee: int
    spill_rate: int          # tokens / player / second
    bucket_count: int        # playable buckets, holding excluded
    max_players: int

    # Tokens burned per move (informational)
    burn_rate: int = 0

    # Token metadata (display only)
    mint: Optional[str] = None
    mint_decimals: Optional[int] = None

    @property
    def max_fuel(self) -> int:
        """Upper bound of any single bucket's balance."""
        return self.entry_fee * self.max_players

    @property
    def total_buckets(self) -> int:
        return self.bucket_count + 1

    def bucket_ids(self) -> List[BucketId]:
        return [BucketId.from_index(i) for i in range(self.total_buckets)]

    def validate(self) -> List[str]:
        """
        Validate against the bounds the on-chain program enforces.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.entry_fee <= 0:
            errors.append("entry_fee must be > 0")
        if self.spill_rate <= 0:
            errors.append("spill_rate must be > 0")
        if not GAME_BUCKETS_MIN <= self.bucket_count <= GAME_BUCKETS_MAX:
            errors.append(
                f"bucket_count must be between {GAME_BUCKETS_MIN} and {GAME_BUCKETS_MAX}"
            )
        if not GAME_MAX_PLAYERS_MIN <= self.max_players <= GAME_MAX_PLAYERS_MAX:
            errors.append(
                f"max_players must be between {GAME_MAX_PLAYERS_MIN} and {GAME_MAX_PLAYERS_MAX}"
            )
        if self.burn_rate < 0:
            errors.append("burn_rate must be >= 0")
        if self.mint_decimals is not None and self.mint_decimals < 0:
            errors.append("mint_decimals must be >= 0")

        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_fee": self.entry_fee,
            "spill_rate": self.spill_rate,
            "bucket_count": self.bucket_count,
            "max_players": self.max_players,
            "burn_rate": self.burn_rate,
            "mint": self.mint,
            "mint_decimals": self.mint_decimals,
        }


@dataclass(frozen=True)
class BucketSnapshot:
    """Last confirmed on-chain state of one bucket."""

    balance: int
    occupancy: int

    def to_dict(self) -> Dict[str, Any]:
        return {"balance": self.balance, "occupancy": self.occupancy}


@dataclass(frozen=True)
class GameSnapshot:
    """
    Last authoritative on-chain state of a game.

    Index 0 of `buckets` is the holding bucket. `as_of` is the
    chain timestamp (epoch seconds) of the last settlement.
    """

    buckets: Tuple[BucketSnapshot, ...]
    as_of: float

    def __post_init__(self):
        # Accept any sequence but store a tuple so the value stays immutable
        if not isinstance(self.buckets, tuple):
            object.__setattr__(self, "buckets", tuple(self.buckets))

    @classmethod
    def from_lists(
        cls,
        balances: Sequence[int],
        occupancies: Sequence[int],
        as_of: float,
    ) -> "GameSnapshot":
        """Build a snapshot from parallel balance and occupancy lists."""
        if len(balances) != len(occupancies):
            raise ValueError("balances and occupancies must have the same length")
        return cls(
            buckets=tuple(BucketSnapshot(b, o) for b, o in zip(balances, occupancies)),
            as_of=as_of,
        )

    @property
    def balances(self) -> List[int]:
        return [b.balance for b in self.buckets]

    @property
    def occupancies(self) -> List[int]:
        return [b.occupancy for b in self.buckets]

    @property
    def total_balance(self) -> int:
        return sum(b.balance for b in self.buckets)

    @property
    def total_players(self) -> int:
        """Occupancy of the holding bucket, which tracks every player."""
        if not self.buckets:
            return 0
        return self.buckets[HOLDING_BUCKET_INDEX].occupancy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buckets": [b.to_dict() for b in self.buckets],
            "as_of": self.as_of,
        }


# ============================================================
# OUTPUT DATA CONTRACTS
# ============================================================


@dataclass(frozen=True)
class BucketFlow:
    """Predicted state of one bucket at the query time."""

    bucket: BucketId
    occupancy: int
    snapshot_balance: int
    predicted_balance: int

    # Spillover accounting
    expected_spill: int = 0       # min(balance, occupancy * rate * elapsed)
    realized_outflow: int = 0     # share * peer_count, after floor truncation
    inflow: int = 0

    direction: FlowDirection = FlowDirection.FLAT
    rate_per_second: float = 0.0

    # Predicted balance outside [0, max_fuel]
    out_of_bounds: bool = False

    @property
    def index(self) -> int:
        return self.bucket.index

    @property
    def net_flow(self) -> int:
        return self.inflow - self.realized_outflow

    @property
    def stranded_remainder(self) -> int:
        """Spillover kept back by floor division over the peer set."""
        return self.expected_spill - self.realized_outflow

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.bucket.index,
            "role": self.bucket.role.value,
            "occupancy": self.occupancy,
            "snapshot_balance": self.snapshot_balance,
            "predicted_balance": self.predicted_balance,
            "expected_spill": self.expected_spill,
            "realized_outflow": self.realized_outflow,
            "inflow": self.inflow,
            "net_flow": self.net_flow,
            "direction": int(self.direction),
            "rate_per_second": self.rate_per_second,
            "out_of_bounds": self.out_of_bounds,
        }


@dataclass(frozen=True)
class FlowPrediction:
    """
    Complete output of one engine evaluation.

    ============================================================
    OUTPUT GUARANTEES
    ============================================================
    - One BucketFlow per snapshot bucket, in snapshot order
    - predicted_total never exceeds snapshot_total
    - stale is True when the query time precedes the snapshot;
      balances are then the snapshot balances unchanged
    - Out-of-range balances are flagged, never clamped here

    ============================================================
    """

    as_of: float
    now: float
    elapsed_seconds: int
    buckets: Tuple[BucketFlow, ...]
    max_fuel: int
    stale: bool = False

    snapshot_total: int = field(init=False)
    predicted_total: int = field(init=False)

    def __post_init__(self):
        if not isinstance(self.buckets, tuple):
            object.__setattr__(self, "buckets", tuple(self.buckets))
        object.__setattr__(self, "snapshot_total", sum(b.snapshot_balance for b in self.buckets))
        object.__setattr__(self, "predicted_total", sum(b.predicted_balance for b in self.buckets))

    @property
    def balances(self) -> List[int]:
        return [b.predicted_balance for b in self.buckets]

    @property
    def directions(self) -> List[FlowDirection]:
        return [b.direction for b in self.buckets]

    @property
    def truncation_loss(self) -> int:
        """Tokens missing from the predicted sum relative to the snapshot sum."""
        return self.snapshot_total - self.predicted_total

    @property
    def stranded_remainder(self) -> int:
        return sum(b.stranded_remainder for b in self.buckets)

    @property
    def out_of_bounds_indices(self) -> List[int]:
        return [b.index for b in self.buckets if b.out_of_bounds]

    @property
    def has_bounds_violation(self) -> bool:
        return any(b.out_of_bounds for b in self.buckets)

    def clamped_balances(self) -> List[int]:
        """Predicted balances clamped to [0, max_fuel] for display."""
        return [max(0, min(self.max_fuel, b)) for b in self.balances]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "as_of": self.as_of,
            "now": self.now,
            "elapsed_seconds": self.elapsed_seconds,
            "stale": self.stale,
            "max_fuel": self.max_fuel,
            "snapshot_total": self.snapshot_total,
            "predicted_total": self.predicted_total,
            "truncation_loss": self.truncation_loss,
            "buckets": [b.to_dict() for b in self.buckets],
        }
