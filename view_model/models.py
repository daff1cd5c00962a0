"""
View Model - Data Models.

============================================================
PURPOSE
============================================================
Consumer-facing values derived from a flow prediction.

- Fuel: predicted balance clamped to [0, max_fuel]
- Ratios: fuel and occupancy normalized for rendering
- Player share: balance // occupancy, None for an empty bucket
- Direction: copied from the engine, never re-derived

============================================================
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from flow_engine.types import BucketRole, FlowDirection


@dataclass(frozen=True)
class BucketView:
    """Display state of one bucket."""

    index: int
    role: BucketRole

    # Raw predicted balance and its clamped display value
    balance: int
    fuel: int
    fuel_ratio: float

    occupancy: int
    occupancy_ratio: float

    # None when nobody is in the bucket
    player_share: Optional[int]
    player_share_display: Optional[Decimal]

    direction: FlowDirection
    direction_glyph: str
    fuel_display: str

    @property
    def is_holding(self) -> bool:
        return self.role == BucketRole.HOLDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "role": self.role.value,
            "balance": self.balance,
            "fuel": self.fuel,
            "fuel_ratio": self.fuel_ratio,
            "occupancy": self.occupancy,
            "occupancy_ratio": self.occupancy_ratio,
            "player_share": self.player_share,
            "player_share_display": (
                str(self.player_share_display) if self.player_share_display is not None else None
            ),
            "direction": int(self.direction),
            "direction_glyph": self.direction_glyph,
            "fuel_display": self.fuel_display,
        }


@dataclass(frozen=True)
class GalaxyView:
    """Display state of a whole game at one prediction time."""

    game_id: str
    as_of: float
    now: float
    stale: bool

    buckets: Tuple[BucketView, ...]

    total_balance: int
    total_players: int       # holding bucket occupancy
    total_occupancy: int     # sum over playable buckets
    max_fuel: int

    total_display: str
    mint_decimals: Optional[int] = None

    @property
    def playable(self) -> Tuple[BucketView, ...]:
        return tuple(b for b in self.buckets if not b.is_holding)

    @property
    def holding(self) -> BucketView:
        return self.buckets[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "as_of": self.as_of,
            "now": self.now,
            "stale": self.stale,
            "buckets": [b.to_dict() for b in self.buckets],
            "total_balance": self.total_balance,
            "total_players": self.total_players,
            "total_occupancy": self.total_occupancy,
            "max_fuel": self.max_fuel,
            "total_display": self.total_display,
            "mint_decimals": self.mint_decimals,
        }
