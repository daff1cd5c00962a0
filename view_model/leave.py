"""
View Model - Leave Estimate.

Estimates what a player would receive by leaving now, following
the program's leave settlement:

- The last player in the game takes every bucket's balance
- Otherwise the player takes balance // occupancy of their bucket
- The burn penalty comes out of the winnings, capped at the winnings
- Leaving is a loss when the net falls below the entry fee
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

from core.constants import FIRST_PLAYABLE_BUCKET_INDEX, HOLDING_BUCKET_INDEX
from flow_engine.types import GameConfig

from .formatting import to_display_units


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaveEstimate:
    """Estimated payout of leaving a bucket at the prediction time."""

    bucket_index: int
    gross_winnings: int
    burn: int
    net_winnings: int
    entry_fee: int
    is_last_player: bool

    mint_decimals: Optional[int] = None

    @property
    def is_loss(self) -> bool:
        """True when leaving would return less than the entry fee."""
        return self.net_winnings < self.entry_fee

    @property
    def net_display(self) -> Decimal:
        return to_display_units(self.net_winnings, self.mint_decimals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket_index": self.bucket_index,
            "gross_winnings": self.gross_winnings,
            "burn": self.burn,
            "net_winnings": self.net_winnings,
            "net_display": str(self.net_display),
            "entry_fee": self.entry_fee,
            "is_last_player": self.is_last_player,
            "is_loss": self.is_loss,
        }


def estimate_leave(
    config: GameConfig,
    balances: Sequence[int],
    occupancies: Sequence[int],
    bucket_index: int,
    burn_penalty: int = 0,
) -> LeaveEstimate:
    """
    Estimate the payout of leaving `bucket_index`.

    Args:
        config: Game configuration
        balances: Bucket balances at the time of leaving (predicted)
        occupancies: Bucket occupancies, index 0 = total players
        bucket_index: Playable bucket the player is in
        burn_penalty: Player's accumulated burn penalty

    Raises:
        ValueError: If the bucket is not a playable bucket or is empty
    """
    if not FIRST_PLAYABLE_BUCKET_INDEX <= bucket_index < len(balances):
        raise ValueError(f"Bucket {bucket_index} is not a playable bucket")
    if occupancies[bucket_index] <= 0:
        raise ValueError(f"Bucket {bucket_index} has no players")
    if burn_penalty < 0:
        raise ValueError("burn_penalty must be >= 0")

    is_last = occupancies[HOLDING_BUCKET_INDEX] == 1
    if is_last:
        gross = sum(balances)
    else:
        gross = balances[bucket_index] // occupancies[bucket_index]

    burn = min(burn_penalty, gross)

    estimate = LeaveEstimate(
        bucket_index=bucket_index,
        gross_winnings=gross,
        burn=burn,
        net_winnings=gross - burn,
        entry_fee=config.entry_fee,
        is_last_player=is_last,
        mint_decimals=config.mint_decimals,
    )
    logger.debug(f"Leave estimate for bucket {bucket_index}: {estimate.to_dict()}")
    return estimate
