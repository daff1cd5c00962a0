"""
View Model - Builder.

Maps a FlowPrediction and its GameConfig onto a GalaxyView.
Direction is taken verbatim from the engine so an arrow never
disagrees with the number beside it.
"""

from typing import Optional

from core.constants import DIRECTION_GLYPH_DOWN, DIRECTION_GLYPH_UP, HOLDING_BUCKET_INDEX
from flow_engine.types import BucketFlow, FlowDirection, FlowPrediction, GameConfig

from .formatting import format_tokens, to_display_units
from .models import BucketView, GalaxyView


_GLYPHS = {
    FlowDirection.UP: DIRECTION_GLYPH_UP,
    FlowDirection.DOWN: DIRECTION_GLYPH_DOWN,
    FlowDirection.FLAT: "",
}


def clamp_fuel(balance: int, max_fuel: int) -> int:
    """Clamp a balance to [0, max_fuel]."""
    return max(0, min(max_fuel, balance))


def player_share(balance: int, occupancy: int) -> Optional[int]:
    """Tokens per player in a bucket, or None when it is empty."""
    if occupancy <= 0:
        return None
    return balance // occupancy


def _ratio(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return part / whole


def build_bucket_view(
    flow: BucketFlow,
    config: GameConfig,
    total_players: int,
) -> BucketView:
    fuel = clamp_fuel(flow.predicted_balance, config.max_fuel)
    share = player_share(max(0, flow.predicted_balance), flow.occupancy)

    if flow.bucket.is_holding:
        occupancy_ratio = 0.0
    else:
        occupancy_ratio = _ratio(flow.occupancy, total_players)

    return BucketView(
        index=flow.index,
        role=flow.bucket.role,
        balance=flow.predicted_balance,
        fuel=fuel,
        fuel_ratio=_ratio(fuel, config.max_fuel),
        occupancy=flow.occupancy,
        occupancy_ratio=occupancy_ratio,
        player_share=share,
        player_share_display=(
            to_display_units(share, config.mint_decimals) if share is not None else None
        ),
        direction=flow.direction,
        direction_glyph=_GLYPHS[flow.direction],
        fuel_display=format_tokens(fuel, config.mint_decimals),
    )


def build_galaxy_view(
    game_id: str,
    config: GameConfig,
    prediction: FlowPrediction,
) -> GalaxyView:
    """
    Derive the display state of a game from a prediction.

    Args:
        game_id: Game identifier
        config: Game configuration
        prediction: Engine output for the game's current snapshot

    Returns:
        GalaxyView with one BucketView per bucket
    """
    total_players = prediction.buckets[HOLDING_BUCKET_INDEX].occupancy if prediction.buckets else 0
    buckets = tuple(build_bucket_view(flow, config, total_players) for flow in prediction.buckets)
    total_balance = sum(b.balance for b in buckets)

    return GalaxyView(
        game_id=game_id,
        as_of=prediction.as_of,
        now=prediction.now,
        stale=prediction.stale,
        buckets=buckets,
        total_balance=total_balance,
        total_players=total_players,
        total_occupancy=sum(b.occupancy for b in buckets if not b.is_holding),
        max_fuel=config.max_fuel,
        total_display=format_tokens(total_balance, config.mint_decimals),
        mint_decimals=config.mint_decimals,
    )
