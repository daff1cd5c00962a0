"""
Snapshot Store - Update Classification.

============================================================
PURPOSE
============================================================
Infers what happened on-chain from two consecutive snapshots.

The program only writes the game account on enter, move and
leave, so the occupancy delta identifies the instruction:

- occupancy vector unchanged   -> REFRESH
- total players unchanged      -> MOVE
- total players increased      -> ENTER
- total players decreased      -> LEAVE
- account gone                 -> END

The holding bucket tracks the total, so it is skipped when
searching for the bucket that changed.

============================================================
"""

import logging
from typing import List, Optional

from core.constants import FIRST_PLAYABLE_BUCKET_INDEX, HOLDING_BUCKET_INDEX

from .types import GameEvent, GameEventType, GameRecord


logger = logging.getLogger(__name__)


def _first_playable(changes: List[int], positive: bool) -> Optional[int]:
    for index in range(FIRST_PLAYABLE_BUCKET_INDEX, len(changes)):
        change = changes[index]
        if (positive and change > 0) or (not positive and change < 0):
            return index
    return None


def classify_update(
    game_id: str,
    previous: Optional[GameRecord],
    current: GameRecord,
) -> GameEvent:
    """
    Classify the replacement of `previous` by `current`.

    Args:
        game_id: Game identifier
        previous: Record being replaced (None on first publish)
        current: New record

    Returns:
        GameEvent describing the change
    """
    if previous is None:
        return GameEvent(game_id=game_id, event_type=GameEventType.NEW, record=current)

    before = previous.snapshot.buckets
    after = current.snapshot.buckets

    if len(before) != len(after):
        # Bucket layout is fixed per game; treat as a fresh game
        logger.warning(f"Game {game_id} changed bucket count from {len(before)} to {len(after)}")
        return GameEvent(game_id=game_id, event_type=GameEventType.NEW, record=current, previous=previous)

    changes = [a.occupancy - b.occupancy for a, b in zip(after, before)]
    total_change = changes[HOLDING_BUCKET_INDEX]

    if all(c == 0 for c in changes):
        return GameEvent(game_id=game_id, event_type=GameEventType.REFRESH, record=current, previous=previous)

    if total_change == 0:
        old_index = _first_playable(changes, positive=False)
        new_index = _first_playable(changes, positive=True)
        if old_index is None or new_index is None:
            logger.warning(f"Game {game_id}: unable to determine buckets of move {changes}")
        return GameEvent(
            game_id=game_id,
            event_type=GameEventType.MOVE,
            record=current,
            previous=previous,
            bucket_index=new_index,
            old_bucket_index=old_index,
        )

    if total_change > 0:
        entered = _first_playable(changes, positive=True)
        if entered is None:
            logger.warning(f"Game {game_id}: unable to determine bucket entered {changes}")
        return GameEvent(
            game_id=game_id,
            event_type=GameEventType.ENTER,
            record=current,
            previous=previous,
            bucket_index=entered,
        )

    left = _first_playable(changes, positive=False)
    winnings = None
    if left is None:
        logger.warning(f"Game {game_id}: unable to determine bucket left {changes}")
    else:
        winnings = before[left].balance - after[left].balance

    return GameEvent(
        game_id=game_id,
        event_type=GameEventType.LEAVE,
        record=current,
        previous=previous,
        bucket_index=left,
        winnings=winnings,
    )


def classify_end(game_id: str, previous: GameRecord) -> GameEvent:
    """
    Build the END event for a game whose account was closed.

    The last player takes every remaining token.
    """
    buckets = previous.snapshot.buckets
    last_bucket = next(
        (i for i in range(FIRST_PLAYABLE_BUCKET_INDEX, len(buckets)) if buckets[i].occupancy > 0),
        None,
    )
    if last_bucket is None:
        logger.warning(f"Game {game_id}: unable to determine bucket of the last player")

    return GameEvent(
        game_id=game_id,
        event_type=GameEventType.END,
        record=None,
        previous=previous,
        bucket_index=last_bucket,
        winnings=previous.snapshot.total_balance,
    )
