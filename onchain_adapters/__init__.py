"""
On-chain Adapters Package - Pluggable snapshot sources.

Reads game accounts and turns them into whole snapshots for the
snapshot store. Sources never write on-chain.

Features:
- Isolated, replaceable sources
- Binary account decoding
- Polling subscriptions that emit only on change
- Health tracking with limited retries

Quick Start:
    from onchain_adapters import SolanaRpcSnapshotSource

    async def watch(game_id, store):
        source = SolanaRpcSnapshotSource(rpc_url="https://api.devnet.solana.com")

        def on_update(update):
            if update.ended:
                store.remove(update.game_id)
            else:
                store.publish(update.game_id, update.config, update.snapshot)

        subscription = source.subscribe(game_id, on_update)
        ...
        await source.close()
"""

from onchain_adapters.base import (
    BaseSnapshotSource,
    SnapshotCallback,
    SnapshotSubscription,
)
from onchain_adapters.codec import (
    GAME_DISCRIMINATOR,
    PLAYER_STATE_DISCRIMINATOR,
    account_discriminator,
    decode_game_account,
    decode_player_state,
    encode_game_account,
    encode_player_state,
)
from onchain_adapters.exceptions import (
    DecodeError,
    FetchError,
    RateLimitError,
    SnapshotSourceError,
)
from onchain_adapters.models import (
    DecodedGame,
    DecodedPlayerState,
    SnapshotUpdate,
    SourceHealth,
    SourceIncident,
    SourceMetadata,
    SourceStatus,
)
from onchain_adapters.providers import InMemorySnapshotSource, SolanaRpcSnapshotSource


__all__ = [
    # Base
    "BaseSnapshotSource",
    "SnapshotCallback",
    "SnapshotSubscription",
    # Codec
    "GAME_DISCRIMINATOR",
    "PLAYER_STATE_DISCRIMINATOR",
    "account_discriminator",
    "decode_game_account",
    "decode_player_state",
    "encode_game_account",
    "encode_player_state",
    # Exceptions
    "DecodeError",
    "FetchError",
    "RateLimitError",
    "SnapshotSourceError",
    # Models
    "DecodedGame",
    "DecodedPlayerState",
    "SnapshotUpdate",
    "SourceHealth",
    "SourceIncident",
    "SourceMetadata",
    "SourceStatus",
    # Providers
    "InMemorySnapshotSource",
    "SolanaRpcSnapshotSource",
]
