"""
Account Codec - Binary layout of the game program's accounts.

============================================================
LAYOUT (little-endian, Borsh)
============================================================
Game:
    discriminator        8   sha256("account:Game")[:8]
    config.mint          32  pubkey
    config.entry_fee     u64
    config.spill_rate    u64
    config.n_buckets     u8  playable buckets, holding excluded
    config.max_players   u16
    config.burn_rate     u64
    state.buckets        u32 length + [u64 tokens, u16 players] * length
    state.last_update    i64 epoch seconds
    id                   u64
    creator              32  pubkey

PlayerState:
    discriminator        8   sha256("account:PlayerState")[:8]
    bucket               u8
    burn_penalty         u64

============================================================
"""

import hashlib
import struct
from typing import Optional, Sequence, Tuple

import base58

from flow_engine.types import BucketSnapshot, GameConfig, GameSnapshot

from .exceptions import DecodeError
from .models import DecodedGame, DecodedPlayerState


DISCRIMINATOR_SIZE = 8
PUBKEY_SIZE = 32

_CONFIG = struct.Struct("<QQBHQ")
_VEC_LEN = struct.Struct("<I")
_BUCKET = struct.Struct("<QH")
_LAST_UPDATE = struct.Struct("<q")
_ID = struct.Struct("<Q")
_PLAYER = struct.Struct("<BQ")


def account_discriminator(account_name: str) -> bytes:
    """Anchor account discriminator for `account_name`."""
    return hashlib.sha256(f"account:{account_name}".encode()).digest()[:DISCRIMINATOR_SIZE]


GAME_DISCRIMINATOR = account_discriminator("Game")
PLAYER_STATE_DISCRIMINATOR = account_discriminator("PlayerState")


class _Reader:
    """Sequential reader over account bytes."""

    def __init__(self, data: bytes, game_id: Optional[str]):
        self._data = data
        self._offset = 0
        self._game_id = game_id

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def game_id(self) -> Optional[str]:
        return self._game_id

    def take(self, size: int, field_name: str) -> bytes:
        end = self._offset + size
        if end > len(self._data):
            raise DecodeError(
                f"Account data too short for {field_name} "
                f"(need {end} bytes, have {len(self._data)})",
                game_id=self._game_id,
                field_name=field_name,
                offset=self._offset,
            )
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    def unpack(self, layout: struct.Struct, field_name: str) -> Tuple:
        return layout.unpack(self.take(layout.size, field_name))

    def pubkey(self, field_name: str) -> str:
        return base58.b58encode(self.take(PUBKEY_SIZE, field_name)).decode("ascii")


def _check_discriminator(reader: _Reader, expected: bytes, account_name: str) -> None:
    actual = reader.take(DISCRIMINATOR_SIZE, "discriminator")
    if actual != expected:
        raise DecodeError(
            f"Not a {account_name} account (discriminator {actual.hex()})",
            game_id=reader.game_id,
            field_name="discriminator",
            offset=0,
        )


def decode_game_account(
    data: bytes,
    game_id: str,
    mint_decimals: Optional[int] = None,
) -> DecodedGame:
    """
    Decode a Game account into engine types.

    Args:
        data: Raw account data
        game_id: Account address, used as the game identifier
        mint_decimals: Optional display decimals to attach to the config

    Raises:
        DecodeError: If the data does not match the Game layout
    """
    reader = _Reader(bytes(data), game_id)
    _check_discriminator(reader, GAME_DISCRIMINATOR, "Game")

    mint = reader.pubkey("config.mint")
    entry_fee, spill_rate, n_buckets, max_players, burn_rate = reader.unpack(_CONFIG, "config")

    (length,) = reader.unpack(_VEC_LEN, "state.buckets")
    if length != n_buckets + 1:
        raise DecodeError(
            f"Bucket vector has {length} entries, config implies {n_buckets + 1}",
            game_id=game_id,
            field_name="state.buckets",
            offset=reader.offset,
        )
    buckets = []
    for i in range(length):
        tokens, players = reader.unpack(_BUCKET, f"state.buckets[{i}]")
        buckets.append(BucketSnapshot(balance=tokens, occupancy=players))

    (last_update,) = reader.unpack(_LAST_UPDATE, "state.last_update")
    (game_number,) = reader.unpack(_ID, "id")
    creator = reader.pubkey("creator")

    config = GameConfig(
        entry_fee=entry_fee,
        spill_rate=spill_rate,
        bucket_count=n_buckets,
        max_players=max_players,
        burn_rate=burn_rate,
        mint=mint,
        mint_decimals=mint_decimals,
    )
    return DecodedGame(
        game_id=game_id,
        game_number=game_number,
        creator=creator,
        config=config,
        snapshot=GameSnapshot(buckets=tuple(buckets), as_of=float(last_update)),
    )


def decode_player_state(data: bytes) -> DecodedPlayerState:
    """
    Decode a PlayerState account.

    Raises:
        DecodeError: If the data does not match the PlayerState layout
    """
    reader = _Reader(bytes(data), None)
    _check_discriminator(reader, PLAYER_STATE_DISCRIMINATOR, "PlayerState")
    bucket, burn_penalty = reader.unpack(_PLAYER, "player")
    return DecodedPlayerState(bucket=bucket, burn_penalty=burn_penalty)


# ============================================================
# ENCODING (fixtures and replays)
# ============================================================


def _pubkey_bytes(value: Optional[str]) -> bytes:
    if not value:
        return bytes(PUBKEY_SIZE)
    raw = base58.b58decode(value)
    if len(raw) != PUBKEY_SIZE:
        raise ValueError(f"Public key must decode to {PUBKEY_SIZE} bytes, got {len(raw)}")
    return raw


def encode_game_account(
    config: GameConfig,
    balances: Sequence[int],
    occupancies: Sequence[int],
    last_update: int,
    game_number: int = 0,
    creator: Optional[str] = None,
) -> bytes:
    """Encode a Game account with the layout decode_game_account reads."""
    if len(balances) != len(occupancies):
        raise ValueError("balances and occupancies must have the same length")

    parts = [
        GAME_DISCRIMINATOR,
        _pubkey_bytes(config.mint),
        _CONFIG.pack(
            config.entry_fee,
            config.spill_rate,
            config.bucket_count,
            config.max_players,
            config.burn_rate,
        ),
        _VEC_LEN.pack(len(balances)),
    ]
    parts.extend(_BUCKET.pack(b, o) for b, o in zip(balances, occupancies))
    parts.append(_LAST_UPDATE.pack(int(last_update)))
    parts.append(_ID.pack(game_number))
    parts.append(_pubkey_bytes(creator))
    return b"".join(parts)


def encode_player_state(bucket: int, burn_penalty: int = 0) -> bytes:
    """Encode a PlayerState account."""
    return PLAYER_STATE_DISCRIMINATOR + _PLAYER.pack(bucket, burn_penalty)
