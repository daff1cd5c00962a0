"""
Solana RPC Snapshot Source - Polls game accounts over JSON-RPC.

Uses `getAccountInfo` with base64 encoding. A game whose account
no longer exists has ended.

RPC endpoints:
- Mainnet: https://api.mainnet-beta.solana.com
- Devnet:  https://api.devnet.solana.com
- Local:   http://127.0.0.1:8899
"""

import base64
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp

from core.constants import DEFAULT_POLL_INTERVAL_SECONDS
from onchain_adapters.base import BaseSnapshotSource
from onchain_adapters.codec import decode_game_account
from onchain_adapters.exceptions import DecodeError, FetchError, RateLimitError
from onchain_adapters.models import (
    SnapshotUpdate,
    SourceHealth,
    SourceMetadata,
    SourceStatus,
)


logger = logging.getLogger(__name__)


DEFAULT_RPC_URL = "https://api.devnet.solana.com"
DEFAULT_COMMITMENT = "confirmed"


class SolanaRpcSnapshotSource(BaseSnapshotSource):
    """
    Snapshot source backed by a Solana JSON-RPC node.

    Extensibility:
    - Any RPC provider speaking the standard API works (Helius,
      QuickNode, a local validator)
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        commitment: str = DEFAULT_COMMITMENT,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout: float = BaseSnapshotSource.DEFAULT_TIMEOUT,
        mint_decimals: Optional[Dict[str, int]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout=timeout, poll_interval=poll_interval, session=session)
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._mint_decimals = dict(mint_decimals or {})
        self._request_id = 0

    @property
    def name(self) -> str:
        return "solana_rpc"

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _rpc_call(self, method: str, params: List[Any], game_id: Optional[str] = None) -> Any:
        """Make a JSON-RPC call."""
        session = await self._get_session()

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": method,
            "params": params,
        }

        try:
            async with session.post(self.rpc_url, json=payload) as response:
                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        "Solana RPC rate limit exceeded",
                        source_name=self.name,
                        retry_after_seconds=int(retry_after) if retry_after else 5,
                        game_id=game_id,
                        request_url=self.rpc_url,
                    )

                if response.status != 200:
                    body = await response.text()
                    raise FetchError(
                        f"RPC error: HTTP {response.status}",
                        source_name=self.name,
                        game_id=game_id,
                        status_code=response.status,
                        response_body=body[:500],
                        request_url=self.rpc_url,
                    )

                data = await response.json()

                if "error" in data:
                    error = data["error"]
                    raise FetchError(
                        f"RPC error: {error.get('message', 'Unknown')}",
                        source_name=self.name,
                        game_id=game_id,
                        request_url=self.rpc_url,
                        context={"rpc_error": error},
                    )

                return data.get("result")

        except aiohttp.ClientError as e:
            raise FetchError(
                f"Connection error: {e}",
                source_name=self.name,
                game_id=game_id,
                request_url=self.rpc_url,
                original_error=e,
            )

    async def fetch_raw(self, game_id: str) -> Optional[bytes]:
        result = await self._rpc_call(
            "getAccountInfo",
            [game_id, {"encoding": "base64", "commitment": self.commitment}],
            game_id=game_id,
        )

        value = (result or {}).get("value")
        if value is None:
            return None

        data = value.get("data") or []
        if not data or not data[0]:
            return None
        encoded = data[0]

        try:
            return base64.b64decode(encoded)
        except (ValueError, TypeError) as e:
            raise DecodeError(
                "Account data is not valid base64",
                source_name=self.name,
                game_id=game_id,
                field_name="data",
                original_error=e,
            )

    def normalize(self, raw_data: Optional[bytes], game_id: str) -> SnapshotUpdate:
        if not raw_data:
            return SnapshotUpdate.ended_game(game_id, source_name=self.name)

        try:
            game = decode_game_account(raw_data, game_id)
        except DecodeError as e:
            e.source_name = self.name
            e.context["source_name"] = self.name
            raise

        decimals = self._mint_decimals.get(game.config.mint)
        if decimals is not None:
            game = replace(game, config=replace(game.config, mint_decimals=decimals))
        return SnapshotUpdate.from_game(game, source_name=self.name)

    async def health_check(self) -> SourceHealth:
        try:
            result = await self._rpc_call("getHealth", [])
        except FetchError as e:
            self._on_error(e)
            return self._health

        if result == "ok":
            self._on_success()
        else:
            self._health.status = SourceStatus.DEGRADED
            self._health.last_check = datetime.now(timezone.utc)
            logger.warning(f"[{self.name}] Node reports {result}")
        return self._health

    def metadata(self) -> SourceMetadata:
        return SourceMetadata(
            name=self.name,
            display_name="Solana JSON-RPC",
            version="1.0",
            endpoint=self.rpc_url,
            commitment=self.commitment,
            poll_interval_seconds=self._poll_interval,
        )
