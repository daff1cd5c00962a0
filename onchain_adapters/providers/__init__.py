"""
Providers package - Snapshot source implementations.
"""

from onchain_adapters.providers.memory import InMemorySnapshotSource
from onchain_adapters.providers.solana_rpc import SolanaRpcSnapshotSource


__all__ = [
    "InMemorySnapshotSource",
    "SolanaRpcSnapshotSource",
]
