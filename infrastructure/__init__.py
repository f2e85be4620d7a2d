# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Infrastructure - External collaborators
# PURPOSE: Retry helper, IPFS artifact store and chain client
# CREATED: 19 SEP 2026
# ============================================================================
"""
Infrastructure module.

Provides:
- retry_async: bounded exponential backoff for transient failures
- PinataArtifactStore: pins images and metadata to IPFS
- derive_traits: deterministic weapon / stance / element / rank / stats per token
- Web3MintContract: tokenURI / ownerOf / setTokenURI / MintRequested

The chain client is imported from infrastructure.chain directly so that
web3 is only loaded by the processes that talk to the chain.
"""

from infrastructure.retry import RetryError, backoff_delay, retry_async
from infrastructure.ipfs import ArtifactStore, PinataArtifactStore, build_metadata, decode_data_url
from infrastructure.traits import TokenTraits, derive_traits

__all__ = [
    "RetryError",
    "backoff_delay",
    "retry_async",
    "ArtifactStore",
    "PinataArtifactStore",
    "build_metadata",
    "decode_data_url",
    "TokenTraits",
    "derive_traits",
]
