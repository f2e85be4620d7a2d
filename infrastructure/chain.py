# ============================================================================
# CHAIN CLIENT
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Infrastructure - NFT contract access over web3.py
# PURPOSE: finalizeMint, tokenURI, ownerOf and MintRequested scanning
# CREATED: 25 SEP 2026
# ============================================================================
"""
Chain client.

Only four contract capabilities are used:
    tokenURI(uint256)            read
    ownerOf(uint256)             read
    setTokenURI(uint256,string)  write (finalize)
    MintRequested(tokenId, buyer, breed) event

Reads degrade to None on failure; writes raise ChainError.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

from web3 import AsyncHTTPProvider, AsyncWeb3

from core.config import ChainConfig
from core.errors import ChainError

logger = logging.getLogger(__name__)

CONTRACT_ABI = [
    {
        "type": "function", "name": "tokenURI", "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "type": "function", "name": "ownerOf", "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function", "name": "setTokenURI", "stateMutability": "nonpayable",
        "inputs": [{"name": "tokenId", "type": "uint256"}, {"name": "uri", "type": "string"}],
        "outputs": [],
    },
    {
        "type": "event", "name": "MintRequested", "anonymous": False,
        "inputs": [
            {"name": "tokenId", "type": "uint256", "indexed": True},
            {"name": "buyer", "type": "address", "indexed": True},
            {"name": "breed", "type": "string", "indexed": False},
        ],
    },
]


@dataclass(frozen=True)
class MintRequest:
    token_id: int
    buyer: str
    breed: str
    block_number: int


@runtime_checkable
class MintChain(Protocol):
    """What the coordinator needs from the chain."""

    async def token_uri(self, token_id: int) -> Optional[str]:
        ...

    async def owner_of(self, token_id: int) -> Optional[str]:
        ...

    async def finalize_mint(self, token_id: int, uri: str) -> str:
        ...

    async def latest_block(self) -> int:
        ...

    async def mint_requests(self, from_block: int, to_block: int) -> List[MintRequest]:
        ...


class Web3MintContract:
    """MintChain over web3.py's AsyncWeb3."""

    def __init__(self, config: ChainConfig, w3: Optional[AsyncWeb3] = None):
        if not config.is_configured:
            raise ChainError("RPC_URL and CONTRACT_ADDRESS are required")
        self.config = config
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(config.rpc_url))
        self.contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(config.contract_address),
            abi=CONTRACT_ABI,
        )

    async def token_uri(self, token_id: int) -> Optional[str]:
        try:
            return await self.contract.functions.tokenURI(token_id).call()
        except Exception as e:
            logger.warning(f"tokenURI({token_id}) unavailable: {e}")
            return None

    async def owner_of(self, token_id: int) -> Optional[str]:
        try:
            return await self.contract.functions.ownerOf(token_id).call()
        except Exception as e:
            logger.warning(f"ownerOf({token_id}) unavailable: {e}")
            return None

    async def finalize_mint(self, token_id: int, uri: str) -> str:
        """setTokenURI and wait for the receipt. Returns the tx hash."""
        if not self.config.private_key:
            raise ChainError("PRIVATE_KEY is not configured")
        try:
            account = self.w3.eth.account.from_key(self.config.private_key)
            nonce = await self.w3.eth.get_transaction_count(account.address, "pending")
            tx = await self.contract.functions.setTokenURI(token_id, uri).build_transaction({
                "from": account.address,
                "nonce": nonce,
            })
            signed = account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.config.tx_timeout_seconds,
            )
        except Exception as e:
            raise ChainError(f"setTokenURI({token_id}) failed: {e}") from e

        if receipt["status"] != 1:
            raise ChainError(f"setTokenURI({token_id}) reverted in block {receipt['blockNumber']}")
        tx_hex = self.w3.to_hex(tx_hash)
        logger.info(f"Token {token_id} finalized in tx {tx_hex}")
        return tx_hex

    async def latest_block(self) -> int:
        try:
            return await self.w3.eth.block_number
        except Exception as e:
            raise ChainError(f"block number unavailable: {e}") from e

    async def mint_requests(self, from_block: int, to_block: int) -> List[MintRequest]:
        if from_block > to_block:
            return []
        try:
            logs = await self.contract.events.MintRequested.get_logs(
                from_block=from_block, to_block=to_block,
            )
        except Exception as e:
            raise ChainError(f"MintRequested scan {from_block}-{to_block} failed: {e}") from e
        return [
            MintRequest(
                token_id=int(log["args"]["tokenId"]),
                buyer=log["args"]["buyer"],
                breed=log["args"]["breed"],
                block_number=log["blockNumber"],
            )
            for log in logs
        ]


__all__ = [
    "CONTRACT_ABI",
    "MintRequest",
    "MintChain",
    "Web3MintContract",
]
