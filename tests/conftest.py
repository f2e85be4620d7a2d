# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Tests - Fakes for providers, IPFS and the chain
# PURPOSE: Wire a full coordinator over the in-memory store
# CREATED: 06 OCT 2026
# ============================================================================
"""
Shared fixtures.

build_harness() wires the real TaskService / Dispatcher / CronTickHandler
over a strict MemoryBackend (every write re-validated against MintTask),
with scripted providers standing in for dall-e, stability and huggingface
(same names and traits, so fallback order is the production one). Build
the harness inside the coroutine under test.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pytest

from core.config import CoordinatorConfig, StoreConfig
from core.errors import ArtifactStoreError, ChainError, ProviderError
from core.models import MintTask
from infrastructure.chain import MintRequest
from orchestrator import CronTickHandler, Dispatcher, MintQueue
from providers import Estimate, ImageProvider, ProviderRegistry, ProviderTraits
from repositories import MemoryBackend, PersistenceAdapter
from services import ProcessRequest, QueryService, TaskService

PROVIDER_TRAITS = {
    "dall-e": ProviderTraits(quality=10, speed=6, cost=8, open_source=False),
    "stability": ProviderTraits(quality=8, speed=8, cost=6, open_source=False),
    "huggingface": ProviderTraits(quality=7, speed=9, cost=4, open_source=True),
}

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgo="


async def no_sleep(_delay: float) -> None:
    return None


# ============================================================================
# FAKES
# ============================================================================

class ScriptedProvider(ImageProvider):
    """
    Provider whose outcome is set by the test.

    outcome: "ok" | "503" | "400"
    delay:   seconds to sleep before answering
    gate:    asyncio.Event to wait on before answering
    """
    name = "scripted"
    traits = PROVIDER_TRAITS["dall-e"]
    option_rules = {
        "model": lambda v: isinstance(v, str) and len(v) <= 64,
        "quality": lambda v: v in ("hd", "standard"),
    }
    defaults = {"model": "scripted-1"}

    def __init__(self, name: str, outcome: str = "ok", delay: float = 0.0, gate=None):
        super().__init__(api_key="test-key")
        self.name = name
        self.traits = PROVIDER_TRAITS[name]
        self.outcome = outcome
        self.delay = delay
        self.gate = gate
        self.error_detail = ""
        self.calls: List[Tuple[str, Dict[str, Any], Optional[str]]] = []

    async def _generate(self, prompt, settings, negative_prompt):
        self.calls.append((prompt, settings, negative_prompt))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcome == "503":
            raise ProviderError(self.name, f"HTTP 503{self.error_detail}", status_code=503, transient=True)
        if self.outcome == "400":
            raise ProviderError(self.name, f"HTTP 400{self.error_detail}", status_code=400, transient=False)
        return PNG_DATA_URL

    def estimated(self, options):
        return Estimate(cost=0.01, time_seconds=2.0)


class FakeArtifactStore:
    """Returns deterministic ipfs:// URIs; can be told to fail."""

    def __init__(self, fail_first: bool = False):
        self.fail_first = fail_first
        self.images: List[str] = []
        self.metadata: List[Dict[str, Any]] = []

    async def store_image(self, image_url: str, name: str) -> str:
        if self.fail_first:
            self.fail_first = False
            raise ArtifactStoreError("pin rejected")
        self.images.append(image_url)
        return f"ipfs://bafyimage{len(self.images):04d}"

    async def store_metadata(self, metadata: Dict[str, Any], name: str) -> str:
        self.metadata.append(metadata)
        return f"ipfs://bafymeta{len(self.metadata):04d}"

    async def aclose(self) -> None:
        return None


class FakeChain:
    """In-process stand-in for the NFT contract."""

    def __init__(
        self,
        fail_finalize: bool = False,
        events: Optional[List[MintRequest]] = None,
        latest: int = 100,
        fail_scan: bool = False,
    ):
        self.fail_finalize = fail_finalize
        self.events = list(events or [])
        self.latest = latest
        self.fail_scan = fail_scan
        self.finalize_error = "reverted"
        self.uris: Dict[int, str] = {}
        self.owners: Dict[int, str] = {}
        self.finalized: List[Tuple[int, str]] = []
        self.scans: List[Tuple[int, int]] = []

    async def token_uri(self, token_id: int) -> Optional[str]:
        return self.uris.get(token_id)

    async def owner_of(self, token_id: int) -> Optional[str]:
        return self.owners.get(token_id)

    async def finalize_mint(self, token_id: int, uri: str) -> str:
        if self.fail_finalize:
            raise ChainError(f"setTokenURI({token_id}) {self.finalize_error}")
        self.uris[token_id] = uri
        self.finalized.append((token_id, uri))
        return "0x" + "ab" * 32

    async def latest_block(self) -> int:
        if self.fail_scan:
            raise ChainError("block number unavailable")
        return self.latest

    async def mint_requests(self, from_block: int, to_block: int) -> List[MintRequest]:
        self.scans.append((from_block, to_block))
        return [e for e in self.events if from_block <= e.block_number <= to_block]


# ============================================================================
# HARNESS
# ============================================================================

@dataclass
class Harness:
    backend: MemoryBackend
    adapter: PersistenceAdapter
    providers: Dict[str, ScriptedProvider]
    registry: ProviderRegistry
    queue: MintQueue
    task_service: TaskService
    query_service: QueryService
    dispatcher: Dispatcher
    cron: CronTickHandler
    artifacts: FakeArtifactStore
    chain: Optional[FakeChain] = None
    config: CoordinatorConfig = field(default_factory=CoordinatorConfig)

    async def enqueue(self, token_id: int, **fields):
        return await self.task_service.enqueue(ProcessRequest(token_id=token_id, **fields))

    async def task(self, task_id: str) -> MintTask:
        lookup = await self.adapter.load_task(task_id)
        assert lookup.found, f"{task_id} not in store"
        return lookup.task


def build_harness(
    outcomes: Optional[Dict[str, str]] = None,
    delays: Optional[Dict[str, float]] = None,
    gates: Optional[Dict[str, Any]] = None,
    chain: Optional[FakeChain] = None,
    artifacts: Optional[FakeArtifactStore] = None,
    config: Optional[CoordinatorConfig] = None,
    backend: Optional[MemoryBackend] = None,
    placeholder_uri: Optional[str] = None,
) -> Harness:
    outcomes = outcomes or {}
    delays = delays or {}
    gates = gates or {}
    config = config or CoordinatorConfig(max_concurrent=2, tick_budget_seconds=5.0, task_timeout_ms=30_000)

    backend = backend or MemoryBackend(strict=True)
    adapter = PersistenceAdapter(backend, StoreConfig(backend="memory"), sleep=no_sleep)
    providers = {
        name: ScriptedProvider(
            name,
            outcome=outcomes.get(name, "ok"),
            delay=delays.get(name, 0.0),
            gate=gates.get(name),
        )
        for name in ("dall-e", "stability", "huggingface")
    }
    registry = ProviderRegistry(providers.values())
    artifacts = artifacts or FakeArtifactStore()
    queue = MintQueue()
    task_service = TaskService(adapter, registry, queue, config, chain=chain)
    dispatcher = Dispatcher(
        task_service, registry, queue, artifacts,
        chain=chain, config=config, placeholder_uri=placeholder_uri,
    )
    return Harness(
        backend=backend,
        adapter=adapter,
        providers=providers,
        registry=registry,
        queue=queue,
        task_service=task_service,
        query_service=QueryService(adapter, task_service),
        dispatcher=dispatcher,
        cron=CronTickHandler(adapter, task_service, dispatcher, queue, chain=chain, config=config),
        artifacts=artifacts,
        chain=chain,
        config=config,
    )


@pytest.fixture
def make_harness():
    """Factory; call it inside the coroutine passed to asyncio.run."""
    return build_harness


@pytest.fixture
def fake_chain():
    return FakeChain()
