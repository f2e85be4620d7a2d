# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for store, dispatcher, chain and providers
# CREATED: 14 SEP 2026
# ============================================================================
"""
Configuration Defaults

Every knob the coordinator reads from the environment lives here.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides via from_env()
- One AppConfig container, cached by get_config()
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class StoreConfig:
    """
    Relational store settings.

    The retry policy applies to transient errors only: 3 attempts,
    200ms base delay doubling per attempt, +/-50% jitter.
    """
    database_url: Optional[str] = None
    host: str = "localhost"
    port: int = 5432
    database: str = "postgres"
    user: str = "postgres"
    password: str = ""
    sslmode: str = "require"
    schema: str = "mint"
    backend: str = "postgres"

    pool_min_size: int = 1
    pool_max_size: int = 5

    retry_attempts: int = 3
    retry_base_seconds: float = 0.2
    retry_jitter: float = 0.5

    def connection_string(self) -> str:
        """DATABASE_URL when set, otherwise built from the POSTGRES_* parts."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}"
            f"/{self.database}?sslmode={self.sslmode}"
        )

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Create from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=int(os.getenv("POSTGRES_PORT", 5432)),
            database=os.getenv("POSTGRES_DB", "postgres"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", ""),
            sslmode=os.getenv("POSTGRES_SSLMODE", "require"),
            schema=os.getenv("STORE_SCHEMA", "mint"),
            backend=os.getenv("STORE_BACKEND", "postgres").lower(),
            pool_min_size=int(os.getenv("DB_POOL_MIN", 1)),
            pool_max_size=int(os.getenv("DB_POOL_MAX", 5)),
            retry_attempts=int(os.getenv("STORE_RETRY_ATTEMPTS", 3)),
            retry_base_seconds=int(os.getenv("STORE_RETRY_BASE_MS", 200)) / 1000.0,
            retry_jitter=float(os.getenv("STORE_RETRY_JITTER", 0.5)),
        )


@dataclass(frozen=True)
class CoordinatorConfig:
    """
    Dispatcher, sweeper and enqueue-path settings.
    """
    max_concurrent: int = 2
    cleanup_ttl_seconds: float = 24 * 3600
    tick_budget_seconds: float = 50.0
    task_timeout_ms: int = 300_000
    max_token_id: int = 1_000_000
    default_provider: str = "dall-e"
    inline_dispatch: bool = False
    scan_events: bool = True
    lookback_blocks: int = 100

    @classmethod
    def from_env(cls) -> "CoordinatorConfig":
        """Create from environment variables."""
        return cls(
            max_concurrent=int(os.getenv("MINT_MAX_CONCURRENT", 2)),
            cleanup_ttl_seconds=float(os.getenv("CLEANUP_TTL_HOURS", 24)) * 3600,
            tick_budget_seconds=float(os.getenv("CRON_BUDGET_SECONDS", 50)),
            task_timeout_ms=int(os.getenv("TASK_TIMEOUT_MS", 300_000)),
            max_token_id=int(os.getenv("MAX_TOKEN_ID", 1_000_000)),
            default_provider=os.getenv("IMAGE_PROVIDER", "dall-e"),
            inline_dispatch=_env_bool("INLINE_DISPATCH", False),
            scan_events=_env_bool("CRON_SCAN_EVENTS", True),
            lookback_blocks=int(os.getenv("CRON_LOOKBACK_BLOCKS", 100)),
        )


@dataclass(frozen=True)
class ChainConfig:
    """NFT contract access."""
    rpc_url: Optional[str] = None
    contract_address: Optional[str] = None
    private_key: Optional[str] = None
    placeholder_uri: Optional[str] = None
    tx_timeout_seconds: float = 120.0

    @property
    def is_configured(self) -> bool:
        return bool(self.rpc_url and self.contract_address)

    @classmethod
    def from_env(cls) -> "ChainConfig":
        """Create from environment variables."""
        return cls(
            rpc_url=os.getenv("RPC_URL"),
            contract_address=os.getenv("CONTRACT_ADDRESS"),
            private_key=os.getenv("PRIVATE_KEY"),
            placeholder_uri=os.getenv("PLACEHOLDER_URI"),
            tx_timeout_seconds=float(os.getenv("CHAIN_TX_TIMEOUT_SECONDS", 120)),
        )


@dataclass(frozen=True)
class ProviderConfig:
    """Image provider credentials."""
    openai_api_key: Optional[str] = None
    stability_api_key: Optional[str] = None
    huggingface_api_key: Optional[str] = None
    request_timeout_seconds: float = 120.0

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Create from environment variables."""
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            stability_api_key=os.getenv("STABILITY_API_KEY"),
            huggingface_api_key=os.getenv("HUGGINGFACE_API_KEY"),
            request_timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", 120)),
        )


@dataclass(frozen=True)
class ArtifactConfig:
    """IPFS pinning service."""
    pinata_jwt: Optional[str] = None
    pinata_api_url: str = "https://api.pinata.cloud"

    @classmethod
    def from_env(cls) -> "ArtifactConfig":
        """Create from environment variables."""
        return cls(
            pinata_jwt=os.getenv("PINATA_JWT"),
            pinata_api_url=os.getenv("PINATA_API_URL", "https://api.pinata.cloud"),
        )


@dataclass(frozen=True)
class AppConfig:
    """Container for all configuration sections."""
    store: StoreConfig = field(default_factory=StoreConfig)
    coordinator: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    artifacts: ArtifactConfig = field(default_factory=ArtifactConfig)
    log_level: str = "INFO"
    cors_origin: str = "*"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create all sections from environment variables."""
        return cls(
            store=StoreConfig.from_env(),
            coordinator=CoordinatorConfig.from_env(),
            chain=ChainConfig.from_env(),
            providers=ProviderConfig.from_env(),
            artifacts=ArtifactConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cors_origin=os.getenv("CORS_ORIGIN", "*"),
        )


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get global config instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Reset config (for testing)."""
    global _config
    _config = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "StoreConfig",
    "CoordinatorConfig",
    "ChainConfig",
    "ProviderConfig",
    "ArtifactConfig",
    "AppConfig",
    "get_config",
    "reset_config",
]
