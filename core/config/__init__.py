# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 14 SEP 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration for the mint coordinator.
"""

from core.config.defaults import (
    StoreConfig,
    CoordinatorConfig,
    ChainConfig,
    ProviderConfig,
    ArtifactConfig,
    AppConfig,
    get_config,
    reset_config,
)

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
