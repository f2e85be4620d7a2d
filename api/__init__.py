# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP surface of the mint coordinator
# CREATED: 02 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes plus the CORS / error-handling middleware.
"""

from .routes import router, set_services
from .middleware import cors_headers, install_cors, install_error_handlers

__all__ = [
    "router",
    "set_services",
    "cors_headers",
    "install_cors",
    "install_error_handlers",
]
