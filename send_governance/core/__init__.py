"""
Core infrastructure package for the Send Governance backend.

Provides:
- Configuration management via pydantic-settings (config)
- The service clock defining the quota "service day" (clock)
- Domain exception hierarchy (errors)
- Async PostgreSQL connectivity via asyncpg plus tenacity retry (database)

This module re-exports the most used components so callers can write:

    from send_governance.core import get_settings, ServiceClock, StorageUnavailableError

FastAPI dependencies live in send_governance.core.dependencies and are
imported from there directly, since they pull in the service layer.
"""

# =============================================================================
# Re-exports from send_governance.core.config
# =============================================================================
from send_governance.core.config import Settings, get_settings

# =============================================================================
# Re-exports from send_governance.core.clock
# =============================================================================
from send_governance.core.clock import ServiceClock

# =============================================================================
# Re-exports from send_governance.core.errors
# =============================================================================
from send_governance.core.errors import (
    GovernanceError,
    ValidationFailedError,
    InvalidTransitionError,
    StorageUnavailableError,
    QuotaUnavailableError,
)

# =============================================================================
# Re-exports from send_governance.core.database
# =============================================================================
from send_governance.core.database import (
    init_db,
    close_db,
    get_db_pool,
    storage_errors,
    storage_retry,
)


__all__ = [
    # Configuration
    'Settings',
    'get_settings',
    # Service day
    'ServiceClock',
    # Errors
    'GovernanceError',
    'ValidationFailedError',
    'InvalidTransitionError',
    'StorageUnavailableError',
    'QuotaUnavailableError',
    # Database
    'init_db',
    'close_db',
    'get_db_pool',
    'storage_errors',
    'storage_retry',
]
