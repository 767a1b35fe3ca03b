"""
Shared building blocks for LevelUp domain modules.

- BaseService: logging, config and event helpers for services
- BaseRepository: generic async SQLAlchemy data access
- exceptions: the domain exception hierarchy
"""

from levelup.modules.shared.base_repository import BaseRepository
from levelup.modules.shared.base_service import BaseService
from levelup.modules.shared.exceptions import (
    ErrorSeverity,
    InvalidOperationError,
    LevelupDomainException,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "ErrorSeverity",
    "InvalidOperationError",
    "LevelupDomainException",
    "NotFoundError",
    "StoreUnavailableError",
    "ValidationError",
    "get_error_severity",
    "is_transient_error",
    "should_alert",
]
