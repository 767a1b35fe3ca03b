from levelup.core.database.base import Base, IdMixin, TimestampMixin
from levelup.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
    "DatabaseService",
    "IdMixin",
    "TimestampMixin",
]
