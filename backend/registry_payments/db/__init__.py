"""
Database package for Registry Payments.

Exports database initialization, models, and session management.
"""
from .init_db import (
    initialize_database,
    create_tables,
    build_engine,
    build_session_factory,
    get_db,
    get_async_session,
)
from .models import (
    Base,
    GiftItemModel,
    GiftRegistryConfigModel,
    TransactionModel,
    IdempotencyKeyModel,
)
from .repository import with_row_lock

__all__ = [
    "initialize_database",
    "create_tables",
    "build_engine",
    "build_session_factory",
    "get_db",
    "get_async_session",
    "Base",
    "GiftItemModel",
    "GiftRegistryConfigModel",
    "TransactionModel",
    "IdempotencyKeyModel",
    "with_row_lock",
]
