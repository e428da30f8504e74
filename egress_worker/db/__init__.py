"""
Database module.
Contains the address registry connection, models, and repository.
"""

from egress_worker.db.connection import (
    close_db,
    get_engine,
    get_session_context,
    init_db,
)
from egress_worker.db.models import Base, IPAddress
from egress_worker.db.repository import IPAddressRepository

__all__ = [
    "get_session_context",
    "get_engine",
    "init_db",
    "close_db",
    "IPAddress",
    "IPAddressRepository",
    "Base",
]
