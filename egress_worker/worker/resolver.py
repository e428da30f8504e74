"""
Host address discovery and registry lookups.
"""

import logging
import socket
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

import psutil
from sqlalchemy.ext.asyncio import AsyncSession

from egress_worker.db import IPAddressRepository, get_session_context
from egress_worker.observability.metrics import get_metrics
from egress_worker.types.address import AddressRecord

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def local_ip_addresses() -> set[str]:
    """
    Return every IPv4 and IPv6 address bound to a local interface.

    IPv6 zone suffixes ("fe80::1%eth0") are stripped.
    """
    addresses: set[str] = set()
    for interface_addresses in psutil.net_if_addrs().values():
        for address in interface_addresses:
            if address.family in (socket.AF_INET, socket.AF_INET6):
                addresses.add(address.address.split("%", 1)[0])
    return addresses


class AddressResolver:
    """Resolves a host address to its registry entry."""

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def lookup(self, ip: str) -> AddressRecord | None:
        """
        Look up the registry entry owning ip.

        Returns:
            The AddressRecord, or None if ip is not registered.
        """
        async with self._session_factory() as session:
            row = await IPAddressRepository(session).find_by_ip(ip)
            record = AddressRecord.model_validate(row) if row is not None else None

        get_metrics().record_address_lookup(record is not None)
        if record is None:
            logger.debug("Address not registered", extra={"ip": ip})
        return record
