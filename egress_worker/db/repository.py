"""
IP address repository for database operations.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from egress_worker.db.models import IPAddress


class IPAddressRepository:
    """Read access to the IP address registry."""

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def find_by_ip(self, ip: str) -> IPAddress | None:
        """
        Find the registry row that owns an address in either family.

        Args:
            ip: An IPv4 or IPv6 address string.

        Returns:
            The matching IPAddress, or None if the address is not registered.
        """
        stmt = (
            select(IPAddress)
            .where(or_(IPAddress.ipv4 == ip, IPAddress.ipv6 == ip))
            .order_by(IPAddress.id)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

