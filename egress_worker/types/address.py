"""
Address registry type definitions.
"""

from pydantic import BaseModel, ConfigDict


class AddressRecord(BaseModel):
    """
    A registered egress address.

    When both families are set the address is dual-stack and its queue may
    only be claimed by a host holding both ipv4 and ipv6.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    ipv4: str | None = None
    ipv6: str | None = None

    @property
    def requires_pair(self) -> bool:
        return bool(self.ipv4 and self.ipv6)

    def pair_of(self, ip: str) -> str | None:
        """Return the opposite-family address for ip, if this record pairs them."""
        if not self.requires_pair:
            return None
        if ip == self.ipv4:
            return self.ipv6
        if ip == self.ipv6:
            return self.ipv4
        return None
