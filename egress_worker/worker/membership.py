"""
Queue membership reconciliation.

Each tick the worker works out which outgoing queues it should consume from
the addresses bound to the host, then leaves and joins queues to match.
"""

import logging
from collections.abc import Iterable

from egress_worker.constants import OUTGOING_QUEUE_PREFIX
from egress_worker.worker.consumer import JobConsumer
from egress_worker.worker.resolver import AddressResolver

logger = logging.getLogger(__name__)


def outgoing_queue_name(address_id: int) -> str:
    return f"{OUTGOING_QUEUE_PREFIX}{address_id}"


class QueueMembershipManager:
    """
    Keeps the outgoing-<id> subscriptions in line with the host's addresses.

    Caches:
    - ip -> registry id, for every address resolved so far
    - ip -> paired ip, for dual-stack registry entries (both directions)
    - unassigned ips, known not to be registered; never looked up again

    Cache entries for an id are purged when its queue is left, so the next
    appearance of those addresses is resolved afresh.
    """

    def __init__(self, consumer: JobConsumer, resolver: AddressResolver):
        self.consumer = consumer
        self.resolver = resolver

        self.joined_ids: set[int] = set()
        self._ip_to_id: dict[str, int] = {}
        self._pairs: dict[str, str] = {}
        self._unassigned: set[str] = set()
        self._unpaired_reported: set[str] = set()

    @property
    def unassigned_ips(self) -> frozenset[str]:
        return frozenset(self._unassigned)

    def cached_id(self, ip: str) -> int | None:
        return self._ip_to_id.get(ip)

    async def _resolve(self, ip: str) -> int | None:
        address_id = self._ip_to_id.get(ip)
        if address_id is not None:
            return address_id
        if ip in self._unassigned:
            return None

        record = await self.resolver.lookup(ip)
        if record is None:
            self._unassigned.add(ip)
            return None

        self._ip_to_id[ip] = record.id
        pair = record.pair_of(ip)
        if pair is not None:
            self._pairs[ip] = pair
            self._pairs[pair] = ip
        return record.id

    async def needed_ids(self, local_ips: set[str]) -> set[int]:
        """Resolve local_ips and return the ids whose queues should be joined."""
        needed: set[int] = set()
        for ip in sorted(local_ips):
            address_id = await self._resolve(ip)
            if address_id is None:
                continue

            pair = self._pairs.get(ip)
            if pair is not None and pair not in local_ips:
                if ip not in self._unpaired_reported:
                    logger.info(
                        f"Host has '{ip}' but its pair ({pair}) isn't here. Cannot add now.",
                        extra={"ip": ip, "pair": pair, "address_id": address_id},
                    )
                    self._unpaired_reported.add(ip)
                continue

            self._unpaired_reported.discard(ip)
            needed.add(address_id)
        return needed

    async def reconcile(self, local_ips: Iterable[str]) -> None:
        """
        Bring subscriptions in line with local_ips.

        Stale queues are left before new ones are joined. Calling again with
        the same addresses changes nothing.
        """
        local_ips = set(local_ips)
        needed = await self.needed_ids(local_ips)

        to_leave = self.joined_ids - needed
        to_join = needed - self.joined_ids

        for address_id in sorted(to_leave):
            await self.consumer.leave(outgoing_queue_name(address_id))
            self.joined_ids.discard(address_id)
            self._purge(address_id)

        for address_id in sorted(to_join):
            await self.consumer.join(outgoing_queue_name(address_id))
            self.joined_ids.add(address_id)

    def _purge(self, address_id: int) -> None:
        stale = [ip for ip, cached in self._ip_to_id.items() if cached == address_id]
        for ip in stale:
            del self._ip_to_id[ip]
            self._unpaired_reported.discard(ip)
            pair = self._pairs.pop(ip, None)
            if pair is not None and self._pairs.get(pair) == ip:
                del self._pairs[pair]
        if stale:
            logger.debug(
                "Purged cached addresses",
                extra={"address_id": address_id, "ips": stale},
            )
