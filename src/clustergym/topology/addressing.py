from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Iterator

from clustergym.core.errors import AddressSpaceExhausted, TopologyConfigError


@dataclass(frozen=True)
class Subnet:
    index: int
    network: ipaddress.IPv4Network

    @property
    def base(self) -> str:
        return str(self.network.network_address)

    @property
    def mask(self) -> str:
        return str(self.network.netmask)

    def hosts(self) -> Iterator[ipaddress.IPv4Address]:
        return iter(self.network.hosts())

    def __str__(self) -> str:
        return f"{self.base}/{self.mask}"


class SubnetAllocator:
    """Hands out ``<prefix>.<index>.0`` ranges with a fixed mask, in order.

    ``prefix`` holds the leading octets that never change; the next octet
    carries the index. With the defaults this yields ``10.0.1.0/24``,
    ``10.0.2.0/24``, ... ``10.0.255.0/24``.
    """

    def __init__(self, prefix: str = "10.0", start: int = 1, mask: str = "255.255.255.0") -> None:
        octets = [int(o) for o in str(prefix).split(".") if o != ""]
        if not 1 <= len(octets) <= 3 or any(not 0 <= o <= 255 for o in octets):
            raise ValueError(f"invalid address prefix: {prefix!r}")
        self._octets = octets
        self._mask = mask
        prefixlen = ipaddress.IPv4Network(f"0.0.0.0/{mask}").prefixlen
        index_bits = 8 * (len(octets) + 1)
        if prefixlen < index_bits:
            raise ValueError(f"mask {mask} is wider than the index octet of prefix {prefix!r}")
        if prefixlen > 31:
            raise TopologyConfigError(f"mask {mask} leaves no room for the two endpoint addresses of a link")
        if start < 0:
            raise ValueError(f"start index must be >= 0, got {start}")
        self._prefixlen = prefixlen
        self._limit = 256
        self._next = int(start)
        self.allocated = 0

    @property
    def capacity(self) -> int:
        """Number of subnets that can still be allocated."""
        return max(0, self._limit - self._next)

    def peek(self) -> int:
        return self._next

    def next(self) -> Subnet:
        if self._next >= self._limit:
            raise AddressSpaceExhausted(
                f"no subnet index left under prefix {'.'.join(map(str, self._octets))} "
                f"after {self.allocated} allocations"
            )
        index = self._next
        self._next += 1
        self.allocated += 1
        octets = self._octets + [index] + [0] * (3 - len(self._octets))
        network = ipaddress.IPv4Network((".".join(map(str, octets)), self._prefixlen))
        return Subnet(index=index, network=network)

    def __iter__(self) -> Iterator[Subnet]:
        while self.capacity > 0:
            yield self.next()
