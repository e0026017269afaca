from __future__ import annotations

import ipaddress
from typing import Iterable

DEFAULT_OFFSETS = (10, 20, 30, 40, 50)


def candidate_addresses(cidr: str, offsets: Iterable[int] = DEFAULT_OFFSETS) -> list[str]:
    """Host addresses at fixed offsets from the network base address.

    IPv4 only. Candidates outside the subnet, and its broadcast address, are
    dropped. Returns an empty list for unparsable or IPv6 networks.
    """
    try:
        network = ipaddress.ip_network(cidr, strict=False)
    except ValueError:
        return []
    if not isinstance(network, ipaddress.IPv4Network):
        return []

    candidates = []
    for offset in offsets:
        value = int(network.network_address) + int(offset)
        if value > int(ipaddress.IPv4Address("255.255.255.255")):
            continue
        address = ipaddress.IPv4Address(value)
        if address not in network or address == network.broadcast_address:
            continue
        if str(address) not in candidates:
            candidates.append(str(address))
    return candidates
