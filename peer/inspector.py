#!/usr/bin/env python3
"""
Live peer inspection: ping, kill and connection listing of single nodes.

Each operation resolves the node through the registry, then talks to the
node directly over a connection opened for that one call.
"""

import logging
import time
from typing import List

from peer.bus_info import decode_bus_info
from peer.client import PeerClient
from registry.address import url_to_address
from registry.errors import NodeLookupFailed, RegistryQueryFailed
from registry.models import InfoConnection

logger = logging.getLogger(__name__)


class PeerInspector:
    def __init__(self, registry, caller_id: str, timeout: float = 10.0,
                 peer_factory=PeerClient):
        self.registry = registry
        self.caller_id = caller_id
        self.timeout = timeout
        self.peer_factory = peer_factory

    async def _resolve(self, name: str) -> str:
        try:
            url = await self.registry.lookup_node(name)
        except NodeLookupFailed:
            raise
        except RegistryQueryFailed as e:
            raise NodeLookupFailed('lookupNode', name, e.reason) from e
        return url_to_address(url)

    def _open(self, address: str) -> PeerClient:
        return self.peer_factory(address, self.caller_id, self.timeout)

    async def ping_node(self, name: str) -> float:
        """Send a liveness request and return the round trip in seconds"""
        address = await self._resolve(name)

        async with self._open(address) as peer:
            start = time.monotonic()
            await peer.get_pid()
            elapsed = time.monotonic() - start

        logger.debug(f"Ping {name} ({address}): {elapsed * 1000:.2f} ms")
        return elapsed

    async def kill_node(self, name: str):
        """Ask a node to shut down; does not wait for it to exit"""
        address = await self._resolve(name)

        async with self._open(address) as peer:
            await peer.shutdown('')

        logger.info(f"Shutdown request accepted by {name} ({address})")

    async def get_node_conns(self, name: str) -> List[InfoConnection]:
        """Return the connections a node currently holds"""
        address = await self._resolve(name)

        async with self._open(address) as peer:
            entries = await peer.get_bus_info()

        return decode_bus_info(entries)
