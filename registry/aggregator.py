#!/usr/bin/env python3
"""
Topology aggregation.

Cross-references the registry's system state into per-node, per-topic and
per-service views. Every call takes a fresh snapshot; nothing is cached
between calls. Any registry failure aborts the whole call, so a caller either
gets a fully resolved view or an exception.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, Set, TypeVar

from registry.address import split_host_port, url_to_address
from registry.errors import AddressParseError
from registry.models import InfoNode, InfoService, InfoTopic

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_LOOKUP_CONCURRENCY = 8


class TopologyAggregator:
    """Builds node/topic/service views from a registry client"""

    def __init__(self, registry, lookup_concurrency: int = DEFAULT_LOOKUP_CONCURRENCY):
        self.registry = registry
        self.lookup_concurrency = max(1, lookup_concurrency)

    async def _resolve_all(self, names: Iterable[str],
                           resolve: Callable[[str], Awaitable[T]]) -> Dict[str, T]:
        """Resolve every name through a bounded pool of concurrent lookups.

        Returns only when all lookups succeeded. The first failure cancels
        the lookups still pending and is re-raised.
        """
        semaphore = asyncio.Semaphore(self.lookup_concurrency)

        async def worker(name: str):
            async with semaphore:
                return name, await resolve(name)

        tasks = [asyncio.ensure_future(worker(name)) for name in names]
        if not tasks:
            return {}

        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return dict(results)

    async def _node_address(self, name: str) -> str:
        url = await self.registry.lookup_node(name)
        return url_to_address(url)

    async def _service_address(self, name: str) -> str:
        url = await self.registry.lookup_service(name)
        return url_to_address(url)

    async def get_nodes(self) -> Dict[str, InfoNode]:
        """Return all nodes known to the registry, keyed by node name"""
        state = await self.registry.get_system_state()

        published: Dict[str, Set[str]] = {}
        subscribed: Dict[str, Set[str]] = {}
        services: Dict[str, Set[str]] = {}

        def init_entry(node: str):
            if node not in published:
                published[node] = set()
                subscribed[node] = set()
                services[node] = set()

        for topic, nodes in state.published:
            for node in nodes:
                init_entry(node)
                published[node].add(topic)

        for topic, nodes in state.subscribed:
            for node in nodes:
                init_entry(node)
                subscribed[node].add(topic)

        for service, nodes in state.services:
            for node in nodes:
                init_entry(node)
                services[node].add(service)

        addresses = await self._resolve_all(published, self._node_address)

        logger.debug(f"Resolved {len(addresses)} node addresses")

        return {
            node: InfoNode(
                published_topics=frozenset(published[node]),
                subscribed_topics=frozenset(subscribed[node]),
                provided_services=frozenset(services[node]),
                address=addresses[node],
            )
            for node in published
        }

    async def get_machines(self) -> FrozenSet[str]:
        """Return the distinct hosts that run at least one node"""
        nodes = await self.get_nodes()

        machines = set()
        for name, info in nodes.items():
            try:
                host, _ = split_host_port(info.address)
            except AddressParseError:
                logger.debug(f"Skipping node {name}: unusable address {info.address!r}")
                continue
            machines.add(host)

        return frozenset(machines)

    async def get_topics(self) -> Dict[str, InfoTopic]:
        """Return all topics with a registered type, keyed by topic name.

        Topics that appear in the system state but have no registered type
        are left out.
        """
        state = await self.registry.get_system_state()
        types = await self.registry.get_topic_types()

        topic_types: Dict[str, str] = {}
        publishers: Dict[str, Set[str]] = {}
        subscribers: Dict[str, Set[str]] = {}

        for topic, type_name in types:
            topic_types[topic] = type_name
            publishers[topic] = set()
            subscribers[topic] = set()

        for topic, nodes in state.published:
            if topic not in topic_types:
                continue
            publishers[topic].update(nodes)

        for topic, nodes in state.subscribed:
            if topic not in topic_types:
                continue
            subscribers[topic].update(nodes)

        return {
            topic: InfoTopic(
                type=type_name,
                publishers=frozenset(publishers[topic]),
                subscribers=frozenset(subscribers[topic]),
            )
            for topic, type_name in topic_types.items()
        }

    async def get_services(self) -> Dict[str, InfoService]:
        """Return all provided services, keyed by service name"""
        state = await self.registry.get_system_state()

        providers: Dict[str, Set[str]] = {}
        for service, nodes in state.services:
            providers.setdefault(service, set()).update(nodes)

        addresses = await self._resolve_all(providers, self._service_address)

        return {
            service: InfoService(
                providers=frozenset(nodes),
                address=addresses[service],
            )
            for service, nodes in providers.items()
        }
