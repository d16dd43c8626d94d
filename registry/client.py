#!/usr/bin/env python3
"""
Client for the registry's master API.

Every call passes the caller id first and returns the value part of the
registry's [code, statusMessage, value] envelope. Failures are reported with
the method and argument that failed.
"""

import logging
from typing import List, Optional, Tuple

import aiohttp

from registry import rpc
from registry.errors import (
    RegistryQueryFailed, RegistryUnavailable, UnknownNode, UnknownService
)
from registry.models import StateEntry, SystemState

logger = logging.getLogger(__name__)


def _parse_state_entries(method: str, category: str, raw) -> Tuple[StateEntry, ...]:
    if not isinstance(raw, (list, tuple)):
        raise RegistryQueryFailed(method, reason=f"{category} is not a list")

    entries = []
    for item in raw:
        if (not isinstance(item, (list, tuple)) or len(item) != 2
                or not isinstance(item[0], str) or not isinstance(item[1], (list, tuple))):
            raise RegistryQueryFailed(method, reason=f"malformed {category} entry {item!r}")
        name, nodes = item
        if not all(isinstance(n, str) for n in nodes):
            raise RegistryQueryFailed(method, reason=f"malformed {category} entry {item!r}")
        entries.append((name, tuple(nodes)))
    return tuple(entries)


class RegistryClient:
    def __init__(self, url: str, caller_id: str, timeout: float = 10.0,
                 session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self.caller_id = caller_id
        self.timeout = timeout
        self.session = session
        self._owns_session = session is None

    async def _init_session(self):
        """Initialize HTTP session"""
        if not self.session:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    async def close(self):
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None

    async def __aenter__(self):
        await self._init_session()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _call(self, method: str, *args, not_found=None):
        await self._init_session()
        argument = args[0] if args else None
        try:
            return await rpc.call(self.session, self.url, method, self.caller_id, *args)
        except rpc.TransportError as e:
            raise RegistryUnavailable(method, argument, str(e)) from e
        except rpc.RemoteCallError as e:
            # a status code means the registry answered and refused the name
            if not_found is not None and e.code is not None:
                raise not_found(argument, str(e)) from e
            raise RegistryQueryFailed(method, argument, str(e)) from e

    async def get_system_state(self) -> SystemState:
        """Return published topics, subscribed topics and provided services"""
        state = await self._call('getSystemState')

        if not isinstance(state, (list, tuple)) or len(state) != 3:
            raise RegistryQueryFailed('getSystemState', reason=f"malformed state {state!r}")

        ret = SystemState(
            published=_parse_state_entries('getSystemState', 'publishers', state[0]),
            subscribed=_parse_state_entries('getSystemState', 'subscribers', state[1]),
            services=_parse_state_entries('getSystemState', 'services', state[2]),
        )
        logger.debug(f"System state: {len(ret.published)} published, "
                     f"{len(ret.subscribed)} subscribed, {len(ret.services)} services")
        return ret

    async def get_topic_types(self) -> List[Tuple[str, str]]:
        types = await self._call('getTopicTypes')

        if not isinstance(types, (list, tuple)):
            raise RegistryQueryFailed('getTopicTypes', reason=f"malformed types {types!r}")

        ret = []
        for item in types:
            if (not isinstance(item, (list, tuple)) or len(item) != 2
                    or not all(isinstance(v, str) for v in item)):
                raise RegistryQueryFailed('getTopicTypes', reason=f"malformed entry {item!r}")
            ret.append((item[0], item[1]))
        return ret

    async def lookup_node(self, name: str) -> str:
        """Return the URL of a node's peer API"""
        url = await self._call('lookupNode', name, not_found=UnknownNode)

        if not isinstance(url, str):
            raise RegistryQueryFailed('lookupNode', name, f"malformed url {url!r}")
        return url

    async def lookup_service(self, name: str) -> str:
        """Return the URL of a service endpoint"""
        url = await self._call('lookupService', name, not_found=UnknownService)

        if not isinstance(url, str):
            raise RegistryQueryFailed('lookupService', name, f"malformed url {url!r}")
        return url
