"""Client for the API every peer exposes directly"""

import logging
from typing import Any, List

import aiohttp

from registry import rpc
from registry.errors import PeerUnreachable

logger = logging.getLogger(__name__)


class PeerClient:
    """Short-lived connection to one peer; use as an async context manager"""

    def __init__(self, address: str, caller_id: str, timeout: float = 10.0):
        self.address = address
        self.url = f"http://{address}/"
        self.caller_id = caller_id
        self.timeout = timeout
        self.session = None

    async def _init_session(self):
        if not self.session:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        await self._init_session()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _call(self, method: str, *args) -> Any:
        await self._init_session()
        try:
            return await rpc.call(self.session, self.url, method, self.caller_id, *args)
        except (rpc.TransportError, rpc.RemoteCallError) as e:
            raise PeerUnreachable(self.address, method, str(e)) from e

    async def get_pid(self) -> int:
        pid = await self._call('getPid')
        if not isinstance(pid, int) or isinstance(pid, bool):
            raise PeerUnreachable(self.address, 'getPid', f"malformed pid {pid!r}")
        return pid

    async def shutdown(self, reason: str = '') -> Any:
        logger.info(f"Requesting shutdown of peer {self.address}")
        return await self._call('shutdown', reason)

    async def get_bus_info(self) -> List[Any]:
        info = await self._call('getBusInfo')
        if not isinstance(info, (list, tuple)):
            raise PeerUnreachable(self.address, 'getBusInfo', f"malformed bus info {info!r}")
        return list(info)
