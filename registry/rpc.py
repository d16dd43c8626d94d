"""
XML-RPC over aiohttp.

Both the registry and every peer speak XML-RPC and wrap each result in a
[code, statusMessage, value] envelope where code 1 means success. This module
does the marshalling and the envelope check; callers turn the two error types
below into the domain errors of their side.
"""

import asyncio
import logging
import xmlrpc.client
from typing import Any
from xml.parsers.expat import ExpatError

import aiohttp

logger = logging.getLogger(__name__)

STATUS_SUCCESS = 1


class TransportError(Exception):
    """The HTTP exchange itself failed"""


class RemoteCallError(Exception):
    """The remote side answered, but not with a usable success value"""

    def __init__(self, message: str, code: Any = None):
        self.code = code
        super().__init__(message)


async def call(session: aiohttp.ClientSession, url: str, method: str, *params) -> Any:
    """Invoke `method` at `url` and return the value of a successful envelope"""
    payload = xmlrpc.client.dumps(params, method, allow_none=True)

    try:
        async with session.post(
            url,
            data=payload.encode('utf-8'),
            headers={'Content-Type': 'text/xml'}
        ) as resp:
            if resp.status != 200:
                raise TransportError(f"HTTP {resp.status}")
            body = await resp.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise TransportError(str(e) or type(e).__name__) from e

    try:
        result, _ = xmlrpc.client.loads(body, use_builtin_types=True)
    except xmlrpc.client.Fault as e:
        raise RemoteCallError(f"fault {e.faultCode}: {e.faultString}") from e
    except (ExpatError, xmlrpc.client.ResponseError, UnicodeDecodeError, ValueError) as e:
        # mistyped scalars such as <int>abc</int> surface as ValueError
        raise RemoteCallError(f"malformed response: {e}") from e

    if len(result) != 1:
        raise RemoteCallError(f"expected a single return value, got {len(result)}")

    envelope = result[0]
    if not isinstance(envelope, (list, tuple)) or len(envelope) != 3:
        raise RemoteCallError(f"malformed envelope {envelope!r}")

    code, message, value = envelope
    if code != STATUS_SUCCESS:
        raise RemoteCallError(str(message), code=code)

    logger.debug(f"{method} at {url} -> {message}")
    return value
