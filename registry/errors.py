"""
Exceptions raised by the busgraph topology engine.

Every failure the engine can surface derives from TopologyError so callers
can catch one type. Registry-side failures carry the call that failed
(method and argument) so a caller can diagnose without retrying.
"""

from typing import Any, Optional


class TopologyError(Exception):
    """Base class for all busgraph errors"""


class RegistryQueryFailed(TopologyError):
    """A registry call failed or returned an error status"""

    def __init__(self, method: str, argument: Optional[str] = None, reason: str = ''):
        self.method = method
        self.argument = argument
        self.reason = reason
        call = f"{method}({argument})" if argument is not None else f"{method}()"
        message = f"registry call {call} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RegistryUnavailable(RegistryQueryFailed):
    """The registry could not be reached or did not answer in time"""


class NodeLookupFailed(RegistryQueryFailed):
    """Resolving a node name to its URL failed"""


class UnknownNode(NodeLookupFailed):
    """The registry does not know the requested node"""

    def __init__(self, name: str, reason: str = ''):
        self.name = name
        super().__init__('lookupNode', name, reason or 'unknown node')


class UnknownService(RegistryQueryFailed):
    """The registry does not know the requested service"""

    def __init__(self, name: str, reason: str = ''):
        self.name = name
        super().__init__('lookupService', name, reason or 'unknown service')


class AddressParseError(TopologyError):
    def __init__(self, url: Any, reason: str = 'no host:port'):
        self.url = url
        self.reason = reason
        super().__init__(f"cannot parse address from {url!r}: {reason}")


class PeerUnreachable(TopologyError):
    """A peer call failed, timed out or answered with an error status"""

    def __init__(self, address: str, method: str, reason: str = ''):
        self.address = address
        self.method = method
        self.reason = reason
        message = f"peer {address} did not answer {method}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidConnectionRecord(TopologyError):
    """A peer returned a bus-info entry with the wrong shape"""

    def __init__(self, entry: Any, reason: str):
        self.entry = entry
        self.reason = reason
        super().__init__(f"invalid bus info entry {entry!r}: {reason}")
