"""
Address helpers: turn the URLs handed out by the registry into host:port
strings a peer connection can be opened against.
"""

from typing import Tuple
from urllib.parse import urlsplit

from registry.errors import AddressParseError


def _join_host_port(host: str, port: int) -> str:
    if ':' in host:
        # IPv6 literal
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def url_to_address(url: str) -> str:
    """Convert a registry URL such as http://host:11311/ into 'host:11311'"""
    if not isinstance(url, str) or not url:
        raise AddressParseError(url, 'empty url')

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise AddressParseError(url, str(e)) from e

    host = parts.hostname
    if not host:
        raise AddressParseError(url, 'missing host')
    if port is None:
        raise AddressParseError(url, 'missing port')

    return _join_host_port(host, port)


def split_host_port(address: str) -> Tuple[str, int]:
    """Split 'host:port' (or '[v6]:port') into its parts"""
    if not address:
        raise AddressParseError(address, 'empty address')

    if address.startswith('['):
        end = address.find(']')
        if end < 0 or address[end + 1:end + 2] != ':':
            raise AddressParseError(address, 'malformed IPv6 address')
        host, port_str = address[1:end], address[end + 2:]
    else:
        host, sep, port_str = address.rpartition(':')
        if not sep or ':' in host:
            raise AddressParseError(address, 'missing port')

    if not host:
        raise AddressParseError(address, 'missing host')
    if not port_str.isdigit():
        raise AddressParseError(address, f"invalid port {port_str!r}")

    port = int(port_str)
    if port > 65535:
        raise AddressParseError(address, f"port {port} out of range")
    return host, port
