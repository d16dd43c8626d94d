"""
Decoding of peer bus info.

A peer describes each connection it holds as an untyped list:
    [connection_id, destination, direction, transport, topic, connected, ...]
Entries are checked field by field; an entry with any field of the wrong
shape is rejected as a whole.
"""

from typing import Any, Iterable, List

from registry.errors import InvalidConnectionRecord
from registry.models import InfoConnection

BUS_INFO_ARITY = 6


def _expect_str(entry, index: int, field: str) -> str:
    value = entry[index]
    if not isinstance(value, str):
        raise InvalidConnectionRecord(entry, f"{field} is not a string: {value!r}")
    return value


def decode_connection(entry: Any) -> InfoConnection:
    if not isinstance(entry, (list, tuple)):
        raise InvalidConnectionRecord(entry, 'not a list')
    if len(entry) < BUS_INFO_ARITY:
        raise InvalidConnectionRecord(
            entry, f"expected at least {BUS_INFO_ARITY} fields, got {len(entry)}")

    conn_id = entry[0]
    # bool is an int subclass but never a valid id
    if not isinstance(conn_id, int) or isinstance(conn_id, bool):
        raise InvalidConnectionRecord(entry, f"id is not an integer: {conn_id!r}")

    to = _expect_str(entry, 1, 'destination')

    direction = _expect_str(entry, 2, 'direction')
    if len(direction) != 1:
        raise InvalidConnectionRecord(entry, f"direction must be one character: {direction!r}")

    transport = _expect_str(entry, 3, 'transport')
    topic = _expect_str(entry, 4, 'topic')

    connected = entry[5]
    if not isinstance(connected, bool):
        raise InvalidConnectionRecord(entry, f"connected flag is not a boolean: {connected!r}")

    return InfoConnection(
        id=conn_id,
        to=to,
        direction=direction,
        transport=transport,
        topic=topic,
        connected=connected,
    )


def decode_bus_info(entries: Iterable[Any]) -> List[InfoConnection]:
    """Decode all entries in order, failing on the first malformed one"""
    return [decode_connection(entry) for entry in entries]
