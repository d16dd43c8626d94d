from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Tuple


# (name, owning node names) as reported by the registry
StateEntry = Tuple[str, Tuple[str, ...]]


@dataclass(frozen=True)
class SystemState:
    published: Tuple[StateEntry, ...] = ()
    subscribed: Tuple[StateEntry, ...] = ()
    services: Tuple[StateEntry, ...] = ()


@dataclass(frozen=True)
class InfoNode:
    published_topics: FrozenSet[str] = field(default_factory=frozenset)
    subscribed_topics: FrozenSet[str] = field(default_factory=frozenset)
    provided_services: FrozenSet[str] = field(default_factory=frozenset)
    address: str = ''

    def to_dict(self) -> Dict:
        return {
            'published_topics': sorted(self.published_topics),
            'subscribed_topics': sorted(self.subscribed_topics),
            'provided_services': sorted(self.provided_services),
            'address': self.address,
        }


@dataclass(frozen=True)
class InfoTopic:
    type: str
    publishers: FrozenSet[str] = field(default_factory=frozenset)
    subscribers: FrozenSet[str] = field(default_factory=frozenset)

    def to_dict(self) -> Dict:
        return {
            'type': self.type,
            'publishers': sorted(self.publishers),
            'subscribers': sorted(self.subscribers),
        }


@dataclass(frozen=True)
class InfoService:
    providers: FrozenSet[str] = field(default_factory=frozenset)
    address: str = ''

    def to_dict(self) -> Dict:
        return {
            'providers': sorted(self.providers),
            'address': self.address,
        }


@dataclass(frozen=True)
class InfoConnection:
    """One connection held by a peer, as reported by its bus info"""
    id: int
    to: str
    direction: str  # 'i' inbound, 'o' outbound
    transport: str
    topic: str
    connected: bool

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'to': self.to,
            'direction': self.direction,
            'transport': self.transport,
            'topic': self.topic,
            'connected': self.connected,
        }


def views_to_dict(views: Dict[str, object]) -> Dict[str, Dict]:
    return {name: view.to_dict() for name, view in sorted(views.items())}


def connections_to_list(conns: List[InfoConnection]) -> List[Dict]:
    return [c.to_dict() for c in conns]
