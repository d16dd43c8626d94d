#!/usr/bin/env python3
"""
Topology graph for busgraph
Turns aggregated node/topic/service views into a NetworkX graph for
summaries, data-flow queries and rendering
"""

import io
import logging
from typing import Dict, List, Optional

import networkx as nx
from matplotlib.figure import Figure

from registry.address import split_host_port
from registry.errors import AddressParseError
from registry.models import InfoNode, InfoService, InfoTopic

logger = logging.getLogger(__name__)

NODE_PREFIX = 'node:'
TOPIC_PREFIX = 'topic:'
SERVICE_PREFIX = 'service:'


class TopologyGraph:
    """Directed graph of nodes, topics and services at one point in time"""

    def __init__(self):
        self.graph = nx.DiGraph()
        self.machines = set()

    @classmethod
    def from_views(cls, nodes: Dict[str, InfoNode],
                   topics: Optional[Dict[str, InfoTopic]] = None,
                   services: Optional[Dict[str, InfoService]] = None) -> 'TopologyGraph':
        topology = cls()
        for name, info in nodes.items():
            topology.add_node(name, info)
        for name, info in (topics or {}).items():
            topology.add_topic(name, info)
        for name, info in (services or {}).items():
            topology.add_service(name, info)
        return topology

    def add_node(self, name: str, info: InfoNode):
        machine = None
        try:
            machine, _ = split_host_port(info.address)
            self.machines.add(machine)
        except AddressParseError:
            logger.debug(f"Node {name} has no usable address")

        self.graph.add_node(NODE_PREFIX + name, node_type='node', name=name,
                            address=info.address, machine=machine)

        for topic in info.published_topics:
            self._ensure(TOPIC_PREFIX + topic, 'topic', topic)
            self.graph.add_edge(NODE_PREFIX + name, TOPIC_PREFIX + topic, edge_type='publish')

        for topic in info.subscribed_topics:
            self._ensure(TOPIC_PREFIX + topic, 'topic', topic)
            self.graph.add_edge(TOPIC_PREFIX + topic, NODE_PREFIX + name, edge_type='subscribe')

        for service in info.provided_services:
            self._ensure(SERVICE_PREFIX + service, 'service', service)
            self.graph.add_edge(SERVICE_PREFIX + service, NODE_PREFIX + name, edge_type='provides')

    def add_topic(self, name: str, info: InfoTopic):
        self._ensure(TOPIC_PREFIX + name, 'topic', name)
        self.graph.nodes[TOPIC_PREFIX + name]['type'] = info.type

        for node in info.publishers:
            self._ensure(NODE_PREFIX + node, 'node', node)
            self.graph.add_edge(NODE_PREFIX + node, TOPIC_PREFIX + name, edge_type='publish')
        for node in info.subscribers:
            self._ensure(NODE_PREFIX + node, 'node', node)
            self.graph.add_edge(TOPIC_PREFIX + name, NODE_PREFIX + node, edge_type='subscribe')

    def add_service(self, name: str, info: InfoService):
        self._ensure(SERVICE_PREFIX + name, 'service', name)
        self.graph.nodes[SERVICE_PREFIX + name]['address'] = info.address

        for node in info.providers:
            self._ensure(NODE_PREFIX + node, 'node', node)
            self.graph.add_edge(SERVICE_PREFIX + name, NODE_PREFIX + node, edge_type='provides')

    def _ensure(self, vertex: str, node_type: str, name: str):
        if vertex not in self.graph:
            self.graph.add_node(vertex, node_type=node_type, name=name)

    def _names(self, node_type: str) -> List[str]:
        return sorted(d['name'] for _, d in self.graph.nodes(data=True)
                      if d.get('node_type') == node_type)

    def find_orphan_topics(self) -> Dict[str, List[str]]:
        """Topics nobody publishes to, and topics nobody listens to"""
        no_publishers = []
        no_subscribers = []

        for vertex, data in self.graph.nodes(data=True):
            if data.get('node_type') != 'topic':
                continue
            if self.graph.in_degree(vertex) == 0:
                no_publishers.append(data['name'])
            if self.graph.out_degree(vertex) == 0:
                no_subscribers.append(data['name'])

        return {
            'no_publishers': sorted(no_publishers),
            'no_subscribers': sorted(no_subscribers),
        }

    def topic_flow(self, topic: str) -> Dict:
        """Publishers and subscribers of one topic"""
        vertex = TOPIC_PREFIX + topic
        if vertex not in self.graph:
            return {'error': f'Unknown topic {topic}'}

        publishers = sorted(self.graph.nodes[u]['name'] for u in self.graph.predecessors(vertex))
        subscribers = sorted(self.graph.nodes[v]['name'] for v in self.graph.successors(vertex))

        return {
            'topic': topic,
            'type': self.graph.nodes[vertex].get('type'),
            'publishers': publishers,
            'subscribers': subscribers,
            'paths': [{'from': p, 'to': s} for p in publishers for s in subscribers],
        }

    def generate_topology_summary(self) -> Dict:
        """Generate summary statistics about the topology"""
        orphans = self.find_orphan_topics()
        return {
            'total_nodes': len(self._names('node')),
            'total_topics': len(self._names('topic')),
            'total_services': len(self._names('service')),
            'total_edges': self.graph.number_of_edges(),
            'machines': sorted(self.machines),
            'orphan_topics': orphans,
            'graph_density': nx.density(self.graph) if self.graph.number_of_nodes() > 1 else 0.0,
            'weakly_connected': (nx.is_weakly_connected(self.graph)
                                 if self.graph.number_of_nodes() > 0 else False),
        }

    def _create_layout(self) -> Dict:
        """Create layout positions for graph vertices"""
        return nx.spring_layout(self.graph, k=1.5, iterations=50, seed=42)

    def get_interactive_topology_data(self) -> Dict:
        """Generate data for interactive web visualization"""
        if self.graph.number_of_nodes() == 0:
            return {'nodes': [], 'edges': [], 'summary': self.generate_topology_summary()}

        pos = self._create_layout()

        nodes = []
        for vertex, data in self.graph.nodes(data=True):
            x, y = pos.get(vertex, (0, 0))
            nodes.append({
                'id': vertex,
                'x': float(x),
                'y': float(y),
                'type': data.get('node_type', 'unknown'),
                'label': data.get('name', vertex),
                'address': data.get('address'),
                'machine': data.get('machine'),
                'message_type': data.get('type'),
            })

        edges = []
        for u, v, data in self.graph.edges(data=True):
            edges.append({
                'source': u,
                'target': v,
                'type': data.get('edge_type', ''),
            })

        return {
            'nodes': nodes,
            'edges': edges,
            'summary': self.generate_topology_summary(),
        }

    def render_png(self, width: int = 12, height: int = 8) -> bytes:
        """Render the graph to PNG bytes.

        Draws on its own Figure; pyplot global state is never touched.
        """
        fig = Figure(figsize=(width, height))
        ax = fig.add_subplot()
        if self.graph.number_of_nodes() > 0:
            pos = self._create_layout()
            self._draw_vertices(ax, pos, 'node', 'lightblue', 'o', 1200)
            self._draw_vertices(ax, pos, 'topic', 'lightgreen', 's', 700)
            self._draw_vertices(ax, pos, 'service', 'orange', 'D', 700)
            nx.draw_networkx_edges(self.graph, pos, ax=ax, alpha=0.6, arrows=True)
            labels = {n: d.get('name', n) for n, d in self.graph.nodes(data=True)}
            nx.draw_networkx_labels(self.graph, pos, labels=labels, font_size=8, ax=ax)
        ax.axis('off')

        buf = io.BytesIO()
        fig.savefig(buf, format='png', bbox_inches='tight')
        return buf.getvalue()

    def _draw_vertices(self, ax, pos: Dict, node_type: str, color: str, shape: str, size: int):
        nodelist = [n for n, d in self.graph.nodes(data=True) if d.get('node_type') == node_type]
        if nodelist:
            nx.draw_networkx_nodes(self.graph, pos, nodelist=nodelist, node_color=color,
                                   node_shape=shape, node_size=size, alpha=0.9, ax=ax)
