"""Tests for the topology graph."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from registry.aggregator import TopologyAggregator
from registry.models import InfoNode, InfoService, InfoTopic
from registry.network_topology import TopologyGraph


@pytest.fixture
def nodes():
    return {
        '/talker': InfoNode(
            published_topics=frozenset({'/chatter'}),
            provided_services=frozenset({'/talker/get_loggers'}),
            address='10.0.0.1:40001',
        ),
        '/listener': InfoNode(
            subscribed_topics=frozenset({'/chatter', '/clock'}),
            address='10.0.0.1:40002',
        ),
        '/lidar': InfoNode(
            published_topics=frozenset({'/scan'}),
            address='10.0.0.2:40003',
        ),
    }


@pytest.fixture
def topology(nodes):
    topics = {'/chatter': InfoTopic(type='std_msgs/String',
                                    publishers=frozenset({'/talker'}),
                                    subscribers=frozenset({'/listener'}))}
    services = {'/talker/get_loggers': InfoService(providers=frozenset({'/talker'}),
                                                   address='10.0.0.1:50001')}
    return TopologyGraph.from_views(nodes, topics, services)


class TestTopologyGraph:
    """Test graph construction and analysis."""

    def test_vertices_and_edges(self, topology):
        graph = topology.graph

        assert graph.nodes['node:/talker']['address'] == '10.0.0.1:40001'
        assert graph.nodes['topic:/chatter']['type'] == 'std_msgs/String'
        assert graph.nodes['service:/talker/get_loggers']['address'] == '10.0.0.1:50001'
        assert graph.edges['node:/talker', 'topic:/chatter']['edge_type'] == 'publish'
        assert graph.edges['topic:/chatter', 'node:/listener']['edge_type'] == 'subscribe'
        assert graph.edges['service:/talker/get_loggers', 'node:/talker']['edge_type'] == 'provides'

    def test_machines(self, topology):
        assert topology.machines == {'10.0.0.1', '10.0.0.2'}

    def test_node_without_address(self):
        topology = TopologyGraph.from_views({'/x': InfoNode()})

        assert topology.machines == set()
        assert topology.graph.nodes['node:/x']['machine'] is None

    def test_orphan_topics(self, topology):
        orphans = topology.find_orphan_topics()

        assert orphans['no_publishers'] == ['/clock']
        assert orphans['no_subscribers'] == ['/scan']

    def test_topic_flow(self, topology):
        flow = topology.topic_flow('/chatter')

        assert flow['type'] == 'std_msgs/String'
        assert flow['publishers'] == ['/talker']
        assert flow['subscribers'] == ['/listener']
        assert flow['paths'] == [{'from': '/talker', 'to': '/listener'}]

    def test_topic_flow_unknown(self, topology):
        assert 'error' in topology.topic_flow('/missing')

    def test_summary(self, topology):
        summary = topology.generate_topology_summary()

        assert summary['total_nodes'] == 3
        assert summary['total_topics'] == 3
        assert summary['total_services'] == 1
        assert summary['machines'] == ['10.0.0.1', '10.0.0.2']
        assert summary['weakly_connected'] is False

    def test_interactive_data(self, topology):
        data = topology.get_interactive_topology_data()

        ids = {n['id'] for n in data['nodes']}
        assert 'node:/talker' in ids
        assert 'topic:/scan' in ids
        assert len(data['edges']) == topology.graph.number_of_edges()
        assert all(isinstance(n['x'], float) for n in data['nodes'])

    def test_empty_graph(self):
        topology = TopologyGraph()

        data = topology.get_interactive_topology_data()

        assert data['nodes'] == []
        assert data['summary']['total_nodes'] == 0
        assert data['summary']['weakly_connected'] is False

    def test_render_png(self, topology):
        png = topology.render_png(width=4, height=3)

        assert png.startswith(b'\x89PNG')

    def test_concurrent_renders_match_serial(self, topology):
        other = TopologyGraph.from_views({'/solo': InfoNode(
            published_topics=frozenset({'/heartbeat'}), address='10.0.0.9:1')})
        graphs = [topology, other] * 8

        expected = {id(g): g.render_png(width=4, height=3) for g in (topology, other)}
        with ThreadPoolExecutor(max_workers=8) as pool:
            rendered = list(pool.map(lambda g: g.render_png(width=4, height=3), graphs))

        assert expected[id(topology)] != expected[id(other)]
        for graph, png in zip(graphs, rendered):
            assert png == expected[id(graph)]

    @pytest.mark.asyncio
    async def test_from_aggregated_views(self, fake_registry):
        aggregator = TopologyAggregator(fake_registry)
        topology = TopologyGraph.from_views(
            await aggregator.get_nodes(),
            await aggregator.get_topics(),
            await aggregator.get_services(),
        )

        flow = topology.topic_flow('/scan')
        assert flow['publishers'] == ['/lidar']
        assert flow['subscribers'] == ['/mapper']
        assert flow['type'] is None
