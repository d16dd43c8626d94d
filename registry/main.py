#!/usr/bin/env python3
import asyncio
import logging
import time
from typing import Optional

from aiohttp import web
from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST

from peer.inspector import PeerInspector
from registry.aggregator import TopologyAggregator
from registry.client import RegistryClient
from registry.config import InspectorConfig, load_config
from registry.errors import (
    AddressParseError, InvalidConnectionRecord, PeerUnreachable, RegistryQueryFailed,
    RegistryUnavailable, TopologyError, UnknownNode, UnknownService
)
from registry.models import connections_to_list, views_to_dict
from registry.network_topology import TopologyGraph
from registry.version import get_cached_version

logger = logging.getLogger(__name__)


def error_status(error: TopologyError) -> int:
    """HTTP status for a topology error"""
    if isinstance(error, (UnknownNode, UnknownService)):
        return 404
    if isinstance(error, RegistryUnavailable):
        return 503
    if isinstance(error, (PeerUnreachable, InvalidConnectionRecord,
                          AddressParseError, RegistryQueryFailed)):
        return 502
    return 500


class TopologyService:
    def __init__(self, config: InspectorConfig):
        self.config = config

        self.registry_client = RegistryClient(
            config.registry_url, config.caller_id, timeout=config.request_timeout
        )
        self.aggregator = TopologyAggregator(
            self.registry_client, lookup_concurrency=config.lookup_concurrency
        )
        self.inspector = PeerInspector(
            self.registry_client, config.caller_id, timeout=config.request_timeout
        )

        # Prometheus metrics
        self.queries_total = Counter(
            'busgraph_queries_total',
            'Topology queries served, by outcome',
            ['operation', 'status']
        )

        self.query_duration = Histogram(
            'busgraph_query_duration_seconds',
            'Duration of topology queries',
            ['operation']
        )

        self.ping_seconds = Gauge(
            'busgraph_ping_seconds',
            'Last measured round trip to a node',
            ['node']
        )

        self.nodes_total = Gauge('busgraph_nodes_total', 'Nodes seen in the last node query')
        self.topics_total = Gauge('busgraph_topics_total', 'Topics seen in the last topic query')
        self.services_total = Gauge('busgraph_services_total', 'Services seen in the last service query')

    async def _run(self, operation: str, func, *args):
        """Run one engine operation, recording its outcome and duration"""
        start_time = time.time()
        try:
            result = await func(*args)
        except TopologyError:
            self.queries_total.labels(operation=operation, status='error').inc()
            raise
        finally:
            self.query_duration.labels(operation=operation).observe(time.time() - start_time)

        self.queries_total.labels(operation=operation, status='ok').inc()
        return result

    def _error_response(self, operation: str, error: TopologyError):
        status = error_status(error)
        if status >= 500:
            logger.error(f"{operation} failed: {error}")
        else:
            logger.info(f"{operation} failed: {error}")
        return web.json_response({'error': str(error), 'type': type(error).__name__}, status=status)

    async def get_nodes(self, request):
        """List all nodes with their topics, services and address"""
        try:
            nodes = await self._run('get_nodes', self.aggregator.get_nodes)
            self.nodes_total.set(len(nodes))
            return web.json_response({'nodes': views_to_dict(nodes)})
        except TopologyError as e:
            return self._error_response('get_nodes', e)

    async def get_topics(self, request):
        try:
            topics = await self._run('get_topics', self.aggregator.get_topics)
            self.topics_total.set(len(topics))
            return web.json_response({'topics': views_to_dict(topics)})
        except TopologyError as e:
            return self._error_response('get_topics', e)

    async def get_services(self, request):
        try:
            services = await self._run('get_services', self.aggregator.get_services)
            self.services_total.set(len(services))
            return web.json_response({'services': views_to_dict(services)})
        except TopologyError as e:
            return self._error_response('get_services', e)

    async def get_machines(self, request):
        try:
            machines = await self._run('get_machines', self.aggregator.get_machines)
            return web.json_response({'machines': sorted(machines)})
        except TopologyError as e:
            return self._error_response('get_machines', e)

    async def get_node_conns(self, request):
        """List the live connections of one node"""
        name = '/' + request.match_info['name']
        try:
            conns = await self._run('get_node_conns', self.inspector.get_node_conns, name)
            return web.json_response({'node': name, 'connections': connections_to_list(conns)})
        except TopologyError as e:
            return self._error_response('get_node_conns', e)

    async def ping_node(self, request):
        name = '/' + request.match_info['name']
        try:
            elapsed = await self._run('ping_node', self.inspector.ping_node, name)
            self.ping_seconds.labels(node=name).set(elapsed)
            return web.json_response({'node': name, 'elapsed_ms': elapsed * 1000})
        except TopologyError as e:
            return self._error_response('ping_node', e)

    async def kill_node(self, request):
        name = '/' + request.match_info['name']
        try:
            await self._run('kill_node', self.inspector.kill_node, name)
            logger.info(f"Kill request sent to {name}")
            return web.json_response({'node': name, 'status': 'shutdown requested'})
        except TopologyError as e:
            return self._error_response('kill_node', e)

    async def _build_graph(self) -> TopologyGraph:
        nodes = await self.aggregator.get_nodes()
        topics = await self.aggregator.get_topics()
        services = await self.aggregator.get_services()
        return TopologyGraph.from_views(nodes, topics, services)

    async def get_network_topology(self, request):
        """Get the topology graph, or the flow of one topic with ?topic="""
        try:
            topology = await self._run('get_topology', self._build_graph)
            topic = request.query.get('topic')
            if topic:
                flow = topology.topic_flow(topic)
                status = 404 if 'error' in flow else 200
                return web.json_response(flow, status=status)
            return web.json_response(topology.get_interactive_topology_data())
        except TopologyError as e:
            return self._error_response('get_topology', e)

    async def get_topology_png(self, request):
        try:
            topology = await self._run('get_topology', self._build_graph)
        except TopologyError as e:
            return self._error_response('get_topology', e)

        png = await asyncio.get_running_loop().run_in_executor(None, topology.render_png)
        return web.Response(body=png, content_type='image/png',
                            headers={'Cache-Control': 'no-cache'})

    async def health_check(self, request):
        """Health check endpoint; healthy when the registry answers"""
        try:
            await self.registry_client.get_system_state()
            return web.json_response({
                'status': 'healthy',
                'version': get_cached_version(),
                'component': 'inspector',
                'registry_url': self.config.registry_url,
                'timestamp': time.time()
            })
        except TopologyError as e:
            return web.json_response({
                'status': 'unhealthy',
                'version': get_cached_version(),
                'component': 'inspector',
                'registry_url': self.config.registry_url,
                'error': str(e),
                'timestamp': time.time()
            }, status=503)

    async def metrics_endpoint(self, request):
        """Prometheus metrics endpoint"""
        metrics_data = generate_latest()
        return web.Response(body=metrics_data, headers={'Content-Type': CONTENT_TYPE_LATEST})

    async def cleanup(self):
        await self.registry_client.close()


async def init_app(config_path: Optional[str] = None):
    config = load_config(config_path)
    service = TopologyService(config)

    app = web.Application()

    # Node names are absolute paths; the leading slash is part of the route
    app.router.add_get('/nodes', service.get_nodes)
    app.router.add_get('/nodes/{name:.+}/connections', service.get_node_conns)
    app.router.add_get('/nodes/{name:.+}/ping', service.ping_node)
    app.router.add_post('/nodes/{name:.+}/kill', service.kill_node)
    app.router.add_get('/topics', service.get_topics)
    app.router.add_get('/services', service.get_services)
    app.router.add_get('/machines', service.get_machines)

    app.router.add_get('/topology', service.get_network_topology)
    app.router.add_get('/topology/png', service.get_topology_png)

    app.router.add_get('/health', service.health_check)
    app.router.add_get('/metrics', service.metrics_endpoint)

    async def on_cleanup(app):
        await service.cleanup()

    app.on_cleanup.append(on_cleanup)

    return app, service


if __name__ == '__main__':
    import sys

    logging.basicConfig(level=logging.INFO)

    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    app, service = asyncio.run(init_app(config_path))

    logger.info(f"Inspecting registry at {service.config.registry_url}")
    web.run_app(app, host=service.config.server_host, port=service.config.server_port)
