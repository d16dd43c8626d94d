#!/usr/bin/env python3
"""Command line front end for the topology engine"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from peer.inspector import PeerInspector
from registry.aggregator import TopologyAggregator
from registry.client import RegistryClient
from registry.config import InspectorConfig, load_config
from registry.errors import TopologyError, UnknownNode
from registry.models import connections_to_list, views_to_dict
from registry.version import get_cached_version

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='busgraph',
        description='Inspect the nodes, topics and services of a publish/subscribe network.'
    )
    parser.add_argument('-c', '--config', help='YAML configuration file (default: environment)')
    parser.add_argument('--log-level', help='Override the configured log level')
    parser.add_argument('--json', action='store_true', help='Print JSON instead of text')
    parser.add_argument('--version', action='version', version=f"busgraph {get_cached_version()}")

    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('nodes', help='List nodes')
    sub.add_parser('topics', help='List topics with a registered type')
    sub.add_parser('services', help='List services')
    sub.add_parser('machines', help='List hosts running at least one node')

    info = sub.add_parser('info', help='Show topics, services and connections of a node')
    info.add_argument('node')

    conns = sub.add_parser('conns', help='List the connections of a node')
    conns.add_argument('node')

    ping = sub.add_parser('ping', help='Measure the round trip to a node')
    ping.add_argument('node')
    ping.add_argument('-n', '--count', type=int, default=1, help='Number of pings (default: 1)')
    ping.add_argument('--interval', type=float, default=1.0, help='Seconds between pings')

    kill = sub.add_parser('kill', help='Ask one or more nodes to shut down')
    kill.add_argument('nodes', nargs='+')

    sub.add_parser('serve', help='Run the HTTP inspection service')
    return parser


def _print_lines(lines: List[str]):
    for line in lines:
        print(line)


def _format_names(title: str, names) -> List[str]:
    if not names:
        return [f"{title}: None"]
    return [f"{title}:"] + [f" * {name}" for name in sorted(names)]


async def run_command(args, config: InspectorConfig) -> int:
    async with RegistryClient(config.registry_url, config.caller_id,
                              timeout=config.request_timeout) as registry:
        aggregator = TopologyAggregator(registry, lookup_concurrency=config.lookup_concurrency)
        inspector = PeerInspector(registry, config.caller_id, timeout=config.request_timeout)

        if args.command == 'nodes':
            nodes = await aggregator.get_nodes()
            if args.json:
                print(json.dumps(views_to_dict(nodes), indent=2))
            else:
                _print_lines(sorted(nodes))

        elif args.command == 'topics':
            topics = await aggregator.get_topics()
            if args.json:
                print(json.dumps(views_to_dict(topics), indent=2))
            else:
                for name, topic in sorted(topics.items()):
                    print(f"{name} [{topic.type}] "
                          f"{len(topic.publishers)} publishers, {len(topic.subscribers)} subscribers")

        elif args.command == 'services':
            services = await aggregator.get_services()
            if args.json:
                print(json.dumps(views_to_dict(services), indent=2))
            else:
                for name, service in sorted(services.items()):
                    print(f"{name} {service.address} ({', '.join(sorted(service.providers))})")

        elif args.command == 'machines':
            machines = await aggregator.get_machines()
            if args.json:
                print(json.dumps(sorted(machines)))
            else:
                _print_lines(sorted(machines))

        elif args.command == 'info':
            nodes = await aggregator.get_nodes()
            if args.node not in nodes:
                raise UnknownNode(args.node)
            node = nodes[args.node]
            conns = await inspector.get_node_conns(args.node)
            if args.json:
                payload = node.to_dict()
                payload['connections'] = connections_to_list(conns)
                print(json.dumps(payload, indent=2))
            else:
                lines = [f"Node [{args.node}]", f"Address: {node.address}", '']
                lines += _format_names('Publications', node.published_topics) + ['']
                lines += _format_names('Subscriptions', node.subscribed_topics) + ['']
                lines += _format_names('Services', node.provided_services) + ['']
                lines.append('Connections:')
                for conn in conns:
                    direction = 'inbound' if conn.direction == 'i' else 'outbound'
                    state = '' if conn.connected else ' (disconnected)'
                    lines.append(f" * topic: {conn.topic}")
                    lines.append(f"    * to: {conn.to}")
                    lines.append(f"    * direction: {direction}")
                    lines.append(f"    * transport: {conn.transport}{state}")
                _print_lines(lines)

        elif args.command == 'conns':
            conns = await inspector.get_node_conns(args.node)
            if args.json:
                print(json.dumps(connections_to_list(conns), indent=2))
            else:
                for conn in conns:
                    print(f"{conn.id} {conn.direction} {conn.transport} {conn.topic} "
                          f"{conn.to} {'connected' if conn.connected else 'disconnected'}")

        elif args.command == 'ping':
            for i in range(max(1, args.count)):
                if i:
                    await asyncio.sleep(args.interval)
                elapsed = await inspector.ping_node(args.node)
                print(f"xmlrpc reply from {args.node}\ttime={elapsed * 1000:.3f}ms")

        elif args.command == 'kill':
            for node in args.nodes:
                await inspector.kill_node(node)
                print(f"killed {node}")

    return 0


def serve(config_path: Optional[str]):
    from aiohttp import web
    from registry.main import init_app

    app, service = asyncio.run(init_app(config_path))
    logger.info(f"Serving topology of {service.config.registry_url}")
    web.run_app(app, host=service.config.server_host, port=service.config.server_port)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"busgraph: cannot load configuration: {e}", file=sys.stderr)
        return 2

    level = (args.log_level or config.log_level).upper()
    if not isinstance(logging.getLevelName(level), int):
        print(f"busgraph: unknown log level {level!r}", file=sys.stderr)
        return 2
    logging.basicConfig(level=level)

    if args.command == 'serve':
        serve(args.config)
        return 0

    try:
        return asyncio.run(run_command(args, config))
    except TopologyError as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
