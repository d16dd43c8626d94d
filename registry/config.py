"""
Configuration loading.

Settings come from a YAML file when one is given, otherwise from
BUSGRAPH_* environment variables. Missing keys fall back to defaults.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = 'http://localhost:11311/'


@dataclass
class InspectorConfig:
    registry_url: str = DEFAULT_REGISTRY_URL
    caller_id: str = '/busgraph'
    request_timeout: float = 10.0
    lookup_concurrency: int = 8
    server_host: str = '0.0.0.0'
    server_port: int = 8758
    log_level: str = 'INFO'


def _from_file(config_path: str) -> InspectorConfig:
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    section = config.get('inspector', {})
    registry = section.get('registry', {})
    timeouts = section.get('timeouts', {})
    server = section.get('server', {})
    defaults = InspectorConfig()

    return InspectorConfig(
        registry_url=registry.get('url', defaults.registry_url),
        caller_id=section.get('caller_id', defaults.caller_id),
        request_timeout=float(timeouts.get('request_timeout', defaults.request_timeout)),
        lookup_concurrency=int(section.get('lookup_concurrency', defaults.lookup_concurrency)),
        server_host=server.get('host', defaults.server_host),
        server_port=int(server.get('port', defaults.server_port)),
        log_level=section.get('log_level', defaults.log_level),
    )


def _from_env() -> InspectorConfig:
    registry_url = (os.getenv('BUSGRAPH_REGISTRY_URL')
                    or os.getenv('ROS_MASTER_URI')
                    or DEFAULT_REGISTRY_URL)

    return InspectorConfig(
        registry_url=registry_url,
        caller_id=os.getenv('BUSGRAPH_CALLER_ID', '/busgraph'),
        request_timeout=float(os.getenv('BUSGRAPH_REQUEST_TIMEOUT', '10')),
        lookup_concurrency=int(os.getenv('BUSGRAPH_LOOKUP_CONCURRENCY', '8')),
        server_host=os.getenv('BUSGRAPH_SERVER_HOST', '0.0.0.0'),
        server_port=int(os.getenv('BUSGRAPH_SERVER_PORT', '8758')),
        log_level=os.getenv('BUSGRAPH_LOG_LEVEL', 'INFO'),
    )


def load_config(config_path: Optional[str] = None) -> InspectorConfig:
    """Load configuration from file or environment variables"""
    if config_path:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")
        logger.info(f"Loading configuration from {config_path}")
        return _from_file(config_path)
    return _from_env()
