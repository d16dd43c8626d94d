"""Test configuration and fixtures for busgraph tests."""

import os
import tempfile
import xmlrpc.client
from unittest.mock import AsyncMock

import pytest
import yaml
from aioresponses import CallbackResult
from prometheus_client import REGISTRY

from registry.errors import UnknownNode, UnknownService
from registry.models import SystemState


REGISTRY_URL = 'http://master:11311/'

NODE_URLS = {
    '/talker': 'http://10.0.0.1:40001/',
    '/listener': 'http://10.0.0.1:40002/',
    '/lidar': 'http://10.0.0.2:40003/',
    '/mapper': 'http://10.0.0.2:40005/',
    '/rosout': 'http://10.0.0.3:40004/',
    '/map_server': 'http://10.0.0.4:40006/',
}

SERVICE_URLS = {
    '/rosout/get_loggers': 'rosrpc://10.0.0.3:50001',
    '/talker/set_logger_level': 'rosrpc://10.0.0.1:50002',
    '/static_map': 'rosrpc://10.0.0.4:50003',
}


@pytest.fixture(autouse=True)
def clear_prometheus_registry():
    """Clear Prometheus registry before each test."""
    collectors = list(REGISTRY._collector_to_names.keys())
    for collector in collectors:
        try:
            REGISTRY.unregister(collector)
        except KeyError:
            pass  # Collector was already unregistered


@pytest.fixture
def system_state():
    """A small network: /scan has a publisher but no registered type."""
    return SystemState(
        published=(
            ('/chatter', ('/talker',)),
            ('/scan', ('/lidar',)),
            ('/rosout', ('/talker', '/listener', '/lidar', '/mapper')),
        ),
        subscribed=(
            ('/chatter', ('/listener',)),
            ('/scan', ('/mapper',)),
            ('/rosout', ('/rosout',)),
        ),
        services=(
            ('/rosout/get_loggers', ('/rosout',)),
            ('/talker/set_logger_level', ('/talker',)),
            ('/static_map', ('/map_server',)),
        ),
    )


@pytest.fixture
def topic_types():
    return [
        ('/chatter', 'std_msgs/String'),
        ('/rosout', 'rosgraph_msgs/Log'),
        ('/unused', 'std_msgs/Empty'),
    ]


@pytest.fixture
def fake_registry(system_state, topic_types):
    """Registry client double answering from NODE_URLS and SERVICE_URLS."""
    registry = AsyncMock()
    registry.get_system_state = AsyncMock(return_value=system_state)
    registry.get_topic_types = AsyncMock(return_value=topic_types)

    async def lookup_node(name):
        if name not in NODE_URLS:
            raise UnknownNode(name)
        return NODE_URLS[name]

    async def lookup_service(name):
        if name not in SERVICE_URLS:
            raise UnknownService(name)
        return SERVICE_URLS[name]

    registry.lookup_node = AsyncMock(side_effect=lookup_node)
    registry.lookup_service = AsyncMock(side_effect=lookup_service)
    return registry


def xmlrpc_response(code, message, value):
    """Body of an XML-RPC reply wrapped in the [code, message, value] envelope."""
    return xmlrpc.client.dumps(((code, message, value),), methodresponse=True, allow_none=True)


def xmlrpc_fault(code, message):
    return xmlrpc.client.dumps(xmlrpc.client.Fault(code, message), methodresponse=True)


def xmlrpc_server(handlers, calls=None):
    """aioresponses callback dispatching XML-RPC requests to plain functions.

    Each handler receives the call parameters (caller id first) and returns
    the [code, message, value] envelope.
    """
    def callback(url, **kwargs):
        params, method = xmlrpc.client.loads(kwargs['data'])
        if calls is not None:
            calls.append((method, params))
        if method not in handlers:
            return CallbackResult(status=200, body=xmlrpc_fault(1, f'unknown method {method}'))
        code, message, value = handlers[method](*params)
        return CallbackResult(status=200, body=xmlrpc_response(code, message, value))

    return callback


@pytest.fixture
def registry_handlers():
    """XML-RPC handlers of a registry serving the same network as fake_registry."""
    def lookup(table):
        def handler(caller_id, name):
            if name not in table:
                return -1, f'unknown {name}', ''
            return 1, name, table[name]
        return handler

    return {
        'getSystemState': lambda caller_id: (1, 'current system state', [
            [['/chatter', ['/talker']], ['/rosout', ['/talker', '/listener']]],
            [['/chatter', ['/listener']], ['/rosout', ['/rosout']]],
            [['/rosout/get_loggers', ['/rosout']]],
        ]),
        'getTopicTypes': lambda caller_id: (1, 'current topics', [
            ['/chatter', 'std_msgs/String'], ['/rosout', 'rosgraph_msgs/Log'],
        ]),
        'lookupNode': lookup(NODE_URLS),
        'lookupService': lookup(SERVICE_URLS),
    }


@pytest.fixture
def sample_inspector_config():
    """Sample inspector configuration for testing."""
    return {
        'inspector': {
            'registry': {
                'url': 'http://test-master:11311/'
            },
            'caller_id': '/test_inspector',
            'lookup_concurrency': 4,
            'log_level': 'DEBUG',
            'timeouts': {
                'request_timeout': 3
            },
            'server': {
                'host': '127.0.0.1',
                'port': 9000
            }
        }
    }


@pytest.fixture
def temp_config_file(sample_inspector_config):
    """Create a temporary configuration file."""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(sample_inspector_config, f)
        temp_path = f.name

    yield temp_path

    os.unlink(temp_path)


@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    env_vars = {
        'BUSGRAPH_REGISTRY_URL': 'http://test-env-master:11311/',
        'BUSGRAPH_CALLER_ID': '/env_inspector',
        'BUSGRAPH_REQUEST_TIMEOUT': '5',
        'BUSGRAPH_LOOKUP_CONCURRENCY': '2',
        'BUSGRAPH_SERVER_HOST': '127.0.0.1',
        'BUSGRAPH_SERVER_PORT': '9100',
        'BUSGRAPH_LOG_LEVEL': 'WARNING',
    }

    original_values = {}
    for key, value in env_vars.items():
        original_values[key] = os.environ.get(key)
        os.environ[key] = value

    yield env_vars

    for key, value in original_values.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


# Well-formed XML whose envelope holds an integer that is not a number
MISTYPED_INT_BODY = (
    "<?xml version='1.0'?><methodResponse><params><param><value><array><data>"
    "<value><int>1</int></value><value><string>ok</string></value>"
    "<value><int>abc</int></value>"
    "</data></array></value></param></params></methodResponse>"
)

NON_UTF8_BODY = b'\xff\xfe<methodResponse>'
