"""Default settings & loading of overrides.

Settings are a nested dict. Overrides are read from a JSON file and/or given
as dotted keys (e.g. `{'osc.port': 9000}`), see `util.update()`.
"""

import copy

from . import util


DEFAULTS = {
    'server': {
        'address': '0.0.0.0',
        'port': 8080,
        'device_path': '/',
        'viz_path': '/viz',
        'status_path': '/status',
        # Practical cap on concurrently connected phones.
        'max_connections': 256,
        'max_msg_size': 64 * 1024,
        # Seconds between websocket pings, detects dead peers.
        'heartbeat': 10.0,
    },
    'osc': {
        'enabled': True,
        'address': '127.0.0.1',
        # TouchDesigner default.
        'port': 7000,
    },
    'publisher': {
        'count_secs': 5.0,
        # Per visualization client, messages are dropped when full.
        'queue_size': 256,
    },
    'registry': {
        # Remove devices silent for that long (0 disables the sweep).
        'stale_secs': 0,
    },
    'log': {
        'name': 'tiltbridge',
        'file': True,
        'debug': False,
    },
}


def load(path=None, overrides=None):
    """Returns a fresh settings dict with `path` and `overrides` applied."""
    settings = copy.deepcopy(DEFAULTS)
    if path:
        with open(path) as f:
            from_file = util.deserialize(f.read())
        if not isinstance(from_file, dict):
            raise ValueError(f'Settings file {path} must contain an object')
        util.update(settings, from_file)
    if overrides:
        util.update(settings, {
            key: value for key, value in overrides.items()
            if value is not None
        })
    return settings
