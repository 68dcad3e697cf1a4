"""Runs the bridge.

Usage:

python -m tiltbridge.serve --port=8080 --osc_port=7000
python -m tiltbridge.serve --settings=bridge.json --debug
"""

import argparse
import sys

from . import server, settings, util


__version__ = '1.0.0'


def make_parser():
    parser = argparse.ArgumentParser(
        description='Relays phone orientation & touch events to OSC and '
        'visualization clients.')
    parser.add_argument('--settings', type=str, default=None,
                        help='JSON file with settings overrides.')
    parser.add_argument('--address', type=str, default=None,
                        help='Address to listen at.')
    parser.add_argument('--port', type=int, default=None,
                        help='Port phones connect to.')
    parser.add_argument('--max_connections', type=int, default=None,
                        help='Maximum number of concurrent phones.')
    parser.add_argument('--osc_address', type=str, default=None,
                        help='Address of the OSC receiver.')
    parser.add_argument('--osc_port', type=int, default=None,
                        help='Port of the OSC receiver.')
    parser.add_argument('--no_osc', action='store_true',
                        help='Do not send OSC.')
    parser.add_argument('--count_secs', type=float, default=None,
                        help='Interval for publishing the device count.')
    parser.add_argument('--stale_secs', type=float, default=None,
                        help='Remove devices silent for that long.')
    parser.add_argument('--no_logfile', action='store_true',
                        help='Only log to stderr.')
    parser.add_argument('--debug', action='store_true')
    parser.add_argument('--version', action='version',
                        version=f'tiltbridge {__version__}')
    return parser


def load_settings(args):
    overrides = {
        'server.address': args.address,
        'server.port': args.port,
        'server.max_connections': args.max_connections,
        'osc.address': args.osc_address,
        'osc.port': args.osc_port,
        'publisher.count_secs': args.count_secs,
        'registry.stale_secs': args.stale_secs,
    }
    if args.no_osc:
        overrides['osc.enabled'] = False
    if args.no_logfile:
        overrides['log.file'] = False
    if args.debug:
        overrides['log.debug'] = True
    return settings.load(args.settings, overrides)


def main(argv=None):
    args = make_parser().parse_args(argv)
    try:
        config = load_settings(args)
    except (OSError, ValueError) as e:
        print(f'could not load settings : {e}', file=sys.stderr)
        return 2
    logger = util.createLogger(
        config['log']['name'], logfile=config['log']['file'],
        debug=config['log']['debug'])
    logger.info('tiltbridge v%s starting', __version__)
    if not server.Server(config, logger).run():
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
