import asyncio
import json
import os
import socket
import tempfile
import unittest

from . import serve


class TestServe(unittest.TestCase):

    def test_flags_override_settings(self):
        args = serve.make_parser().parse_args([
            '--port=9001', '--osc_port=9002', '--no_osc', '--stale_secs=10',
            '--no_logfile'])
        config = serve.load_settings(args)
        self.assertEqual(config['server']['port'], 9001)
        self.assertEqual(config['osc']['port'], 9002)
        self.assertFalse(config['osc']['enabled'])
        self.assertEqual(config['registry']['stale_secs'], 10)
        self.assertFalse(config['log']['file'])
        self.assertFalse(config['log']['debug'])
        self.assertEqual(config['server']['address'], '0.0.0.0')

    def test_flags_win_over_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'bridge.json')
            with open(path, 'w') as f:
                json.dump({'server': {'port': 1234, 'max_connections': 2}}, f)
            args = serve.make_parser().parse_args([
                '--settings', path, '--port', '4321'])
            config = serve.load_settings(args)
        self.assertEqual(config['server']['port'], 4321)
        self.assertEqual(config['server']['max_connections'], 2)

    def test_bad_settings_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'bridge.json')
            with open(path, 'w') as f:
                f.write('[1, 2]')
            self.assertEqual(serve.main(['--settings', path]), 2)
            self.assertEqual(
                serve.main(['--settings', os.path.join(tmp, 'missing')]), 2)

    def test_port_in_use(self):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.addCleanup(blocker.close)
        blocker.bind(('127.0.0.1', 0))
        blocker.listen(1)
        self.addCleanup(asyncio.set_event_loop, None)
        port = blocker.getsockname()[1]
        self.assertEqual(serve.main([
            '--address=127.0.0.1', f'--port={port}', '--no_osc',
            '--no_logfile']), 1)
