import json
import unittest

from . import normalize, util
from .bridge import Bridge
from .publisher import Publisher
from .registry import DeviceRegistry, Result


def frame(**kw):
    return json.dumps(kw)


class TestBridge(unittest.TestCase):

    def setUp(self):
        logger = util.NoLogger()
        self.registry = DeviceRegistry(logger)
        self.publisher = Publisher(logger)
        self.published = []
        self.publisher.subscribe('recorder', self.published.append)
        self.bridge = Bridge(self.registry, self.publisher, logger)

    def test_scenario(self):
        connection = self.bridge.open('10.0.0.2')
        self.bridge.handle_frame(
            connection, frame(type='connect', deviceId='A', color=90))
        self.assertEqual(len(self.registry.snapshot()), 1)
        self.assertEqual(self.published, [normalize.DeviceConnected('A', 0.25)])

        self.bridge.handle_frame(connection, frame(
            type='orientation', deviceId='A', tiltX=0, tiltY=0, rotate=0))
        self.assertEqual(self.published[-1],
                         normalize.Orientation('A', 0.5, 0.5, 0))

        result = self.bridge.close(connection, code=1000)
        self.assertIs(result, Result.REMOVED)
        self.assertEqual(self.registry.snapshot(), [])
        self.assertEqual(
            self.published.count(normalize.DeviceDisconnected('A')), 1)
        self.assertEqual(self.bridge.connections, {})

    def test_touch(self):
        connection = self.bridge.open()
        self.bridge.handle_frame(
            connection, frame(type='connect', deviceId='A', color=0))
        self.bridge.handle_frame(connection, frame(
            type='touch', deviceId='A', x=0.3, y=0.6, touches=2))
        self.assertEqual(self.published[-1], normalize.Touch('A', 0.3, 0.6, 2))
        self.assertEqual(self.registry.get('A').touch, (0.3, 0.6, 2))

    def test_connection_ids_unique(self):
        ids = {self.bridge.open().id for _ in range(10)}
        self.assertEqual(len(ids), 10)
        self.assertEqual(len(self.bridge.connections), 10)

    def test_bad_frames_keep_connection(self):
        connection = self.bridge.open()
        self.assertIsNone(self.bridge.handle_frame(connection, '{oops'))
        self.assertIsNone(self.bridge.handle_frame(
            connection, frame(type='wave', deviceId='A')))
        self.assertIsNotNone(self.bridge.handle_frame(
            connection, frame(type='connect', deviceId='A', color=10)))
        stats = self.bridge.stats()
        self.assertEqual(stats['decoder'],
                         dict(decode_error=1, unknown_kind=1, decoded=1))
        self.assertEqual(stats['connections'], 1)
        self.assertEqual(len(self.published), 1)
        self.assertEqual(connection.frames, 3)

    def test_update_before_connect_dropped(self):
        connection = self.bridge.open()
        self.bridge.handle_frame(connection, frame(
            type='orientation', deviceId='A', tiltX=0, tiltY=0, rotate=0))
        self.assertEqual(self.published, [])
        self.assertEqual(self.registry.snapshot(), [])
        self.assertEqual(self.bridge.counts['not_found'], 1)
        # Never registered : closing does not touch the registry.
        self.assertIsNone(self.bridge.close(connection))
        self.assertEqual(self.published, [])

    def test_duplicate_registration(self):
        first = self.bridge.open()
        second = self.bridge.open()
        self.bridge.handle_frame(
            first, frame(type='connect', deviceId='A', color=0))
        self.bridge.handle_frame(
            second, frame(type='connect', deviceId='A', color=180))
        self.assertEqual(len(self.registry), 1)
        self.assertEqual(self.registry.get('A').color, 180)
        self.assertEqual(self.bridge.counts['replaced'], 1)

        # The replaced connection closing leaves the new session alone.
        self.assertIs(self.bridge.close(first), Result.NOT_FOUND)
        self.assertIn('A', self.registry)
        self.assertIs(self.bridge.close(second), Result.REMOVED)
        self.assertEqual(
            self.published.count(normalize.DeviceDisconnected('A')), 1)

    def test_reidentify(self):
        connection = self.bridge.open()
        self.bridge.handle_frame(
            connection, frame(type='connect', deviceId='A', color=0))
        self.bridge.handle_frame(
            connection, frame(type='connect', deviceId='B', color=0))
        self.assertEqual([d for d, _ in self.registry.snapshot()], ['B'])
        self.assertIn(normalize.DeviceDisconnected('A'), self.published)
        self.assertEqual(connection.device_id, 'B')

    def test_failing_consumer_does_not_reach_transport(self):
        def broken(event):
            raise OSError('unreachable')
        self.publisher.subscribe('broken', broken)
        connection = self.bridge.open()
        event = self.bridge.handle_frame(
            connection, frame(type='connect', deviceId='A', color=0))
        self.assertIsNotNone(event)
        self.assertEqual(len(self.published), 1)
        self.assertEqual(self.publisher.failures['broken'], 1)

    def test_should_log_throttles(self):
        results = [self.bridge.should_log('A') for _ in range(10)]
        self.assertEqual(results, [True] * 5 + [False] * 5)

    def test_oversized_number_leaves_session_untouched(self):
        connection = self.bridge.open()
        self.bridge.handle_frame(
            connection, frame(type='connect', deviceId='A', color=0))
        huge = ('{"type": "orientation", "deviceId": "A", "tiltX": 1' +
                '0' * 400 + ', "tiltY": 0, "rotate": 0}')
        self.assertIsNone(self.bridge.handle_frame(connection, huge))
        self.assertIsNone(self.registry.get('A').orientation)
        self.assertEqual(self.bridge.decoder.counts['decode_error'], 1)
        self.assertNotIn('error', self.bridge.counts)
        self.assertEqual(self.published, [normalize.DeviceConnected('A', 0.0)])
