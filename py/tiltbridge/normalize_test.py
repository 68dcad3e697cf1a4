import unittest

from . import normalize


class TestFormulas(unittest.TestCase):

    def test_hue_fraction(self):
        self.assertEqual(normalize.hue_fraction(0), 0.0)
        self.assertEqual(normalize.hue_fraction(360), 0.0)
        self.assertEqual(normalize.hue_fraction(90), 0.25)
        self.assertAlmostEqual(normalize.hue_fraction(-30), 330 / 360)
        self.assertAlmostEqual(normalize.hue_fraction(720 + 180), 0.5)

    def test_hue_fraction_stays_below_one(self):
        for color in (-1e-20, -1e-12, 359.9999999999, 1e9 + 0.5):
            fraction = normalize.hue_fraction(color)
            self.assertGreaterEqual(fraction, 0)
            self.assertLess(fraction, 1)

    def test_orientation_fraction(self):
        self.assertEqual(
            normalize.orientation_fraction(-180, -90, 0), (0, 0, 0))
        self.assertEqual(
            normalize.orientation_fraction(180, 90, 360), (1, 1, 1))
        self.assertEqual(
            normalize.orientation_fraction(0, 0, 0), (0.5, 0.5, 0))

    def test_orientation_not_clamped(self):
        x, y, rotate = normalize.orientation_fraction(360, -180, 720)
        self.assertEqual((x, y, rotate), (1.5, -0.5, 2.0))

    def test_touch_unchanged(self):
        self.assertEqual(normalize.touch_fraction(0.2, 0.9, 3), (0.2, 0.9, 3))


class TestEvents(unittest.TestCase):

    def test_builders(self):
        self.assertEqual(normalize.connected('A', 90),
                         normalize.DeviceConnected('A', 0.25))
        self.assertEqual(normalize.orientation('A', 0, 0, 0),
                         normalize.Orientation('A', 0.5, 0.5, 0))
        self.assertEqual(normalize.touch('A', 0.1, 0.2, 2),
                         normalize.Touch('A', 0.1, 0.2, 2))
        self.assertEqual(normalize.device_count(3).count, 3)

    def test_to_dict(self):
        self.assertEqual(normalize.connected('A', 90).to_dict(),
                         dict(kind='connected', deviceId='A', color=0.25))
        self.assertEqual(normalize.disconnected('A').to_dict(),
                         dict(kind='disconnected', deviceId='A'))
        self.assertEqual(
            normalize.orientation('A', 0, 0, 0).to_dict(),
            dict(kind='orientation', deviceId='A', x=0.5, y=0.5, rotate=0))
        self.assertEqual(
            normalize.touch('A', 0.1, 0.2, 1).to_dict(),
            dict(kind='touch', deviceId='A', x=0.1, y=0.2, touches=1))
        self.assertEqual(normalize.device_count(0).to_dict(),
                         dict(kind='count', count=0))

    def test_immutable(self):
        event = normalize.connected('A', 90)
        with self.assertRaises(AttributeError):
            event.device_id = 'B'

    def test_kinds(self):
        self.assertEqual(
            normalize.KINDS,
            ('connected', 'disconnected', 'orientation', 'touch', 'count'))
