"""Maps raw sensor values to [0, 1] and builds outbound events.

The formulas are a contract with every consumer (visuals and OSC receivers
alike), changing them is a breaking change:

    hue_fraction(color)       = (color mod 360) / 360
    orientation_fraction(...) = ((tiltX + 180) / 360,
                                 (tiltY + 90) / 180,
                                 rotate / 360)

Orientation values outside the documented sensor ranges are NOT clamped and
pass through as values outside [0, 1]. Touch values are already fractions
and pass through unchanged.
"""

import collections


def hue_fraction(color):
    """Wraps any hue (negative or > 360) into [0, 1)."""
    fraction = (color % 360) / 360
    # Tiny negative hues round up to exactly 360 in float arithmetic.
    if fraction >= 1:
        return 0.0
    return float(fraction)


def orientation_fraction(tilt_x, tilt_y, rotate):
    return (
        (tilt_x + 180) / 360,
        (tilt_y + 90) / 180,
        rotate / 360,
    )


def touch_fraction(x, y, touches):
    return x, y, touches


class DeviceConnected(collections.namedtuple(
        'DeviceConnected', ('device_id', 'color_fraction'))):
    kind = 'connected'

    def to_dict(self):
        return dict(kind=self.kind, deviceId=self.device_id,
                    color=self.color_fraction)


class DeviceDisconnected(collections.namedtuple(
        'DeviceDisconnected', ('device_id',))):
    kind = 'disconnected'

    def to_dict(self):
        return dict(kind=self.kind, deviceId=self.device_id)


class Orientation(collections.namedtuple(
        'Orientation', ('device_id', 'x', 'y', 'rotate'))):
    kind = 'orientation'

    def to_dict(self):
        return dict(kind=self.kind, deviceId=self.device_id,
                    x=self.x, y=self.y, rotate=self.rotate)


class Touch(collections.namedtuple(
        'Touch', ('device_id', 'x', 'y', 'touches'))):
    kind = 'touch'

    def to_dict(self):
        return dict(kind=self.kind, deviceId=self.device_id,
                    x=self.x, y=self.y, touches=self.touches)


class DeviceCount(collections.namedtuple('DeviceCount', ('count',))):
    kind = 'count'

    def to_dict(self):
        return dict(kind=self.kind, count=self.count)


KINDS = tuple(cls.kind for cls in (
    DeviceConnected, DeviceDisconnected, Orientation, Touch, DeviceCount))


def connected(device_id, color):
    return DeviceConnected(device_id, hue_fraction(color))


def disconnected(device_id):
    return DeviceDisconnected(device_id)


def orientation(device_id, tilt_x, tilt_y, rotate):
    return Orientation(device_id, *orientation_fraction(tilt_x, tilt_y, rotate))


def touch(device_id, x, y, touches):
    return Touch(device_id, *touch_fraction(x, y, touches))


def device_count(count):
    return DeviceCount(count)
