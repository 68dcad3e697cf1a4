"""Decodes raw phone frames into typed inbound events.

Every frame is a JSON object with a `type` field:

    {"type": "connect", "deviceId": "phone-x1", "color": 210}
    {"type": "orientation", "deviceId": "phone-x1",
     "tiltX": 12.5, "tiltY": -40, "rotate": 270}
    {"type": "touch", "deviceId": "phone-x1", "x": 0.3, "y": 0.8, "touches": 1}

Values are not range checked here, normalization takes care of that.
"""

import collections
import json
import math


CONNECT = 'connect'
ORIENTATION = 'orientation'
TOUCH = 'touch'
KINDS = (CONNECT, ORIENTATION, TOUCH)


class DecodeError(ValueError):
    """Frame is not a well formed event."""


ConnectEvent = collections.namedtuple(
    'ConnectEvent', ('device_id', 'color'))
OrientationEvent = collections.namedtuple(
    'OrientationEvent', ('device_id', 'tilt_x', 'tilt_y', 'rotate'))
TouchEvent = collections.namedtuple(
    'TouchEvent', ('device_id', 'x', 'y', 'touches'))
# Structurally valid frame with a `type` we do not handle.
UnknownEvent = collections.namedtuple(
    'UnknownEvent', ('kind', 'payload'))


def _device_id(payload):
    device_id = payload.get('deviceId')
    if not isinstance(device_id, str) or not device_id:
        raise DecodeError('deviceId must be a non-empty string')
    return device_id


def _number(payload, name):
    value = payload.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f'{name} must be a number, got {value!r}')
    try:
        finite = math.isfinite(value)
    except OverflowError:
        # Integer too large for a float.
        finite = False
    if not finite:
        raise DecodeError(f'{name} must be finite, got {value!r:.20}')
    return value


def _count(payload, name):
    value = _number(payload, name)
    if isinstance(value, float):
        if not value.is_integer():
            raise DecodeError(f'{name} must be an integer, got {value!r}')
        value = int(value)
    if value < 0:
        raise DecodeError(f'{name} must be non-negative, got {value!r}')
    return value


def parse(frame):
    """Parses a single frame, raises `DecodeError` if malformed.

    Returns one of `ConnectEvent`, `OrientationEvent`, `TouchEvent` or
    `UnknownEvent`.
    """
    if isinstance(frame, (bytes, bytearray)):
        try:
            frame = frame.decode('utf8')
        except UnicodeDecodeError as e:
            raise DecodeError(f'not UTF8 : {e}') from e
    try:
        payload = json.loads(frame)
    except (TypeError, ValueError) as e:
        raise DecodeError(f'not JSON : {e}') from e
    if not isinstance(payload, dict):
        raise DecodeError(f'expected object, got {type(payload).__name__}')
    kind = payload.get('type')
    if not isinstance(kind, str):
        raise DecodeError(f'type must be a string, got {kind!r}')

    if kind == CONNECT:
        return ConnectEvent(_device_id(payload), _number(payload, 'color'))
    if kind == ORIENTATION:
        return OrientationEvent(
            _device_id(payload),
            _number(payload, 'tiltX'),
            _number(payload, 'tiltY'),
            _number(payload, 'rotate'))
    if kind == TOUCH:
        return TouchEvent(
            _device_id(payload),
            _number(payload, 'x'),
            _number(payload, 'y'),
            _count(payload, 'touches'))
    return UnknownEvent(kind, payload)


class Decoder:
    """Parses frames and keeps counts of what went through."""

    def __init__(self, logger):
        self.logger = logger
        self.counts = collections.Counter()

    def decode(self, frame):
        """Like `parse()` but counting; still raises `DecodeError`."""
        try:
            event = parse(frame)
        except DecodeError:
            self.counts['decode_error'] += 1
            raise
        if isinstance(event, UnknownEvent):
            self.counts['unknown_kind'] += 1
        else:
            self.counts['decoded'] += 1
        return event

    def try_decode(self, frame, source='?'):
        """Returns the decoded event, or None if the frame is malformed or of
        an unknown kind (both are logged)."""
        try:
            event = self.decode(frame)
        except DecodeError as e:
            self.logger.warning('%s : dropping malformed frame : %s', source, e)
            return None
        if isinstance(event, UnknownEvent):
            self.logger.info(
                '%s : ignoring unknown event type %r', source, event.kind)
            return None
        return event
