"""Re-emits normalized events as OSC messages over UDP.

Address space (all values normalized, see `normalize`):

    /device/connected      deviceId colorFraction
    /device/disconnected   deviceId
    /<deviceId>/tiltX      x
    /<deviceId>/tiltY      y
    /<deviceId>/rotate     rotate
    /<deviceId>/orientation x y rotate
    /<deviceId>/touchX     x
    /<deviceId>/touchY     y
    /<deviceId>/touches    touches
    /<deviceId>/touch      x y touches
    /devices/count         n
"""

from pythonosc import osc_message_builder, udp_client

from . import normalize


def messages(event):
    """Returns list of (address, [values]) for a normalized `event`."""
    if isinstance(event, normalize.Orientation):
        prefix = f'/{event.device_id}'
        return [
            (f'{prefix}/tiltX', [event.x]),
            (f'{prefix}/tiltY', [event.y]),
            (f'{prefix}/rotate', [event.rotate]),
            (f'{prefix}/orientation', [event.x, event.y, event.rotate]),
        ]
    if isinstance(event, normalize.Touch):
        prefix = f'/{event.device_id}'
        return [
            (f'{prefix}/touchX', [event.x]),
            (f'{prefix}/touchY', [event.y]),
            (f'{prefix}/touches', [event.touches]),
            (f'{prefix}/touch', [event.x, event.y, event.touches]),
        ]
    if isinstance(event, normalize.DeviceConnected):
        return [('/device/connected', [event.device_id, event.color_fraction])]
    if isinstance(event, normalize.DeviceDisconnected):
        return [('/device/disconnected', [event.device_id])]
    if isinstance(event, normalize.DeviceCount):
        return [('/devices/count', [event.count])]
    raise TypeError(f'Cannot map {event!r} to OSC')


class OscSink:
    """Publisher consumer sending every event to an OSC receiver.

    Sending is best effort : socket errors and values OSC cannot encode (e.g.
    integers beyond 64 bits) are logged & counted but never raised, so a
    missing receiver does not affect the other consumers.
    """

    def __init__(self, address, port, logger, client=None):
        self.address = address
        self.port = port
        self.logger = logger
        self.client = client or udp_client.SimpleUDPClient(address, port)
        self.sent = 0
        self.errors = 0

    def send(self, address, *values):
        try:
            self.client.send_message(address, list(values))
            self.sent += 1
        except (OSError, osc_message_builder.BuildError) as e:
            self.errors += 1
            # First error and then every 100th, receivers are often offline.
            if self.errors % 100 == 1:
                self.logger.warning(
                    'could not send OSC to %s:%d (%d errors) : %s',
                    self.address, self.port, self.errors, e)

    def __call__(self, event):
        for address, values in messages(event):
            self.send(address, *values)

    def stats(self):
        return dict(target=f'{self.address}:{self.port}',
                    sent=self.sent, errors=self.errors)
