"""Glue between connections and the registry/publisher.

Transport agnostic : the server calls `open()` for every new connection,
`handle_frame()` for every frame received in order, and `close()` exactly
once when the connection ends. No exception raised while handling a frame
ever reaches the transport.
"""

import collections
import itertools
import traceback

from . import events, normalize, util
from .registry import Result


# Per device log lines per second before going quiet.
LOG_PER_SEC = 5


class Connection:
    """Per connection state, owned by the connection's handler."""

    def __init__(self, connection_id, peer=None):
        self.id = connection_id
        self.peer = peer
        # Set by the first `connect` event.
        self.device_id = None
        self.frames = 0

    def __repr__(self):
        return 'Connection({}, peer={}, device={})'.format(
            self.id, self.peer, self.device_id)


class Bridge:

    def __init__(self, registry, publisher, logger, decoder=None):
        self.registry = registry
        self.publisher = publisher
        self.logger = logger
        self.decoder = decoder or events.Decoder(logger)
        self.connections = {}
        self.counts = collections.Counter()
        self.key_counter = util.KeyCounter()
        self._ids = itertools.count(1)

    def open(self, peer=None):
        connection = Connection('conn-{}'.format(next(self._ids)), peer)
        self.connections[connection.id] = connection
        self.logger.debug('%s opened from %s', connection.id, peer or '?')
        return connection

    def handle_frame(self, connection, frame):
        """Decodes and applies a single frame, returns the decoded event or
        None if it was dropped."""
        connection.frames += 1
        event = self.decoder.try_decode(frame, source=connection.id)
        if event is None:
            return None
        try:
            self.handle_event(connection, event)
        except Exception as e:
            self.counts['error'] += 1
            self.logger.error('%s : error handling %r : %s',
                              connection.id, event, e)
            self.logger.warning(traceback.format_exc())
        return event

    def handle_event(self, connection, event):
        if isinstance(event, events.ConnectEvent):
            self.on_connect(connection, event)
        elif isinstance(event, events.OrientationEvent):
            result = self.registry.update_orientation(
                event.device_id, event.tilt_x, event.tilt_y, event.rotate)
            if self.updated(result, connection, event):
                if self.should_log(event.device_id):
                    self.logger.debug('%s tilt: X=%s° Y=%s°', event.device_id,
                                      event.tilt_x, event.tilt_y)
                self.publisher.publish(normalize.orientation(
                    event.device_id, event.tilt_x, event.tilt_y, event.rotate))
        elif isinstance(event, events.TouchEvent):
            result = self.registry.update_touch(
                event.device_id, event.x, event.y, event.touches)
            if self.updated(result, connection, event):
                if event.touches and self.should_log(event.device_id):
                    self.logger.debug('%s touch: %d%%, %d%%', event.device_id,
                                      round(event.x * 100),
                                      round(event.y * 100))
                self.publisher.publish(normalize.touch(
                    event.device_id, event.x, event.y, event.touches))

    def on_connect(self, connection, event):
        previous = connection.device_id
        if previous is not None and previous != event.device_id:
            # Connection changed identity : its old session is gone.
            self.counts['reidentified'] += 1
            self.logger.info('%s : device %s now identifies as %s',
                             connection.id, previous, event.device_id)
            self.remove(connection, previous)
        result = self.registry.register(
            connection.id, event.device_id, event.color)
        if result is Result.SESSION_REPLACED:
            self.counts['replaced'] += 1
        connection.device_id = event.device_id
        self.logger.info('Device connected: %s (Color: %s)',
                         event.device_id, event.color)
        self.publisher.publish(normalize.connected(event.device_id, event.color))

    def updated(self, result, connection, event):
        if result is Result.OK:
            return True
        self.counts['not_found'] += 1
        if self.should_log(event.device_id):
            self.logger.info('%s : dropping %s for unregistered device %s',
                             connection.id, type(event).__name__,
                             event.device_id)
        return False

    def should_log(self, device_id):
        self.key_counter(device_id)
        n = self.key_counter.counts[device_id]
        if n == LOG_PER_SEC + 1:
            self.logger.debug('Temporarily ignoring too frequent: %s', device_id)
        return n <= LOG_PER_SEC

    def remove(self, connection, device_id):
        result = self.registry.unregister(device_id, connection.id)
        if result is Result.REMOVED:
            self.logger.info('Device disconnected: %s', device_id)
            self.publisher.publish(normalize.disconnected(device_id))
        return result

    def close(self, connection, code=None, reason=None):
        """Called once when `connection` ends, returns the unregister result
        (None if the connection never sent `connect`)."""
        self.connections.pop(connection.id, None)
        self.logger.debug('%s closed (code=%s reason=%s) after %d frames',
                          connection.id, code, reason, connection.frames)
        if connection.device_id is None:
            return None
        try:
            return self.remove(connection, connection.device_id)
        except Exception as e:
            self.logger.error('%s : error closing : %s', connection.id, e)
            self.logger.warning(traceback.format_exc())
            return None

    def stats(self):
        return dict(
            connections=len(self.connections),
            decoder=dict(self.decoder.counts),
            bridge=dict(self.counts),
        )
