"""Device sessions: which phones are live right now & what they last sent.

All mutations are serialized by a single lock with short critical sections
(no I/O while holding it). Callers only ever get copies of sessions.
"""

import copy
import enum
import threading
import time


class Result(enum.Enum):
    SESSION_CREATED = 'session_created'
    SESSION_REPLACED = 'session_replaced'
    OK = 'ok'
    NOT_FOUND = 'not_found'
    REMOVED = 'removed'


class DeviceSession:
    """Authoritative record for one connected device."""

    def __init__(self, device_id, color, connection_id, t):
        self.device_id = device_id
        self.color = color
        self.connection_id = connection_id
        self.connected = t
        self.last_seen = t
        self.messages = 1
        # (tilt_x, tilt_y, rotate) resp. (x, y, touches) once received.
        self.orientation = None
        self.touch = None

    def seen(self, t):
        self.last_seen = t
        self.messages += 1

    def copy(self):
        return copy.copy(self)

    def as_dict(self):
        return dict(
            deviceId=self.device_id,
            color=self.color,
            connectionId=self.connection_id,
            connected=self.connected,
            lastSeen=self.last_seen,
            messages=self.messages,
            orientation=self.orientation,
            touch=self.touch,
        )

    def __repr__(self):
        return 'DeviceSession({}, color={}, conn={}, messages={})'.format(
            self.device_id, self.color, self.connection_id, self.messages)


class DeviceRegistry:

    def __init__(self, logger, clock=time.time):
        self.logger = logger
        self.clock = clock
        self._lock = threading.Lock()
        self._sessions = {}

    def register(self, connection_id, device_id, color):
        """Inserts a session, silently replacing any session with same id."""
        with self._lock:
            old = self._sessions.get(device_id)
            self._sessions[device_id] = DeviceSession(
                device_id, color, connection_id, self.clock())
        if old is None:
            return Result.SESSION_CREATED
        self.logger.warning(
            'device %s re-registered by %s, replacing session of %s',
            device_id, connection_id, old.connection_id)
        return Result.SESSION_REPLACED

    def update_orientation(self, device_id, tilt_x, tilt_y, rotate):
        with self._lock:
            session = self._sessions.get(device_id)
            if session is not None:
                session.orientation = (tilt_x, tilt_y, rotate)
                session.seen(self.clock())
        return self._updated(session, device_id, 'orientation')

    def update_touch(self, device_id, x, y, touches):
        with self._lock:
            session = self._sessions.get(device_id)
            if session is not None:
                session.touch = (x, y, touches)
                session.seen(self.clock())
        return self._updated(session, device_id, 'touch')

    def _updated(self, session, device_id, what):
        if session is None:
            self.logger.debug('%s for unknown device %s', what, device_id)
            return Result.NOT_FOUND
        return Result.OK

    def unregister(self, device_id, connection_id=None):
        """Removes the session of `device_id`.

        If `connection_id` is specified then the session is only removed if it
        is still owned by that connection (i.e. was not replaced meanwhile).
        """
        with self._lock:
            session = self._sessions.get(device_id)
            if session is None or (
                    connection_id is not None and
                    session.connection_id != connection_id):
                session = None
            else:
                del self._sessions[device_id]
        if session is None:
            self.logger.debug(
                'unregister %s (%s) : not found', device_id, connection_id)
            return Result.NOT_FOUND
        return Result.REMOVED

    def expire(self, max_age, now=None):
        """Removes sessions not seen for `max_age` secs, returns their ids."""
        if now is None:
            now = self.clock()
        with self._lock:
            expired = sorted(
                device_id for device_id, session in self._sessions.items()
                if now - session.last_seen > max_age)
            for device_id in expired:
                del self._sessions[device_id]
        for device_id in expired:
            self.logger.info('removing inactive device %s', device_id)
        return expired

    def get(self, device_id):
        with self._lock:
            session = self._sessions.get(device_id)
            return session.copy() if session is not None else None

    def snapshot(self):
        """Point-in-time list of (device_id, session copy), sorted by id."""
        with self._lock:
            return [
                (device_id, self._sessions[device_id].copy())
                for device_id in sorted(self._sessions)
            ]

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def __contains__(self, device_id):
        with self._lock:
            return device_id in self._sessions
