import collections
import json
import logging
import os
import sys
import time

from . import sigint


FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
LOGDIR = './logs'


# Will be set when `createLogger()` is called the first time.
logger: logging.Logger = logging.getLogger('tiltbridge')


class Colorize:
    # https://stackoverflow.com/questions/4842424
    ANSI_RESET = '\033[0m'
    ANSI_MAP = {
        logging.INFO: '\033[1m',  # bold
        logging.WARNING: '\033[33m',  # yellow
        logging.ERROR: '\033[91m',  # bright red
        logging.FATAL: '\033[30;101m',  # black on bright red
    }

    def __init__(self, formatter):
        self.formatter = formatter

    def format(self, record):
        return ''.join([
            self.ANSI_MAP.get(record.levelno, self.ANSI_RESET),
            self.formatter.format(record),
            self.ANSI_RESET
        ])

    def __getattr__(self, name):
        return getattr(self.formatter, name)


def createLogger(name, stderr=True, logfile=True, colored=True, debug=False):  # noqa: N802, E501
    """Also updates module's `logger` to newly initialized logger."""
    global logger
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    formatter = logging.Formatter(FORMAT)
    if stderr:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(Colorize(formatter) if colored else formatter)
        handler.setLevel(logging.DEBUG)
        logger.addHandler(handler)
    if logfile:
        path = os.path.join(LOGDIR, name + '.log')
        os.makedirs(os.path.dirname(path), exist_ok=True)
        handler = logging.FileHandler(path)
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        logger.addHandler(handler)
    return logger


class NoLogger:
    def info(*args, **kw):
        pass

    def warning(*args, **kw):
        pass

    def debug(*args, **kw):
        pass

    def error(*args, **kw):
        pass


def deserialize(msg):
    """Parses UTF8 JSON `msg` (str or bytes)."""
    if isinstance(msg, bytes):
        msg = msg.decode('utf8')
    return json.loads(msg)


def update(d, updates):
    """Updates nested dict `d` in place.

    Keys in `updates` can be dotted paths ('osc.port'), nested dicts are
    merged recursively.
    """
    for key, value in updates.items():
        parts = key.split('.')
        target = d
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        name = parts[-1]
        if isinstance(value, dict) and isinstance(target.get(name), dict):
            update(target[name], value)
        else:
            target[name] = value
    return d


class StreamingStats:
    """Helper class to periodically show stats."""

    def __init__(self, logger, hz=0.01, delay0=1.0):
        self.logger = logger
        self.t0 = time.time() - 1 / hz + delay0
        self.total = {}
        self.totaltotal = {}
        self.n = {}
        self.nn = {}
        self.hz = hz
        self.info_getter = None

    def catch_ctrlc(self, shutdown_callback, info_getter=None):
        sigint.register_ctrlc_handler(self.dump)
        sigint.register_ctrlc2_handler(shutdown_callback)
        self.info_getter = info_getter

    def dump(self):
        """Dumps stats to logger.info()."""
        dt = max(time.time() - self.t0, 1e-6)
        for name in sorted(self.total):
            self.logger.info(
                'stats[%s] : %.1f fps %.1f kps (sum %.1fM) -- %s',
                name, self.n[name] / dt, self.total[name] / dt / 1e3,
                self.totaltotal[name] / 1e6,
                self.info_getter() if self.info_getter else '')

    def dump_reset(self):
        self.dump()
        self.t0 = time.time()
        for name in self.n:
            self.n[name] = self.total[name] = 0

    def summary(self):
        """Returns all-time message and byte counts per stat name."""
        return {
            name: dict(n=self.nn[name], bytes=self.totaltotal[name])
            for name in sorted(self.nn)
        }

    def __call__(self, name, s=None):
        """"Adds `s` to stats and calls dump() every 1/hz seconds."""
        if name not in self.n:
            self.n[name] = self.total[name] = self.totaltotal[name] = 0
            self.nn[name] = 0
        self.n[name] += 1
        self.nn[name] += 1
        if s is not None:
            self.total[name] += len(s)
            self.totaltotal[name] += len(s)
        dt = time.time() - self.t0
        if dt * self.hz >= 1:
            self.dump_reset()
            return True
        return False


class KeyCounter:
    """Counts occurences of keys in sliding window."""

    def __init__(self, secs=1, clock=time.time):
        self.secs = secs
        self.clock = clock
        self.counts = collections.defaultdict(int)
        self.events = collections.deque()

    def __call__(self, key):
        t = self.clock()
        self.counts[key] += 1
        self.events.append((t, key))
        while self.events and self.events[0][0] < t - self.secs:
            _, key = self.events.popleft()
            self.counts[key] -= 1
            if not self.counts[key]:
                del self.counts[key]
