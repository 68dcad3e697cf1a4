"""Timing statistics for hot code paths (e.g. event fan-out)."""

import time

import numpy as np  # type: ignore


def fmt_ns(ns):
    if ns > 10 * 1e9:
        return '{}s'.format(int(ns / 1e9))
    if ns > 10 * 1e6:
        return '{}m'.format(int(ns / 1e6))
    if ns > 10 * 1e3:
        return '{}µ'.format(int(ns / 1e3))
    return '{}n'.format(ns)


class Measurement:
    def __init__(self, times_ns):
        a = np.array(times_ns)
        self.n = len(a)
        self.mean_ns = int(a.mean())
        self.std_ns = int(a.std())
        self.max_ns = int(a.max())

    def mean_std(self):
        return '{}±{}'.format(
            fmt_ns(self.mean_ns), fmt_ns(self.std_ns))

    def as_dict(self):
        return dict(n=self.n, mean_ns=self.mean_ns, std_ns=self.std_ns,
                    max_ns=self.max_ns)

    def __str__(self):
        return 'Measurement({}, {})'.format(self.n, self.mean_std())

    def __repr__(self):
        return str(self)


class Timer:
    """Collect timing statistics about a repeated event."""

    def __init__(self, period_s=1, keep=10, clock=time.perf_counter_ns):
        self.period_s = period_s
        self.keep = keep
        self.clock = clock
        self.times_ns = []
        self.measurements = [None] * keep
        self.i = 0
        self.t0 = time.time()

    def add(self, ns):
        self.times_ns.append(ns)
        t = time.time()
        if t - self.t0 > self.period_s:
            self.flush()
            self.t0 = t

    def flush(self):
        if not self.times_ns:
            return
        self.measurements[self.i % self.keep] = Measurement(self.times_ns)
        self.i += 1
        self.times_ns = []

    def measurement(self, ago=0):
        i = self.i - 1 - ago
        if i < 0 or ago >= self.keep:
            return None
        return self.measurements[i % self.keep]

    def __str__(self):
        return 'Timer({} - {}, ...)'.format(
            self.i, ', '.join([
                self.measurement(i).mean_std()
                for i in range(min(self.i, self.keep))
            ]))

    def __repr__(self):
        return str(self)

    def measure(self, f):
        def wrapper(*k, **kw):
            started = self.clock()
            try:
                return f(*k, **kw)
            finally:
                self.add(self.clock() - started)
        return wrapper


timers = {}


def measure(name, period_s=1, keep=10):
    if name not in timers:
        timers[name] = Timer(period_s=period_s, keep=keep)
    return timers[name].measure


def stats():
    lt = time.localtime(time.time())
    s = '\n{}\n'.format(time.strftime('%Y-%m-%d %H:%M:%S', lt))
    for name in sorted(timers):
        s += '{:20s} - {}\n'.format(name, str(timers[name]))
    return s


def summary():
    """Latest measurement per timer, as JSON-friendly dicts."""
    ret = {}
    for name in sorted(timers):
        measurement = timers[name].measurement()
        ret[name] = measurement.as_dict() if measurement else None
    return ret
