"""Fans out normalized events to all registered consumers.

Consumers are named callables taking a single event. Coroutine functions are
scheduled as tasks on the running loop. Delivery is fire & forget : a
consumer that raises (or whose task fails) is logged and counted, other
consumers are not affected and nothing is raised to the publishing code.
"""

import asyncio
import collections
import inspect
import time
import traceback

from . import normalize, perf


class Publisher:

    def __init__(self, logger):
        self.logger = logger
        self.consumers = collections.OrderedDict()
        self.total = 0
        self.counts = collections.Counter()
        self.failures = collections.Counter()
        self.tasks = set()

    def subscribe(self, name, callback):
        if name in self.consumers:
            self.logger.warning('replacing consumer %s', name)
        self.consumers[name] = callback

    def unsubscribe(self, name):
        return self.consumers.pop(name, None) is not None

    def failed(self, name, event, e):
        self.failures[name] += 1
        self.logger.warning(
            'consumer %s failed on %s : %r', name, event.kind, e)
        self.logger.debug(traceback.format_exc())

    def _task_done(self, name, event, task):
        self.tasks.discard(task)
        if task.cancelled():
            return
        e = task.exception()
        if e is not None:
            self.failures[name] += 1
            self.logger.warning(
                'consumer %s failed on %s : %r', name, event.kind, e)

    def deliver(self, name, callback, event):
        if inspect.iscoroutinefunction(callback):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as e:
                self.failed(name, event, e)
                return
            task = loop.create_task(callback(event))
            self.tasks.add(task)
            task.add_done_callback(
                lambda task: self._task_done(name, event, task))
            return
        try:
            callback(event)
        except Exception as e:
            self.failed(name, event, e)

    @perf.measure('publish')
    def publish(self, event):
        self.total += 1
        self.counts[event.kind] += 1
        for name, callback in list(self.consumers.items()):
            self.deliver(name, callback, event)

    def stats(self):
        return dict(
            total=self.total,
            counts=dict(self.counts),
            failures=dict(self.failures),
            consumers=list(self.consumers),
        )

    async def count_loop(self, registry, interval, stale_secs=0):
        """Publishes the device count every `interval` seconds.

        If `stale_secs` is set then devices not seen for that long are removed
        from the `registry` (publishing a disconnect for each).
        """
        t0 = time.time()
        while True:
            dt = interval - (time.time() - t0)
            await asyncio.sleep(max(0, dt))
            t0 = time.time()
            try:
                if stale_secs:
                    for device_id in registry.expire(stale_secs):
                        self.publish(normalize.disconnected(device_id))
                count = len(registry)
                self.publish(normalize.device_count(count))
                if count:
                    self.logger.info('active devices: %d', count)
            except Exception as e:
                self.logger.error('count_loop ERROR: %r', e)
                self.logger.warning(traceback.format_exc())
