"""Follows a bridge's visualization stream, reconnecting when it drops.

The client is a small state machine:

    DISCONNECTED --(backoff wait)--> CONNECTING --(open)--> CONNECTED
         ^                               |                      |
         +-------(error / timeout)-------+------(closed)--------+

Waits between attempts follow `WAITS_SECS` and start over once a connection
stayed up for more than `WAITS_RESET_SECS`.

Usage:

python -m tiltbridge.client --url=ws://127.0.0.1:8080/viz
"""

import argparse
import asyncio
import enum
import time

import aiohttp

from . import util


WAITS_SECS = (2, 4, 10, 10, 10, 60)
WAITS_RESET_SECS = 60


class State(enum.Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


class Backoff:
    """Bounded backoff schedule."""

    def __init__(self, waits_secs=WAITS_SECS, reset_secs=WAITS_RESET_SECS):
        if not waits_secs:
            raise ValueError('need at least one wait')
        self.waits_secs = waits_secs
        self.reset_secs = reset_secs
        self.i = 0

    def next_wait(self, connected_secs=0):
        if connected_secs > self.reset_secs:
            self.i = 0
        wait = self.waits_secs[min(self.i, len(self.waits_secs) - 1)]
        self.i += 1
        return wait


class StreamClient:

    def __init__(self, url, on_event, logger, backoff=None,
                 connect_timeout=10, sleep=asyncio.sleep, clock=time.time):
        self.url = url
        self.on_event = on_event
        self.logger = logger
        self.backoff = backoff or Backoff()
        self.connect_timeout = connect_timeout
        self.sleep = sleep
        self.clock = clock
        self.state = State.DISCONNECTED
        self.attempts = 0
        self.received = 0
        self.running = False

    def set_state(self, state):
        if state != self.state:
            self.logger.debug('%s -> %s', self.state.value, state.value)
        self.state = state

    def handle(self, data):
        try:
            event = util.deserialize(data)
        except ValueError as e:
            self.logger.warning('ignoring non-JSON message : %s', e)
            return
        self.received += 1
        try:
            self.on_event(event)
        except Exception as e:
            self.logger.error('on_event failed for %s : %r', event, e)

    async def connect_once(self, session):
        """Connects, consumes messages until closed. Returns seconds the
        connection was up (0 if it never opened)."""
        self.set_state(State.CONNECTING)
        self.attempts += 1
        try:
            ws = await asyncio.wait_for(
                session.ws_connect(self.url), self.connect_timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            self.logger.warning('could not connect to %s : %s', self.url, e)
            return 0
        started = self.clock()
        self.set_state(State.CONNECTED)
        self.logger.info('connected to %s', self.url)
        try:
            async with ws:
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        self.handle(msg.data)
                        if not self.running:
                            break
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        self.logger.warning('error : %s', ws.exception())
                        break
        except (aiohttp.ClientError, OSError) as e:
            self.logger.warning('connection lost : %s', e)
        return self.clock() - started

    async def run(self, session=None):
        self.running = True
        owns_session = session is None
        if owns_session:
            session = aiohttp.ClientSession()
        try:
            while self.running:
                connected_secs = await self.connect_once(session)
                self.set_state(State.DISCONNECTED)
                if not self.running:
                    break
                wait = self.backoff.next_wait(connected_secs)
                self.logger.info('disconnected, reconnecting in %ss', wait)
                await self.sleep(wait)
        finally:
            self.set_state(State.DISCONNECTED)
            if owns_session:
                await session.close()

    def stop(self):
        self.running = False


def main():
    parser = argparse.ArgumentParser(
        description='Prints events from a bridge visualization stream.')
    parser.add_argument('--url', type=str, default='ws://127.0.0.1:8080/viz')
    parser.add_argument('--debug', action='store_true')
    args = parser.parse_args()

    logger = util.createLogger('client', logfile=False, debug=args.debug)
    client = StreamClient(
        args.url, lambda event: logger.info('%s', event), logger)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        print()


if __name__ == '__main__':
    main()
