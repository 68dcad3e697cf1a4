"""Websocket server phones connect to, plus visualization & status routes.

Routes (paths configurable in settings):

- `server.device_path` : phones send their JSON frames here, one handler
  coroutine per connection.
- `server.viz_path` : visualization clients receive every normalized event
  as JSON text frames (late joiners first get the currently live devices).
- `server.status_path` : JSON diagnostics (sessions & counters).
"""

import asyncio
import contextlib
import json
import traceback
import weakref

from aiohttp import web, WSMsgType, WSCloseCode

from . import bridge, normalize, osc, perf, publisher, registry, sigint, util


class VizBroadcaster:
    """Publisher consumer feeding one bounded queue per viz client.

    Never blocks : if a client's queue is full the message is dropped for that
    client only.
    """

    def __init__(self, logger, queue_size):
        self.logger = logger
        self.queue_size = queue_size
        self.queues = set()
        self.dropped = 0

    def add(self):
        queue = asyncio.Queue(maxsize=self.queue_size)
        self.queues.add(queue)
        return queue

    def discard(self, queue):
        self.queues.discard(queue)

    def put(self, queue, data):
        try:
            queue.put_nowait(data)
        except asyncio.QueueFull:
            self.dropped += 1
            if self.dropped % 100 == 1:
                self.logger.warning(
                    'slow viz client : dropped %d messages', self.dropped)

    def __call__(self, event):
        data = json.dumps(event.to_dict())
        for queue in list(self.queues):
            self.put(queue, data)

    def stats(self):
        return dict(clients=len(self.queues), dropped=self.dropped)


class Server:
    """Serves phones, visualization clients and the status endpoint."""

    def __init__(self, settings, logger, osc_sink=None):
        self.settings = settings
        self.logger = logger
        self.stats = util.StreamingStats(logger)
        self.registry = registry.DeviceRegistry(logger)
        self.publisher = publisher.Publisher(logger)
        self.bridge = bridge.Bridge(self.registry, self.publisher, logger)
        self.viz = VizBroadcaster(
            logger, settings['publisher']['queue_size'])
        self.publisher.subscribe('viz', self.viz)
        self.osc = None
        if osc_sink is not None or settings['osc']['enabled']:
            self.osc = osc_sink or osc.OscSink(
                settings['osc']['address'], settings['osc']['port'], logger)
            self.publisher.subscribe('osc', self.osc)
        self.websockets = weakref.WeakSet()
        self.count_task = None
        self.loop = None
        self.runner = None

    def make_app(self):
        server = self.settings['server']
        app = web.Application()
        app.add_routes([
            web.get(server['device_path'], self.device_handler),
            web.get(server['viz_path'], self.viz_handler),
            web.get(server['status_path'], self.status_handler),
        ])
        app.on_startup.append(self.on_startup)
        app.on_shutdown.append(self.on_shutdown)
        return app

    async def on_startup(self, app):
        self.count_task = asyncio.get_running_loop().create_task(
            self.publisher.count_loop(
                self.registry,
                self.settings['publisher']['count_secs'],
                stale_secs=self.settings['registry']['stale_secs']))

    async def on_shutdown(self, app):
        if self.count_task is not None:
            self.count_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.count_task
            self.count_task = None
        for ws in list(self.websockets):
            await ws.close(code=WSCloseCode.GOING_AWAY,
                           message=b'Server shutdown')

    def websocket_response(self):
        server = self.settings['server']
        return web.WebSocketResponse(
            heartbeat=server['heartbeat'] or None,
            max_msg_size=server['max_msg_size'])

    async def device_handler(self, request):
        max_connections = self.settings['server']['max_connections']
        if len(self.bridge.connections) >= max_connections:
            self.logger.warning('refusing %s : %d connections',
                                request.remote, max_connections)
            raise web.HTTPServiceUnavailable(text='Too many connections')
        ws = self.websocket_response()
        connection = self.bridge.open(request.remote)
        try:
            await ws.prepare(request)
            self.websockets.add(ws)
            await self.device_loop(connection, ws)
        finally:
            self.websockets.discard(ws)
            self.bridge.close(connection, ws.close_code)
        return ws

    async def device_loop(self, connection, ws):
        try:
            async for msg in ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    self.stats('frames_in', msg.data)
                    self.bridge.handle_frame(connection, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    self.logger.warning('%s closed with exception %s',
                                        connection.id, ws.exception())
                else:
                    self.logger.debug('msg.type=%s', msg.type)
        except (ConnectionResetError, BrokenPipeError) as e:
            self.logger.warning('%s : connection lost : %s', connection.id, e)
        except Exception as e:
            self.logger.error('uncaught exception : %s', e)
            self.logger.warning(traceback.format_exc())

    async def viz_handler(self, request):
        ws = self.websocket_response()
        queue = self.viz.add()
        for _, session in self.registry.snapshot():
            event = normalize.connected(session.device_id, session.color)
            self.viz.put(queue, json.dumps(event.to_dict()))
        try:
            await ws.prepare(request)
            self.websockets.add(ws)
            sender = asyncio.get_running_loop().create_task(
                self.viz_send_loop(ws, queue))
            try:
                async for msg in ws:
                    if msg.type == WSMsgType.ERROR:
                        self.logger.warning('viz closed with exception %s',
                                            ws.exception())
            finally:
                sender.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sender
        finally:
            self.viz.discard(queue)
            self.websockets.discard(ws)
        return ws

    async def viz_send_loop(self, ws, queue):
        while not ws.closed:
            data = await queue.get()
            if not await self.safe_send_str('viz', ws, data):
                break

    async def safe_send_str(self, name, ws, data):
        try:
            await ws.send_str(data)
            self.stats('viz_out', data)
            return True
        except BrokenPipeError:
            self.logger.warning('broken pipe : %s', name)
        except ConnectionResetError:
            self.logger.warning('connection reset : %s', name)
        except Exception as e:
            self.logger.warning('other exception "%s" : %s',
                                e.__class__.__name__, name)
        return False

    def status(self):
        snapshot = self.registry.snapshot()
        status = dict(
            count=len(snapshot),
            devices=[session.as_dict() for _, session in snapshot],
            publisher=self.publisher.stats(),
            viz=self.viz.stats(),
            osc=self.osc.stats() if self.osc is not None else None,
            streams=self.stats.summary(),
            perf=perf.summary(),
        )
        status.update(self.bridge.stats())
        return status

    async def status_handler(self, request):
        return web.json_response(self.status())

    def exception_handler(self, loop, context):
        msg = context.get('exception', context['message'])
        self.logger.error('caught exception: %s', msg)

    def stop(self):
        if self.loop is not None:
            self.loop.call_soon_threadsafe(self.loop.stop)

    def run(self):
        """Serves until stopped, returns False if the port can't be bound."""
        address = self.settings['server']['address']
        port = self.settings['server']['port']
        self.loop = loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        loop.set_exception_handler(self.exception_handler)

        self.runner = web.AppRunner(self.make_app())
        loop.run_until_complete(self.runner.setup())
        try:
            site = web.TCPSite(self.runner, address, port)
            loop.run_until_complete(site.start())
        except OSError as e:
            self.logger.error('could not listen on %s:%d : %s',
                              address, port, e)
            loop.run_until_complete(self.runner.cleanup())
            loop.close()
            return False

        self.stats.catch_ctrlc(
            self.stop, lambda: '{} devices'.format(len(self.registry)))
        sigint.register_ctrlc_handler(
            lambda: self.logger.info('perf:%s', perf.stats()))
        self.logger.info('phones connect to: ws://%s:%d%s', address, port,
                         self.settings['server']['device_path'])
        if self.osc is not None:
            self.logger.info('sending OSC to: %s:%d',
                             self.osc.address, self.osc.port)
        try:
            loop.run_forever()
        except KeyboardInterrupt:
            print()
        finally:
            self.logger.info('SHUTTING DOWN...')
            loop.run_until_complete(self.runner.cleanup())
            loop.close()
            self.loop = None
        return True
