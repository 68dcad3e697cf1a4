"""Simulates phones sending orientation & touch frames to a bridge.

Usage:

python -m tiltbridge.simulate --url=ws://127.0.0.1:8080/ --phones=3
"""

import argparse
import asyncio
import json
import math
import random

import aiohttp

from . import util


class Phone:
    """Produces the frames a phone controller page would send."""

    def __init__(self, device_id, color, rnd=None):
        self.device_id = device_id
        self.color = color
        rnd = rnd or random.Random()
        # Every phone sweeps with its own periods & phases.
        self.periods = [rnd.uniform(3, 9) for _ in range(3)]
        self.phases = [rnd.uniform(0, 2 * math.pi) for _ in range(3)]

    def connect_frame(self):
        return json.dumps(dict(
            type='connect', deviceId=self.device_id, color=self.color))

    def orientation(self, t):
        def wave(i):
            return math.sin(2 * math.pi * t / self.periods[i] + self.phases[i])
        return (
            round(180 * wave(0), 2),
            round(90 * wave(1), 2),
            round(180 + 180 * wave(2), 2) % 360,
        )

    def touch(self, t):
        """Returns (x, y, touches), touching during part of every period."""
        phase = (t / self.periods[2]) % 1
        if phase > 0.25:
            return 0.5, 0.5, 0
        return (
            round(0.5 + 0.4 * math.cos(2 * math.pi * phase * 4), 3),
            round(0.5 + 0.4 * math.sin(2 * math.pi * phase * 4), 3),
            1,
        )

    def frames(self, t):
        """Frames to send at time `t` (seconds since connect)."""
        tilt_x, tilt_y, rotate = self.orientation(t)
        frames = [json.dumps(dict(
            type='orientation', deviceId=self.device_id,
            tiltX=tilt_x, tiltY=tilt_y, rotate=rotate))]
        x, y, touches = self.touch(t)
        if touches:
            frames.append(json.dumps(dict(
                type='touch', deviceId=self.device_id,
                x=x, y=y, touches=touches)))
        return frames


def make_phones(n, seed=None):
    rnd = random.Random(seed)
    return [
        Phone('phone-{:03d}'.format(i + 1), rnd.randrange(360), rnd)
        for i in range(n)
    ]


async def run_phone(session, url, phone, fps, duration, logger):
    async with session.ws_connect(url) as ws:
        logger.info('%s connected (color %s)', phone.device_id, phone.color)
        await ws.send_str(phone.connect_frame())
        t = 0
        while duration is None or t < duration:
            for frame in phone.frames(t):
                await ws.send_str(frame)
            await asyncio.sleep(1 / fps)
            t += 1 / fps
    logger.info('%s disconnected', phone.device_id)


async def run(url, phones, fps, duration, logger):
    async with aiohttp.ClientSession() as session:
        await asyncio.gather(*[
            run_phone(session, url, phone, fps, duration, logger)
            for phone in phones
        ])


def main():
    parser = argparse.ArgumentParser(description='Simulates phones.')
    parser.add_argument('--url', type=str, default='ws://127.0.0.1:8080/')
    parser.add_argument('--phones', type=int, default=3)
    parser.add_argument('--fps', type=float, default=30)
    parser.add_argument('--duration', type=float, default=None,
                        help='Seconds to run (default: forever).')
    parser.add_argument('--seed', type=int, default=None)
    args = parser.parse_args()

    logger = util.createLogger('simulate', logfile=False)
    phones = make_phones(args.phones, args.seed)
    try:
        asyncio.run(run(args.url, phones, args.fps, args.duration, logger))
    except KeyboardInterrupt:
        print()
    except aiohttp.ClientError as e:
        logger.error('could not connect to %s : %s', args.url, e)


if __name__ == '__main__':
    main()
