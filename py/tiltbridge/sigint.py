"""Ctrl-C handling for dumping stats and gracefully shutting down.

A single CTRL-C calls the handlers registered via `register_ctrlc_handler()`
(e.g. dumping stats), a second CTRL-C within `DOUBLE_SECS` calls the handlers
registered via `register_ctrlc2_handler()` (e.g. stopping the server).

The SIGINT handler is only installed once the first handler is registered, so
importing this module has no side effects.
"""

import signal
import sys
import time


DOUBLE_SECS = 1.0

ctrlc_handlers = set()
ctrlc2_handlers = set()
ctrlc_t0 = 0
original_handler = None


def install():
    global original_handler
    if original_handler is not None:
        return
    try:
        original_handler = signal.getsignal(signal.SIGINT)
        signal.signal(signal.SIGINT, sigint_handler)
    except ValueError:
        # Not in main thread (e.g. test runners) : keep default handling.
        original_handler = signal.default_int_handler


def register_ctrlc_handler(handler):
    install()
    ctrlc_handlers.add(handler)


def register_ctrlc2_handler(handler):
    install()
    ctrlc2_handlers.add(handler)


def sigint_handler(*args):
    global ctrlc_t0
    t = time.time()
    if t - ctrlc_t0 < DOUBLE_SECS:
        print('\n\n### caught 2x CTRL-C ###\n\n', file=sys.stderr)
        handlers = ctrlc2_handlers
    else:
        print('\n# caught CTRL-C #\n', file=sys.stderr)
        handlers = ctrlc_handlers
    ctrlc_t0 = t
    for handler in list(handlers):
        handler()
    if not handlers:
        print('=> no handlers registered : default action\n', file=sys.stderr)
        signal.default_int_handler(*args)
