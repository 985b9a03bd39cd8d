"""Process interrupt (Ctrl+C) delivery to running motion workers.

While at least one worker is subscribed, SIGINT is captured and turned into a
per-worker event instead of raising KeyboardInterrupt in the main thread. The
previous handler is restored once the last subscriber leaves. Handlers can
only be installed from the main thread; subscriptions made elsewhere still
receive ``deliver()``.
"""

import logging
import signal
import threading

logger = logging.getLogger(__name__)

# reentrant: the SIGINT handler runs on the main thread, which may hold it
_lock = threading.RLock()
_subscribers = set()
_previous_handler = None
_installed = False


def _handle_sigint(signum, frame):
    if deliver():
        return
    # nobody listening (left from a non-main thread), behave as before
    previous = _previous_handler
    if callable(previous):
        previous(signum, frame)
    elif previous != signal.SIG_IGN:
        raise KeyboardInterrupt


def subscribe() -> threading.Event:
    """Return an event that is set when the process is interrupted."""
    global _previous_handler, _installed
    event = threading.Event()
    with _lock:
        _subscribers.add(event)
        if not _installed and threading.current_thread() is threading.main_thread():
            _previous_handler = signal.signal(signal.SIGINT, _handle_sigint)
            _installed = True
    return event


def unsubscribe(event: threading.Event) -> None:
    global _previous_handler, _installed
    with _lock:
        _subscribers.discard(event)
        if (
            _installed
            and not _subscribers
            and threading.current_thread() is threading.main_thread()
        ):
            signal.signal(signal.SIGINT, _previous_handler)
            _previous_handler = None
            _installed = False


def deliver() -> int:
    """Interrupt every subscribed worker. Returns how many were notified."""
    with _lock:
        events = list(_subscribers)
    for event in events:
        event.set()
    if events:
        logger.info("interrupt delivered to %d motion worker(s)", len(events))
    return len(events)
