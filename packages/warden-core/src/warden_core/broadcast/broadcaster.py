"""Publish/subscribe channel for cache invalidation events."""

from __future__ import annotations

import inspect
import logging
import threading
import uuid
import weakref
from collections.abc import Callable

from warden_core.broadcast.events import InvalidationEvent, MalformedMessageError, decode_event, encode_event
from warden_core.interfaces.transport import InvalidationTransport

logger = logging.getLogger(__name__)

InvalidationHandler = Callable[[InvalidationEvent], None]


class _Subscription:
    __slots__ = ("token", "_ref")

    def __init__(self, token: int, handler: InvalidationHandler, weak: bool) -> None:
        self.token = token
        if weak:
            ref_type = weakref.WeakMethod if inspect.ismethod(handler) else weakref.ref
            self._ref: Callable[[], InvalidationHandler | None] = ref_type(handler)
        else:
            self._ref = lambda: handler

    def resolve(self) -> InvalidationHandler | None:
        return self._ref()


class InvalidationBroadcaster:
    """Fans invalidation events out to local subscribers and to other contexts.

    One broadcaster per process, passed explicitly to every CachedEvaluator.
    ``publish`` delivers to local subscribers first and then hands the
    serialized event to the transport; transport failures are logged and
    never raised. Inbound events arrive through :meth:`poll`, either called
    directly or by the background listener started with :meth:`start`.

    Bound-method handlers are held weakly by default, so an evaluator that
    is garbage collected without unsubscribing is pruned on the next publish.
    """

    def __init__(self, transport: InvalidationTransport | None = None, origin: str | None = None) -> None:
        self.transport = transport
        self.origin = origin or uuid.uuid4().hex
        self._lock = threading.Lock()
        self._subscriptions: list[_Subscription] = []
        self._next_token = 0
        self._stop: threading.Event | None = None
        self._thread: threading.Thread | None = None

    # -- subscriptions ---------------------------------------------------------

    def subscribe(self, handler: InvalidationHandler, weak: bool | None = None) -> Callable[[], None]:
        """Register a handler and return a function that unregisters it."""
        if weak is None:
            weak = inspect.ismethod(handler)
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscriptions.append(_Subscription(token, handler, weak))

        def unsubscribe() -> None:
            with self._lock:
                self._subscriptions = [s for s in self._subscriptions if s.token != token]

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return sum(1 for s in self._subscriptions if s.resolve() is not None)

    def _dispatch(self, event: InvalidationEvent) -> int:
        with self._lock:
            snapshot = list(self._subscriptions)

        delivered = 0
        dead: set[int] = set()
        for sub in snapshot:
            handler = sub.resolve()
            if handler is None:
                dead.add(sub.token)
                continue
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception("Invalidation handler failed for %s event", event.scope.value)

        if dead:
            with self._lock:
                self._subscriptions = [s for s in self._subscriptions if s.token not in dead]
            logger.debug("Pruned %d dead invalidation subscribers", len(dead))
        return delivered

    # -- publishing ------------------------------------------------------------

    def publish(self, event: InvalidationEvent) -> None:
        """Deliver locally, then forward to other contexts. Never raises on transport errors."""
        if event.origin is None:
            event = event.with_origin(self.origin)
        self._dispatch(event)

        if self.transport is None:
            return
        try:
            self.transport.send(encode_event(event))
        except Exception:
            logger.warning("Failed to broadcast %s invalidation; remote caches will expire by TTL",
                           event.scope.value, exc_info=True)

    def poll(self) -> int:
        """Drain the transport and dispatch remote events. Returns the number dispatched."""
        if self.transport is None:
            return 0
        try:
            messages = self.transport.receive()
        except Exception:
            logger.warning("Failed to receive invalidation messages", exc_info=True)
            return 0

        dispatched = 0
        for raw in messages:
            try:
                event = decode_event(raw)
            except MalformedMessageError as e:
                logger.warning("Dropping malformed invalidation message: %s", e)
                continue
            if event.origin == self.origin:
                continue
            self._dispatch(event)
            dispatched += 1
        return dispatched

    # -- background listener ---------------------------------------------------

    @property
    def listening(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, poll_interval: float = 1.0) -> None:
        """Poll the transport on a daemon thread every ``poll_interval`` seconds."""
        if self.transport is None or self._thread is not None:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._listen,
            args=(self._stop, poll_interval),
            name="warden-invalidation-listener",
            daemon=True,
        )
        self._thread.start()
        logger.info("Listening for invalidation events every %.2fs", poll_interval)

    def _listen(self, stop: threading.Event, poll_interval: float) -> None:
        while not stop.wait(poll_interval):
            try:
                self.poll()
            except Exception:
                logger.exception("Invalidation listener iteration failed")

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=5)
        self._thread = None
        self._stop = None
        logger.info("Stopped invalidation listener")

    def close(self) -> None:
        self.stop()
        if self.transport is not None:
            try:
                self.transport.close()
            except Exception:
                logger.warning("Failed to close invalidation transport", exc_info=True)

    def __enter__(self) -> InvalidationBroadcaster:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
