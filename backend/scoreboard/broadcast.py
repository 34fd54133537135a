import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Set

from flask import current_app, request
from flask_socketio import emit

from scoreboard import socketio


PLAYER_ADDED = 'player_added'
PLAYER_UPDATED = 'player_updated'
PLAYER_DELETED = 'player_deleted'
SCORE_ADDED = 'score_added'
SCORE_UNDONE = 'score_undone'

EVENTS = frozenset({PLAYER_ADDED, PLAYER_UPDATED, PLAYER_DELETED, SCORE_ADDED, SCORE_UNDONE})

WS_NAMESPACE = '/ws'
EXTENSION_KEY = 'scoreboard.broadcaster'


@dataclass(frozen=True)
class SocketSubscriber:
    """A connected Socket.IO client, addressed by its session id."""
    sid: str
    namespace: str = WS_NAMESPACE

    def send(self, message: Dict[str, Any]) -> None:
        # Queued per connection by the Socket.IO server, so delivery is FIFO per sid
        socketio.emit(message['event'], message, to=self.sid, namespace=self.namespace)


@dataclass(frozen=True, eq=False)
class CallbackSubscriber:
    """An in-process listener; hashed by identity."""
    callback: Callable[[Dict[str, Any]], None]

    def send(self, message: Dict[str, Any]) -> None:
        self.callback(message)


class Broadcaster:
    """Fans change notifications out to every live subscriber.

    The subscriber set is the only mutable state and is guarded by a lock.
    Publishing works on a snapshot so connects and disconnects never race the
    fan-out. A subscriber whose ``send`` raises is dropped; the others and the
    publishing request are unaffected. Nothing is replayed to late joiners.
    """

    def __init__(self, logger=None):
        self._subscribers: Set[Any] = set()
        self._lock = threading.Lock()
        self._logger = logger

    def subscribe(self, subscriber) -> None:
        with self._lock:
            self._subscribers.add(subscriber)

    def unsubscribe(self, subscriber) -> None:
        with self._lock:
            self._subscribers.discard(subscriber)

    def subscribers(self) -> Set[Any]:
        with self._lock:
            return set(self._subscribers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: str, data: Any) -> int:
        """Send ``{event, data}`` to all subscribers. Returns the delivery count."""
        if event not in EVENTS:
            raise ValueError(f'unknown event: {event}')
        message = {'event': event, 'data': data}
        delivered = 0
        for subscriber in self.subscribers():
            try:
                subscriber.send(message)
                delivered += 1
            except Exception as exc:
                self.unsubscribe(subscriber)
                if self._logger is not None:
                    self._logger.warning(f"[broadcast] dropped subscriber {subscriber!r} on {event}: {exc}")
        if self._logger is not None:
            self._logger.debug(f"[broadcast] {event} delivered={delivered}")
        return delivered


def get_broadcaster() -> Broadcaster:
    return current_app.extensions[EXTENSION_KEY]


def publish(event: str, data: Any) -> int:
    return get_broadcaster().publish(event, data)


# ---- Socket.IO handlers ----

def _current_subscriber() -> SocketSubscriber:
    # request.sid and request.namespace exist in Socket.IO handler context
    return SocketSubscriber(sid=request.sid, namespace=request.namespace)  # type: ignore[attr-defined]


def handle_connect(auth=None):
    get_broadcaster().subscribe(_current_subscriber())
    emit('connected', {'message': f'Connected to {request.namespace}'})  # type: ignore[attr-defined]


def handle_disconnect(reason=None):
    get_broadcaster().unsubscribe(_current_subscriber())


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    The realtime channel is server -> client only, so just the connection
    lifecycle is handled. Always registered on '/ws'; when testing is True
    the handlers are mirrored on '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace=WS_NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=WS_NAMESPACE)

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
