"""In-memory fan-out of session events to live viewers.

Each subscriber owns a bounded asyncio.Queue. Publishing never awaits: a
subscriber whose queue is full is dropped and has to reconnect, which gives it
a fresh snapshot.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Protocol
from uuid import UUID

from skilltrail_live.domain.live import EVENT_SNAPSHOT, SessionEvent
from skilltrail_live.services.clock import Clock

_logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    """Interface for publishing session events."""

    def publish(
        self, session_id: UUID, kind: str, payload: dict[str, object]
    ) -> SessionEvent:
        """Deliver an event to every current subscriber of the session."""


class Subscription:
    """Live, non-replayable event stream for one viewer of one session."""

    def __init__(self, session_id: UUID, max_size: int) -> None:
        self.session_id = session_id
        self.queue: asyncio.Queue[SessionEvent | None] = asyncio.Queue(
            maxsize=max_size
        )
        self.closed = False

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> SessionEvent:
        event = await self.queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def offer(self, event: SessionEvent) -> bool:
        """Queue an event without waiting; false when the subscriber lags."""
        if self.closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        """End the stream after the events already queued."""
        if self.closed:
            return
        self.closed = True
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            # Lagging subscriber: discard its backlog so the end marker fits.
            while not self.queue.empty():
                self.queue.get_nowait()
            self.queue.put_nowait(None)


class SessionBroadcaster(EventPublisher):
    """Per-session topics with one independent queue per subscriber."""

    def __init__(self, clock: Clock, queue_size: int = 256) -> None:
        self._clock = clock
        self._queue_size = queue_size
        self._subscriptions: dict[UUID, list[Subscription]] = defaultdict(list)
        self._sequences: dict[UUID, int] = defaultdict(int)

    def subscribe(
        self, session_id: UUID, snapshot: dict[str, object]
    ) -> Subscription:
        """Register a viewer; its first event is the given state snapshot."""
        subscription = Subscription(session_id, max_size=self._queue_size)
        subscription.offer(
            SessionEvent(
                session_id=session_id,
                sequence=self._sequences[session_id],
                kind=EVENT_SNAPSHOT,
                occurred_at=self._clock.now(),
                payload=snapshot,
            )
        )
        self._subscriptions[session_id].append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        subscribers = self._subscriptions.get(subscription.session_id)
        if subscribers and subscription in subscribers:
            subscribers.remove(subscription)

    def publish(
        self, session_id: UUID, kind: str, payload: dict[str, object]
    ) -> SessionEvent:
        self._sequences[session_id] += 1
        event = SessionEvent(
            session_id=session_id,
            sequence=self._sequences[session_id],
            kind=kind,
            occurred_at=self._clock.now(),
            payload=payload,
        )
        for subscription in list(self._subscriptions.get(session_id, [])):
            if subscription.closed:
                self.unsubscribe(subscription)
                continue
            if not subscription.offer(event):
                _logger.warning(
                    "Dropping lagging subscriber for session %s at sequence %s",
                    session_id,
                    event.sequence,
                )
                self.unsubscribe(subscription)
        return event

    def close_session(self, session_id: UUID) -> None:
        """End every stream of the session."""
        for subscription in self._subscriptions.pop(session_id, []):
            subscription.close()

    def close_all(self) -> None:
        for session_id in list(self._subscriptions):
            self.close_session(session_id)

    def subscriber_count(self, session_id: UUID) -> int:
        return len(self._subscriptions.get(session_id, []))

    def last_sequence(self, session_id: UUID) -> int:
        return self._sequences.get(session_id, 0)
