"""Session event channel built on a private pypubsub publisher."""

import logging
from typing import Callable

from pubsub.core import Publisher

from .models.events import SessionEvent

logger = logging.getLogger(__name__)

TOPIC_STATE = "session.state"
TOPIC_SLICE = "session.slice"
TOPIC_TRANSCRIPT = "session.transcript"
TOPIC_ERROR = "session.error"
TOPIC_SAVED = "session.saved"

ALL_TOPICS = (TOPIC_STATE, TOPIC_SLICE, TOPIC_TRANSCRIPT, TOPIC_ERROR, TOPIC_SAVED)


class SessionEventBus:
    """Explicit observer channel for one application instance.

    Every message carries a single ``event`` argument, so listeners are
    plain callables of the form ``listener(event: SessionEvent)``. A listener
    that raises is logged and skipped; publishers never see its exception.
    """

    def __init__(self):
        self.publisher = Publisher()
        self.publisher.setListenerExcHandler(self._on_listener_error)

    def subscribe(self, listener: Callable[[SessionEvent], None], topic: str) -> None:
        self.publisher.subscribe(listener, topic)
        logger.debug(f"Subscribed {getattr(listener, '__name__', listener)} to {topic}")

    def unsubscribe(self, listener: Callable[[SessionEvent], None], topic: str) -> None:
        self.publisher.unsubscribe(listener, topic)

    def publish(self, topic: str, event_type: str, **metadata) -> SessionEvent:
        """Publish an event on a topic and return it."""
        event = SessionEvent(event_type=event_type, metadata=metadata)
        self.publisher.sendMessage(topic, event=event)
        return event

    def _on_listener_error(self, listener_id: str, topic_obj) -> None:
        logger.error(f"Listener {listener_id} failed on {topic_obj.getName()}", exc_info=True)
