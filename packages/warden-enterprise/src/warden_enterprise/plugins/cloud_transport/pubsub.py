"""InvalidationTransport implementation backed by Google Cloud Pub/Sub."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from google.cloud import pubsub_v1

from warden_core.broadcast.events import MESSAGE_TYPE
from warden_core.interfaces.transport import TransportError

if TYPE_CHECKING:
    from warden_core.config.models import BroadcastConfig

logger = logging.getLogger(__name__)


class PubSubTransport:
    """Google Cloud Pub/Sub transport that conforms to the InvalidationTransport protocol.

    Publishes to a topic, pulls from a subscription. Every process needs its
    own subscription on the topic so that each one sees every message.
    """

    MAX_MESSAGES = 100
    PULL_TIMEOUT = 5.0

    def __init__(
        self,
        project_id: str,
        topic: str,
        subscription: str,
        publisher: pubsub_v1.PublisherClient | None = None,
        subscriber: pubsub_v1.SubscriberClient | None = None,
    ) -> None:
        self._project_id = project_id
        self._topic_path = f"projects/{project_id}/topics/{topic}"
        self._subscription_path = f"projects/{project_id}/subscriptions/{subscription}"
        self._publisher = publisher if publisher is not None else pubsub_v1.PublisherClient()
        self._subscriber = subscriber if subscriber is not None else pubsub_v1.SubscriberClient()

    @classmethod
    def from_config(cls, config: BroadcastConfig) -> PubSubTransport:
        missing = [f for f in ("project_id", "topic", "subscription") if not getattr(config, f)]
        if missing:
            raise ValueError(f"pubsub transport requires broadcast.{', broadcast.'.join(missing)}")
        return cls(config.project_id, config.topic, config.subscription)

    def close(self) -> None:
        self._publisher.transport.close()
        self._subscriber.close()

    # -- InvalidationTransport protocol ---------------------------------------

    def send(self, message: str) -> None:
        try:
            future = self._publisher.publish(
                self._topic_path, data=message.encode("utf-8"), type=MESSAGE_TYPE
            )
        except Exception as e:
            raise TransportError("pubsub", "send", e) from e
        future.add_done_callback(self._on_published)

    @staticmethod
    def _on_published(future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("Pub/Sub publish failed: %s", exc)

    def receive(self) -> list[str]:
        try:
            resp = self._subscriber.pull(
                subscription=self._subscription_path,
                max_messages=self.MAX_MESSAGES,
                timeout=self.PULL_TIMEOUT,
            )
        except Exception as e:
            raise TransportError("pubsub", "receive", e) from e
        if not resp.received_messages:
            return []

        messages = []
        ack_ids = []
        for received in resp.received_messages:
            ack_ids.append(received.ack_id)
            try:
                messages.append(received.message.data.decode("utf-8"))
            except UnicodeDecodeError:
                logger.warning("Dropping undecodable Pub/Sub message %s", received.message.message_id)

        # A failed ack means redelivery; invalidations are idempotent.
        try:
            self._subscriber.acknowledge(subscription=self._subscription_path, ack_ids=ack_ids)
        except Exception:
            logger.warning("Failed to acknowledge %d Pub/Sub messages", len(ack_ids), exc_info=True)
        return messages
