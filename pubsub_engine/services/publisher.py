"""
Topic handles for publishing messages to Google Cloud Pub/Sub.

A topic handle is bound to one (project, topic) pair and exposes a single
coroutine, ``publish_message``, returning the server-assigned message ID.
"""

import asyncio
import logging
import threading
from typing import Mapping, Optional, Protocol

from google.cloud import pubsub_v1

from ..config.settings import BatchingPolicy
from ..exceptions import ValidationException

logger = logging.getLogger(__name__)

# Keyword parameters of PublisherClient.publish; attributes cannot use these names
RESERVED_ATTRIBUTE_KEYS = frozenset({"topic", "data", "ordering_key", "retry", "timeout"})


class TopicHandle(Protocol):
    async def publish_message(self, data: bytes, attributes: Mapping[str, str]) -> str:
        ...


class PubSubTopicHandle:
    """
    Topic handle backed by ``google.cloud.pubsub_v1.PublisherClient``.

    The client is created on first publish so acquiring a handle needs no
    credentials; the client's own batching flushes at ``max_messages`` queued
    messages or after ``max_latency_seconds``, whichever comes first.
    """

    def __init__(self, project: str, topic: str, batching: Optional[BatchingPolicy] = None, client=None):
        self.project = project
        self.topic = topic
        self.batching = batching or BatchingPolicy()
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self) -> pubsub_v1.PublisherClient:
        with self._client_lock:
            if self._client is None:
                logger.debug(f"Initializing Pub/Sub publisher client for project {self.project}")
                self._client = pubsub_v1.PublisherClient(
                    batch_settings=pubsub_v1.types.BatchSettings(
                        max_messages=self.batching.max_messages,
                        max_latency=self.batching.max_latency_seconds,
                    )
                )
            return self._client

    @property
    def topic_path(self) -> str:
        return self.client.topic_path(self.project, self.topic)

    async def publish_message(self, data: bytes, attributes: Mapping[str, str]) -> str:
        """
        Publish one payload; resolves once the service assigns an ID.

        Raises:
            ValidationException: if an attribute key collides with a
                parameter of ``PublisherClient.publish``
        """
        message_attributes = {str(k): str(v) for k, v in attributes.items()}
        reserved = sorted(RESERVED_ATTRIBUTE_KEYS.intersection(message_attributes))
        if reserved:
            raise ValidationException(
                f"attribute keys {reserved} are reserved by the Pub/Sub client",
                field='message.attributes',
                value=reserved
            )
        future = self.client.publish(self.topic_path, data, **message_attributes)
        return await asyncio.wrap_future(future)

    def close(self):
        """Flush pending batches and stop the client if one was created"""
        with self._client_lock:
            client, self._client = self._client, None
        if client is not None:
            client.stop()
            logger.debug(f"Stopped Pub/Sub publisher client for {self.project}/{self.topic}")


def acquire_topic(project: str, topic: str, batching: Optional[BatchingPolicy] = None) -> PubSubTopicHandle:
    """Default topic factory used during scenario setup"""
    return PubSubTopicHandle(project, topic, batching)
