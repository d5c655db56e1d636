"""Publish stage: render topics and apply a run's diff to the platform."""

from .client import RecordingTopicClient, TopicCall, TopicClient, WebhookTopicClient
from .manager import DEFAULT_DELETED_PREFIX, PublishManager
from .topics import Topic, remove_hashtags, route_topic, stop_topic

__all__ = [
    "DEFAULT_DELETED_PREFIX",
    "PublishManager",
    "RecordingTopicClient",
    "Topic",
    "TopicCall",
    "TopicClient",
    "WebhookTopicClient",
    "remove_hashtags",
    "route_topic",
    "stop_topic",
]
