"""Discussion platform clients.

Manifesto:
    The publish stage only needs two platform operations: create a topic
    and update a topic. Deletion and resurrection are both updates (a
    relabeled title, then the plain title again), so the platform never
    loses a topic's discussion history.

Tags:
    transit-spine, publish, topics, client, HTTP
"""

from __future__ import annotations

import json
import threading
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from transit_spine.core.errors import PublishError
from transit_spine.publish.topics import Topic


@runtime_checkable
class TopicClient(Protocol):
    """What the publish stage needs from the discussion platform."""

    def create_topic(self, topic: Topic) -> str:
        """Create ``topic``; returns its name."""
        ...

    def update_topic(self, topic: Topic) -> None:
        """Overwrite title and text of the topic named ``topic.name``."""
        ...


@dataclass(frozen=True)
class TopicCall:
    """One recorded client call."""

    action: str
    topic: Topic


class RecordingTopicClient:
    """
    In-memory platform: keeps the current topics and every call made.

    Used for ``--dry-run`` and in tests. With ``strict=True`` it behaves like
    the real platform and rejects creating an existing topic or updating a
    missing one.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self.strict = strict
        self.topics: dict[str, Topic] = {}
        self.calls: list[TopicCall] = []
        self._lock = threading.Lock()

    def create_topic(self, topic: Topic) -> str:
        with self._lock:
            if self.strict and topic.name in self.topics:
                raise PublishError(f"Topic {topic.name} already exists", retryable=False)
            self.topics[topic.name] = topic
            self.calls.append(TopicCall("create", topic))
        return topic.name

    def update_topic(self, topic: Topic) -> None:
        with self._lock:
            if self.strict and topic.name not in self.topics:
                raise PublishError(f"Topic {topic.name} does not exist", retryable=False)
            self.topics[topic.name] = topic
            self.calls.append(TopicCall("update", topic))


class WebhookTopicClient:
    """
    JSON-over-HTTP topic client.

    ``POST {base_url}/topics`` creates, ``PUT {base_url}/topics/{name}``
    updates. Network failures raise a retryable ``PublishError``; HTTP error
    statuses raise a non-retryable one unless they are 5xx.
    """

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout

    def _send(self, method: str, url: str, topic: Topic) -> dict[str, Any]:
        payload = {
            "topicName": topic.name,
            "title": topic.title,
            "text": topic.text,
            "categories": topic.category,
        }
        headers = {"Content-Type": "application/json"}
        headers.update(self._headers)
        req = urllib.request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers=headers,
            method=method,
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as response:
                return {"status": response.status}
        except urllib.error.HTTPError as e:
            raise PublishError(
                f"{method} {url} returned {e.code}",
                retryable=e.code >= 500,
                cause=e,
            ) from e
        except urllib.error.URLError as e:
            raise PublishError(f"{method} {url} failed: {e.reason}", cause=e) from e

    def create_topic(self, topic: Topic) -> str:
        self._send("POST", f"{self._base_url}/topics", topic)
        return topic.name

    def update_topic(self, topic: Topic) -> None:
        name = urllib.parse.quote(topic.name, safe="")
        self._send("PUT", f"{self._base_url}/topics/{name}", topic)


__all__ = ["RecordingTopicClient", "TopicCall", "TopicClient", "WebhookTopicClient"]
