"""Tests for the topic clients."""

import io
import json
import urllib.error

import pytest

from transit_spine.core.errors import PublishError
from transit_spine.publish.client import RecordingTopicClient, TopicClient, WebhookTopicClient
from transit_spine.publish.topics import Topic

TOPIC = Topic(name="route_1_KCM_100", title="8 - Rainier", text="Discuss the Rainier route", category="1")


class TestRecordingTopicClient:
    def test_protocol(self):
        assert isinstance(RecordingTopicClient(), TopicClient)
        assert isinstance(WebhookTopicClient("http://x"), TopicClient)

    def test_records_calls(self):
        client = RecordingTopicClient()
        assert client.create_topic(TOPIC) == TOPIC.name
        client.update_topic(TOPIC)

        assert [c.action for c in client.calls] == ["create", "update"]
        assert client.topics[TOPIC.name] == TOPIC

    def test_strict_rejects_duplicate_create(self):
        client = RecordingTopicClient(strict=True)
        client.create_topic(TOPIC)
        with pytest.raises(PublishError) as exc_info:
            client.create_topic(TOPIC)
        assert exc_info.value.retryable is False

    def test_strict_rejects_missing_update(self):
        with pytest.raises(PublishError):
            RecordingTopicClient(strict=True).update_topic(TOPIC)


class _Response:
    status = 201

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False


class TestWebhookTopicClient:
    @pytest.fixture
    def sent(self, monkeypatch):
        requests = []

        def fake_urlopen(req, timeout):
            requests.append((req, timeout))
            return _Response()

        monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)
        return requests

    def test_create_posts(self, sent):
        client = WebhookTopicClient("https://topics.example.org/", headers={"Api-Key": "k"}, timeout=3)
        client.create_topic(TOPIC)

        [(req, timeout)] = sent
        assert req.get_method() == "POST"
        assert req.full_url == "https://topics.example.org/topics"
        assert timeout == 3
        assert req.get_header("Api-key") == "k"
        body = json.loads(req.data)
        assert body == {
            "topicName": TOPIC.name,
            "title": TOPIC.title,
            "text": TOPIC.text,
            "categories": "1",
        }

    def test_update_puts_by_name(self, sent):
        topic = Topic(name="stop_1_Lw==2", title="t", text="x", category="1")
        WebhookTopicClient("https://topics.example.org").update_topic(topic)

        [(req, _)] = sent
        assert req.get_method() == "PUT"
        assert req.full_url == "https://topics.example.org/topics/stop_1_Lw%3D%3D2"

    @pytest.mark.parametrize(("code", "retryable"), [(404, False), (409, False), (503, True)])
    def test_http_errors(self, monkeypatch, code, retryable):
        def fake_urlopen(req, timeout):
            raise urllib.error.HTTPError(req.full_url, code, "error", {}, io.BytesIO(b""))

        monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)

        with pytest.raises(PublishError) as exc_info:
            WebhookTopicClient("https://topics.example.org").create_topic(TOPIC)
        assert exc_info.value.retryable is retryable
        assert str(code) in exc_info.value.message

    def test_network_error_retryable(self, monkeypatch):
        def fake_urlopen(req, timeout):
            raise urllib.error.URLError("connection refused")

        monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)

        with pytest.raises(PublishError) as exc_info:
            WebhookTopicClient("https://topics.example.org").update_topic(TOPIC)
        assert exc_info.value.retryable is True
