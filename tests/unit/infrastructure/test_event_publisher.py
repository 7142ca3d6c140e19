"""Unit tests for event publishers."""

from __future__ import annotations

import json
from typing import Any

import pytest

from provisioning.infrastructure.messaging.event_publisher import (
    InMemoryEventPublisher,
    KafkaEventPublisher,
)


class FakeProducer:
    """Records what a Kafka producer would have been asked to send."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, bytes, bytes | None]] = []
        self.flushed = 0

    async def send_and_wait(self, topic: str, value: bytes, key: bytes | None = None) -> None:
        self.sent.append((topic, value, key))

    async def send(self, topic: str, value: bytes, key: bytes | None = None) -> None:
        self.sent.append((topic, value, key))

    async def flush(self) -> None:
        self.flushed += 1


class TestInMemoryEventPublisher:
    @pytest.mark.asyncio
    async def test_publish(self) -> None:
        publisher = InMemoryEventPublisher()
        await publisher.publish("provisioning.started", {"request_id": "r1"})
        assert publisher.published_events == [("provisioning.started", {"request_id": "r1"})]

    @pytest.mark.asyncio
    async def test_publish_batch(self) -> None:
        publisher = InMemoryEventPublisher()
        await publisher.publish_batch([
            ("provisioning.started", {"id": 1}),
            ("provisioning.completed", {"id": 2}),
        ])
        assert len(publisher.published_events) == 2
        assert publisher.events_of_type("provisioning.completed") == [{"id": 2}]

    @pytest.mark.asyncio
    async def test_subscribe_and_receive(self) -> None:
        publisher = InMemoryEventPublisher()
        received: list[dict[str, Any]] = []

        async def handler(payload: dict[str, Any]) -> None:
            received.append(payload)

        publisher.subscribe("provisioning.failed", handler)
        await publisher.publish("provisioning.failed", {"failed_step": "Add to group g"})
        await publisher.publish("provisioning.completed", {})
        assert received == [{"failed_step": "Add to group g"}]

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        publisher = InMemoryEventPublisher()
        await publisher.publish("test", {})
        publisher.clear()
        assert publisher.published_events == []


class TestKafkaEventPublisher:
    @pytest.mark.asyncio
    async def test_publish_keys_by_request(self) -> None:
        producer = FakeProducer()
        publisher = KafkaEventPublisher(producer, topic_prefix="hr")

        await publisher.publish("provisioning.started", {"request_id": "r1", "employee_id": "E1"})

        topic, value, key = producer.sent[0]
        assert topic == "hr.provisioning.started"
        assert key == b"r1"
        assert json.loads(value) == {"request_id": "r1", "employee_id": "E1"}

    @pytest.mark.asyncio
    async def test_publish_without_request_id(self) -> None:
        producer = FakeProducer()
        await KafkaEventPublisher(producer).publish("entitlements.fallback_used", {"department": "X"})
        assert producer.sent[0][0] == "provisioning.entitlements.fallback_used"
        assert producer.sent[0][2] is None

    @pytest.mark.asyncio
    async def test_batch_flushes_once(self) -> None:
        producer = FakeProducer()
        publisher = KafkaEventPublisher(producer)

        await publisher.publish_batch([
            ("provisioning.started", {"request_id": "r1"}),
            ("provisioning.completed", {"request_id": "r1"}),
        ])

        assert len(producer.sent) == 2
        assert producer.flushed == 1
