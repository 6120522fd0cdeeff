"""
Test suite for the delivery multiplexer.
"""

import pytest

from sessions import DeliveryMultiplexer, PushSubscriber


class ExplodingSubscriber(PushSubscriber):
    subscriber_id = "broken"

    def deliver(self, event, data):
        raise RuntimeError("socket gone")


@pytest.fixture
def delivery():
    return DeliveryMultiplexer()


class TestRouting:
    """Session id -> subscriber routing."""

    def test_publish_reaches_attached_subscriber(self, delivery, subscriber):
        delivery.attach("tenant-1", subscriber)

        assert delivery.publish("tenant-1", "qr", {"qrCode": "img"}) is True
        assert subscriber.events == [("qr", {"qrCode": "img"})]

    def test_publish_without_subscriber(self, delivery):
        assert delivery.publish("tenant-1", "qr", {"qrCode": "img"}) is False

    def test_attach_replaces_previous(self, delivery, make_subscriber):
        first, second = make_subscriber("client-1"), make_subscriber("client-2")
        delivery.attach("tenant-1", first)
        delivery.attach("tenant-1", second)

        delivery.publish("tenant-1", "qr", {})

        assert first.events == []
        assert second.names() == ["qr"]
        assert delivery.subscriber_for("tenant-1") is second

    def test_one_subscriber_many_sessions(self, delivery, subscriber):
        delivery.attach("tenant-1", subscriber)
        delivery.attach("tenant-2", subscriber)

        delivery.publish("tenant-1", "qr", {"n": 1})
        delivery.publish("tenant-2", "qr", {"n": 2})

        assert [data["n"] for _, data in subscriber.events] == [1, 2]

    def test_detach(self, delivery, subscriber):
        delivery.attach("tenant-1", subscriber)
        delivery.detach("tenant-1")
        delivery.detach("tenant-1")

        assert delivery.publish("tenant-1", "qr", {}) is False

    def test_detach_subscriber_everywhere(self, delivery, make_subscriber):
        leaving, staying = make_subscriber("client-1"), make_subscriber("client-2")
        delivery.attach("tenant-1", leaving)
        delivery.attach("tenant-2", leaving)
        delivery.attach("tenant-3", staying)

        affected = delivery.detach_subscriber("client-1")

        assert sorted(affected) == ["tenant-1", "tenant-2"]
        assert delivery.subscriber_for("tenant-1") is None
        assert delivery.subscriber_for("tenant-3") is staying

    def test_subscriber_failure_is_contained(self, delivery):
        delivery.attach("tenant-1", ExplodingSubscriber())

        assert delivery.publish("tenant-1", "qr", {}) is True
