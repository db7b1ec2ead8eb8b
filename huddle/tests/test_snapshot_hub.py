from huddle.utils.snapshot_hub import SnapshotHub


def test_publish_delivers_only_newer_versions():
    hub = SnapshotHub()
    received = []
    hub.subscribe("MTG-1", lambda meeting_id, version, payload: received.append(version))

    assert hub.publish("MTG-1", 2, {"v": 2}) is True
    assert hub.publish("MTG-1", 1, {"v": 1}) is False
    assert hub.publish("MTG-1", 2, {"v": 2}) is False
    assert hub.publish("MTG-1", 5, {"v": 5}) is True

    assert received == [2, 5]
    assert hub.last_version("MTG-1") == 5


def test_subscribers_are_scoped_per_meeting():
    hub = SnapshotHub()
    received = []
    hub.subscribe("MTG-1", lambda meeting_id, version, payload: received.append(meeting_id))

    hub.publish("MTG-2", 1, {})

    assert received == []
    assert hub.last_version("MTG-2") == 1


def test_failing_subscriber_is_dropped():
    hub = SnapshotHub()
    received = []

    def _broken(meeting_id, version, payload):
        raise RuntimeError("socket closed")

    broken_id = hub.subscribe("MTG-1", _broken)
    hub.subscribe("MTG-1", lambda meeting_id, version, payload: received.append(version))

    hub.publish("MTG-1", 1, {})
    hub.publish("MTG-1", 2, {})

    assert received == [1, 2]
    assert broken_id not in hub.subscriptions["MTG-1"]


def test_unsubscribe():
    hub = SnapshotHub()
    received = []
    subscription_id = hub.subscribe(
        "MTG-1", lambda meeting_id, version, payload: received.append(version)
    )

    hub.unsubscribe("MTG-1", subscription_id)
    hub.unsubscribe("MTG-1", "unknown")
    hub.publish("MTG-1", 1, {})

    assert received == []
    assert "MTG-1" not in hub.subscriptions
