import asyncio

from conftest import FakeCredentialStore, RecordingTrigger
from sync.fanout import FanOutScheduler


def test_each_user_triggered_once():
    store = FakeCredentialStore(connected=[
        ("u1", "integrations"),
        ("u1", "integrations-legacy"),
        ("u2", "integrations"),
    ])
    trigger = RecordingTrigger()

    summary = asyncio.run(FanOutScheduler(store, trigger).sync_all())

    assert trigger.fired == ["u1", "u2"]
    assert summary.triggered == 2
    assert summary.user_ids == ["u1", "u2"]


def test_no_connected_users():
    trigger = RecordingTrigger()
    summary = asyncio.run(FanOutScheduler(FakeCredentialStore(), trigger).sync_all())

    assert summary.triggered == 0
    assert summary.summary == "No users to sync."
    assert trigger.fired == []


def test_one_failed_trigger_does_not_stop_the_rest():
    store = FakeCredentialStore(connected=[("u1", "integrations"), ("u2", "integrations"), ("u3", "integrations")])
    trigger = RecordingTrigger(failing={"u2"})

    summary = asyncio.run(FanOutScheduler(store, trigger).sync_all())

    assert trigger.fired == ["u1", "u3"]
    assert summary.user_ids == ["u1", "u3"]
