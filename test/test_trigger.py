import asyncio
import json

import httpx

from momentum.errors import NoCredential
from momentum.models import SyncResult
from sync.trigger import BackgroundSyncTrigger, HttpSyncTrigger


class GatedExecutor:
    def __init__(self, fail_for=()):
        self.gate = asyncio.Event()
        self.done = []
        self.fail_for = set(fail_for)

    async def sync(self, uid):
        await self.gate.wait()
        if uid in self.fail_for:
            raise RuntimeError("calendar exploded")
        if uid == "ghost":
            raise NoCredential(uid)
        self.done.append(uid)
        return SyncResult(uid=uid, created=1)


def test_fire_returns_before_sync_finishes():
    async def scenario():
        executor = GatedExecutor()
        trigger = BackgroundSyncTrigger(executor)

        trigger.fire("u1")
        trigger.fire("u2")
        await asyncio.sleep(0)
        assert executor.done == []
        assert trigger.in_flight == 2

        executor.gate.set()
        await trigger.drain()
        await asyncio.sleep(0)
        return executor, trigger

    executor, trigger = asyncio.run(scenario())
    assert sorted(executor.done) == ["u1", "u2"]
    assert trigger.in_flight == 0


def test_failing_sync_is_contained():
    async def scenario():
        executor = GatedExecutor(fail_for={"bad"})
        trigger = BackgroundSyncTrigger(executor)
        for uid in ("bad", "ghost", "good"):
            trigger.fire(uid)
        executor.gate.set()
        await trigger.drain()
        return executor

    executor = asyncio.run(scenario())
    assert executor.done == ["good"]


def test_http_trigger_posts_uid_with_cron_secret():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"message": "ok"})

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        trigger = HttpSyncTrigger("https://sync.example.com/", "s3cret", client=client)
        trigger.fire("u1")
        assert seen == []
        await trigger.aclose()

    asyncio.run(scenario())

    assert len(seen) == 1
    assert str(seen[0].url) == "https://sync.example.com/api/sync-calendar"
    assert seen[0].headers["authorization"] == "Bearer s3cret"
    assert json.loads(seen[0].content) == {"uid": "u1"}


def test_http_trigger_swallows_transport_errors():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        trigger = HttpSyncTrigger("https://sync.example.com", "s3cret", client=client)
        trigger.fire("u1")
        await trigger.aclose()
        return trigger

    trigger = asyncio.run(scenario())
    assert trigger.in_flight == 0
