import asyncio
import json

import pytest

from jobstr.relay import Backoff, RawEvent, RelayLink, compute_event_id

AUTHOR_A = "a" * 64
AUTHOR_B = "b" * 64
T0 = 1_700_000_000


def build_event(*, author=AUTHOR_A, created_at=T0, kind=9993, tags=(), content=""):
    tags = tuple(tuple(t) for t in tags)
    return RawEvent(
        id=compute_event_id(author, created_at, kind, tags, content),
        author=author,
        created_at=created_at,
        kind=kind,
        tags=tags,
        content=content,
        sig="0" * 128,
    )


def build_listing_event(slot="s1", *, title="Engineer", skills=(), company=None, job_type=None,
                        salary=None, author=AUTHOR_A, created_at=T0, content="Job description"):
    tags = [["d", slot]]
    if title:
        tags.append(["title", title])
    if company:
        tags.append(["company", company])
    if job_type:
        tags.append(["employment-type", job_type])
    for s in skills:
        tags.append(["skill", s])
    if salary:
        tags.append(["salary", *salary])
    return build_event(author=author, created_at=created_at, tags=tags, content=content)


@pytest.fixture
def make_event():
    return build_event


@pytest.fixture
def make_listing_event():
    return build_listing_event


class FakeConnection:
    """
    Websocket stand-in. When it receives a REQ it queues its script, with the
    subscription id filled in:
      RawEvent -> EVENT frame, "EOSE" -> EOSE frame, "DROP" -> connection reset,
      callable(sub_id) -> raw frame, anything else -> sent as-is.
    After the script it stays silent until closed, like a live relay.
    """

    def __init__(self, script):
        self.script = list(script)
        self.sent = []
        self.closed = False
        self._queue = asyncio.Queue()

    async def send(self, data):
        if self.closed:
            raise OSError("connection closed")
        self.sent.append(data)
        msg = json.loads(data)
        if msg[0] != "REQ":
            return
        sub_id = msg[1]
        for step in self.script:
            if isinstance(step, RawEvent):
                self._queue.put_nowait(json.dumps(["EVENT", sub_id, step.to_wire()]))
            elif step == "EOSE":
                self._queue.put_nowait(json.dumps(["EOSE", sub_id]))
            elif step == "DROP":
                self._queue.put_nowait(OSError("connection reset by peer"))
            elif callable(step):
                self._queue.put_nowait(step(sub_id))
            else:
                self._queue.put_nowait(step)

    async def recv(self):
        item = await self._queue.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(OSError("connection closed"))


class FakeRelay:
    """Connector: each successful connect() replays the next session script."""

    def __init__(self, *sessions, fail_first=0):
        self.sessions = list(sessions)
        self.fail_first = fail_first
        self.connects = 0
        self.connections = []

    async def __call__(self, url):
        self.connects += 1
        if self.connects <= self.fail_first:
            raise OSError("connection refused")
        script = self.sessions.pop(0) if self.sessions else []
        conn = FakeConnection(script)
        self.connections.append(conn)
        return conn


@pytest.fixture
def fake_relay():
    return FakeRelay


@pytest.fixture
def make_link():
    def _make(relay, url="wss://relay.test", **kwargs):
        kwargs.setdefault("backoff", Backoff(base_delay=0.001, max_delay=0.01))
        return RelayLink(url, connector=relay, **kwargs)
    return _make


async def take(stream, n, timeout=2.0):
    """First `n` items of an async stream (fails the test on timeout)."""
    out = []

    async def _run():
        async for item in stream:
            out.append(item)
            if len(out) >= n:
                return

    await asyncio.wait_for(_run(), timeout)
    return out


@pytest.fixture
def collect():
    return take
