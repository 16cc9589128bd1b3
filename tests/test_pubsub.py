from redis.exceptions import ConnectionError

from redscriptor.pubsub import BROADCAST, BroadcastCommands, SubscribeResult
from redscriptor.scriptor import Scriptor


class FakePubSub:
    def __init__(self, messages=(), error=None):
        self.messages = list(messages)
        self.error = error
        self.events = []

    def subscribe(self, channel):
        self.events.append(("subscribe", channel))

    def unsubscribe(self, channel):
        self.events.append(("unsubscribe", channel))

    def close(self):
        self.events.append(("close",))

    def listen(self):
        yield from self.messages
        if self.error is not None:
            raise self.error


class FakeClient:
    def __init__(self, error=None, pubsub=None):
        self.error = error
        self.calls = []
        self.published = []
        self._pubsub = pubsub or FakePubSub()

    def evalsha(self, sha, numkeys, *rest):
        self.calls.append((sha, numkeys, rest))
        if self.error is not None:
            raise self.error
        return None

    def publish(self, channel, data):
        self.published.append((channel, data))
        if self.error is not None:
            raise self.error
        return 1

    def pubsub(self):
        return self._pubsub


def make(client, registered=True):
    scriptor = Scriptor(client)
    if registered:
        scriptor.scripts = {BROADCAST: "sha-broadcast"}
    return BroadcastCommands(scriptor)


def test_broadcast_sends_type_target_and_message():
    client = FakeClient()
    make(client).broadcast("room", "42", b"hello")
    assert client.calls == [("sha-broadcast", 0, ("room", "42", b"hello"))]


def test_broadcast_unregistered_script_is_swallowed():
    client = FakeClient()
    make(client, registered=False).broadcast("room", "42", b"hello")
    assert client.calls == []


def test_broadcast_server_error_is_swallowed():
    client = FakeClient(error=ConnectionError("down"))
    make(client).broadcast("room", "42", b"hello")
    assert len(client.calls) == 1


def test_publish_sends_data():
    client = FakeClient()
    make(client).publish("chan", "data")
    assert client.published == [("chan", "data")]


def test_publish_error_is_swallowed():
    client = FakeClient(error=ConnectionError("down"))
    make(client).publish("chan", "data")
    assert client.published == [("chan", "data")]


def test_close_subscribe_unsubscribes_and_closes():
    pubsub = FakePubSub()
    make(FakeClient(pubsub=pubsub)).close_subscribe("chan")
    assert pubsub.events == [("subscribe", "chan"), ("unsubscribe", "chan"), ("close",)]


def test_subscribe_string_delivers_payloads_only():
    pubsub = FakePubSub(
        [
            {"type": "subscribe", "channel": b"chan", "data": 1},
            {"type": "message", "channel": b"chan", "data": b"first"},
            {"type": "message", "channel": b"chan", "data": b"second"},
        ]
    )
    received = []
    thread = make(FakeClient(pubsub=pubsub)).subscribe_string("chan", received.append)
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert received == ["first", "second"]
    assert pubsub.events == [("subscribe", "chan"), ("close",)]


def test_subscribe_string_stops_on_connection_error():
    pubsub = FakePubSub(
        [{"type": "message", "channel": b"chan", "data": b"only"}],
        error=ConnectionError("lost"),
    )
    received = []
    thread = make(FakeClient(pubsub=pubsub)).subscribe_string("chan", received.append)
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert received == ["only"]
    assert pubsub.events[-1] == ("close",)


def test_subscribe_result_holds_channel_and_payload():
    result = SubscribeResult(channel="chan", payload="data")
    assert (result.channel, result.payload) == ("chan", "data")