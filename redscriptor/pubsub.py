"""Publishing and subscribing to Redis channels."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Union

from redis.exceptions import RedisError

from .scriptor import Scriptor
from .scripts import ScriptError

log = logging.getLogger(__name__)

BROADCAST = "BroadCast"

BROADCAST_SCRIPT = """
-- ARGV: channeltype channeltarget payload
local channeltype = ARGV[1]
local channeltarget = ARGV[2]
local payload = ARGV[3]

redis.call("PUBLISH", channeltype, channeltarget.."~"..payload)
"""

SCRIPTS = {BROADCAST: BROADCAST_SCRIPT}


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


@dataclass
class SubscribeResult:
    """A message received on a channel."""

    channel: str
    payload: str


class BroadcastCommands:
    """Channel messaging; failures are logged rather than raised."""

    def __init__(self, scriptor: Scriptor) -> None:
        self.scriptor = scriptor

    def broadcast(
        self, channel_type: str, channel_target: str, msg: Union[bytes, str]
    ) -> None:
        """Publish ``target~msg`` on the channel ``channel_type``."""
        try:
            self.scriptor.exec_sha(BROADCAST, None, [channel_type, channel_target, msg])
        except (ScriptError, RedisError) as error:
            log.error("BroadCast failed: %s", error)

    def publish(self, channel: str, data: Any) -> None:
        try:
            self.scriptor.client.publish(channel, data)
        except RedisError as error:
            log.error("Publish failed: %s", error)

    def close_subscribe(self, channel: str) -> None:
        """Unsubscribe from ``channel`` and close the subscription."""
        pubsub = self.scriptor.client.pubsub()
        try:
            pubsub.subscribe(channel)
            pubsub.unsubscribe(channel)
        finally:
            pubsub.close()

    def subscribe_string(
        self, channel: str, callback: Callable[[str], None]
    ) -> threading.Thread:
        """Call ``callback`` with each payload on ``channel`` from a background thread."""

        def listen() -> None:
            pubsub = self.scriptor.client.pubsub()
            try:
                pubsub.subscribe(channel)
                for message in pubsub.listen():
                    if message.get("type") == "message":
                        callback(_text(message["data"]))
            except RedisError as error:
                log.error("SubscribeString %s: %s", channel, error)
            finally:
                pubsub.close()

        thread = threading.Thread(target=listen, name=f"subscribe:{channel}", daemon=True)
        thread.start()
        return thread