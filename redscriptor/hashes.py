"""Hash fields: read, list and delete through registered scripts."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from redis.exceptions import RedisError

from .reply import ArrayReplyReader, ScriptResult
from .scriptor import Scriptor
from .scripts import ScriptError

log = logging.getLogger(__name__)

DEL_HASH_ALL = "DelHashAll"
DEL_HASH = "DelHash"
GET_HASH_ALL = "GetHashAll"
GET_HASH_NORMAL = "GetHashNormal"
GET_HASH = "GetHash"
GET_SYSTEM_RTP = "GetSystemRTP"

# Hash named "<project>:<tag>:<ARGV[1]>" in the database KEYS[1].
_HASH_PRELUDE = """
local db = tonumber(KEYS[1])
local project, tag, name = KEYS[2], KEYS[3], ARGV[1]
"""

DEL_HASH_ALL_SCRIPT = (
    _HASH_PRELUDE
    + """
if not (db and project and tag and name) then
    return
end
redis.call("SELECT", db)
redis.call("DEL", table.concat({project, tag, name}, ":"))
"""
)

DEL_HASH_SCRIPT = (
    _HASH_PRELUDE
    + """
local field = ARGV[2]
if not (db and project and tag and name and field) then
    return
end
redis.call("SELECT", db)
redis.call("HDEL", table.concat({project, tag, name}, ":"), field)
"""
)

GET_HASH_ALL_SCRIPT = (
    _HASH_PRELUDE
    + """
if not (db and project and tag and name) then
    return
end
redis.call("SELECT", db)
return redis.call("HGETALL", table.concat({project, tag, name}, ":"))
"""
)

GET_HASH_NORMAL_SCRIPT = """
local db = tonumber(KEYS[1])
local hash, field = ARGV[1], ARGV[2]
if not (db and hash and field) then
    return
end
redis.call("SELECT", db)
local stored = redis.call("HGET", hash, field)
return {stored or ""}
"""

GET_HASH_SCRIPT = (
    _HASH_PRELUDE
    + """
local field = ARGV[2]
if not (db and project and tag and name and field) then
    return
end
redis.call("SELECT", db)
local stored = redis.call("HGET", table.concat({project, tag, name}, ":"), field)
return {stored or ""}
"""
)

GET_SYSTEM_RTP_SCRIPT = """
redis.call("SELECT", tonumber(KEYS[1]))
local out = {}
for _, hash in ipairs(ARGV) do
    local flat = redis.call("HGETALL", hash)
    for i = 1, #flat, 2 do
        out[#out + 1] = hash .. ":" .. flat[i]
        out[#out + 1] = flat[i + 1]
    end
end
return out
"""

SCRIPTS = {
    DEL_HASH_ALL: DEL_HASH_ALL_SCRIPT,
    DEL_HASH: DEL_HASH_SCRIPT,
    GET_HASH_ALL: GET_HASH_ALL_SCRIPT,
    GET_HASH_NORMAL: GET_HASH_NORMAL_SCRIPT,
    GET_HASH: GET_HASH_SCRIPT,
    GET_SYSTEM_RTP: GET_SYSTEM_RTP_SCRIPT,
}


def _array(reply: Any) -> Sequence[Any]:
    if not isinstance(reply, (list, tuple)):
        raise TypeError(f"expected an array reply, got {type(reply).__name__}")
    return reply


class HashCommands:
    """Fields of the hash ``project:tag:k1``, or of a hash named directly."""

    def __init__(self, scriptor: Scriptor) -> None:
        self.scriptor = scriptor

    def _delete(self, name: str, keys: Sequence[str], args: Sequence[str]) -> None:
        try:
            self.scriptor.exec_sha(name, keys, args)
        except (ScriptError, RedisError) as error:
            log.error("%s failed: %s", name, error)

    def _first_string(self, name: str, keys: Sequence[str], args: Sequence[str]) -> str:
        reply = _array(self.scriptor.exec_sha(name, keys, args))
        return ArrayReplyReader(reply).read_string()

    def del_hash_all(self, keys: Sequence[str], args: Sequence[str]) -> None:
        """Delete the whole hash; failures are logged, not raised."""
        self._delete(DEL_HASH_ALL, keys, args)

    def del_hash(self, keys: Sequence[str], args: Sequence[str]) -> None:
        """Delete one field; failures are logged, not raised."""
        self._delete(DEL_HASH, keys, args)

    def get_hash_all(self, keys: Sequence[str], args: Sequence[str]) -> List[ScriptResult]:
        """Return every field and value; a reply that is not an array gives []."""
        reply = self.scriptor.exec_sha(GET_HASH_ALL, keys, args)
        if not isinstance(reply, (list, tuple)):
            log.error("GetHashAll: unexpected reply %r", reply)
            return []
        reader = ArrayReplyReader(reply)
        return [
            ScriptResult(key=reader.read_string(), value=reader.read_string())
            for _ in range(len(reply) // 2)
        ]

    def get_hash_normal(self, keys: Sequence[str], args: Sequence[str]) -> str:
        """Return a field of the hash named by ``args[0]``, or '' when absent."""
        return self._first_string(GET_HASH_NORMAL, keys, args)

    def get_hash(self, keys: Sequence[str], args: Sequence[str]) -> str:
        """Return a field of ``project:tag:k1``, or '' when absent."""
        return self._first_string(GET_HASH, keys, args)

    def get_system_rtp(self, keys: Sequence[str], args: Sequence[str]) -> Dict[str, str]:
        """Return the fields of each hash in ``args``, keyed ``hash:field``."""
        reply = _array(self.scriptor.exec_sha(GET_SYSTEM_RTP, keys, args))
        reader = ArrayReplyReader(reply)
        result: Dict[str, str] = {}
        for _ in range(len(reply) // 2):
            key = reader.read_string()
            result[key] = reader.read_string()
        return result