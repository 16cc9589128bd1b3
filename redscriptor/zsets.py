"""Sorted sets: read, count, rank and delete members through registered scripts."""

from __future__ import annotations

import logging
from typing import Any, List, Sequence

from redis.exceptions import RedisError

from .reply import ArrayReplyReader, ReplyValue, ScriptResult
from .scriptor import Scriptor
from .scripts import ScriptError

log = logging.getLogger(__name__)

DEL_ZSET_ALL = "DelZsetAll"
DEL_ZSET = "DelZset"
GET_ZSET_ALL_COUNT = "GetZsetAllCount"
GET_ZSET_ALL_REV = "GetZsetAllRev"
GET_ZSET_ALL = "GetZsetAll"
GET_ZSET_COUNT = "GetZsetCount"
GET_ZSET_RANGE = "GetZsetRange"
GET_ZSET_RANK = "GetZsetRank"
GET_ZSET = "GetZset"

_HEADER = """
local DBKey = tonumber(KEYS[1])
local ProjectKey = KEYS[2]
local TagKey = KEYS[3]
local k1 = ARGV[1]
"""

_RANGE_ARGS = """local k2 = tonumber(ARGV[2])
local k3 = tonumber(ARGV[3])
"""

_OPEN = """
if DBKey and ProjectKey and TagKey and k1 then
    local MAIN_KEY = ProjectKey..":"..TagKey..":"..k1
    redis.call("select", DBKey)
"""

DEL_ZSET_ALL_SCRIPT = (
    "\n-- KEYS: DBKey ProjectKey TagKey; ARGV: k1"
    + _HEADER
    + _OPEN
    + """    redis.call('del', MAIN_KEY)
end
"""
)

DEL_ZSET_SCRIPT = (
    "\n-- KEYS: DBKey ProjectKey TagKey; ARGV: k1 member"
    + _HEADER
    + """local v2 = ARGV[2]

if DBKey and ProjectKey and TagKey and k1 and v2 then
    local MAIN_KEY = ProjectKey..":"..TagKey..":"..k1
    redis.call("select", DBKey)
    redis.call('zrem', MAIN_KEY, v2)
end
"""
)

GET_ZSET_ALL_COUNT_SCRIPT = (
    "\n-- KEYS: DBKey ProjectKey TagKey; ARGV: k1"
    + _HEADER
    + _OPEN
    + """    return redis.call('zcard', MAIN_KEY)
end
"""
)

GET_ZSET_ALL_REV_SCRIPT = (
    "\n-- KEYS: DBKey ProjectKey TagKey; ARGV: k1 start stop"
    + _HEADER
    + _RANGE_ARGS
    + _OPEN
    + """    return redis.call('zrevrange', MAIN_KEY, k2, k3)
end
"""
)

GET_ZSET_ALL_SCRIPT = (
    "\n-- KEYS: DBKey ProjectKey TagKey; ARGV: k1 start stop"
    + _HEADER
    + _RANGE_ARGS
    + _OPEN
    + """    return redis.call('zrange', MAIN_KEY, k2, k3)
end
"""
)

GET_ZSET_COUNT_SCRIPT = (
    "\n-- KEYS: DBKey ProjectKey TagKey; ARGV: k1 min max"
    + _HEADER
    + _RANGE_ARGS
    + _OPEN
    + """    return redis.call('zcount', MAIN_KEY, k2, k3)
end
"""
)

GET_ZSET_RANGE_SCRIPT = (
    "\n-- KEYS: DBKey ProjectKey TagKey; ARGV: k1 start stop"
    + _HEADER
    + _RANGE_ARGS
    + _OPEN
    + """    return redis.call('zrange', MAIN_KEY, k2, k3, 'withscores')
end
"""
)

GET_ZSET_RANK_SCRIPT = (
    "\n-- KEYS: DBKey ProjectKey TagKey; ARGV: k1 member"
    + _HEADER
    + """local k2 = ARGV[2]
"""
    + _OPEN
    + """    return redis.call('zrank', MAIN_KEY, k2)
end
"""
)

GET_ZSET_SCRIPT = (
    "\n-- KEYS: DBKey ProjectKey TagKey; ARGV: k1 member"
    + _HEADER
    + """local v1 = ARGV[2]

if DBKey and ProjectKey and TagKey and k1 and v1 then
    local MAIN_KEY = ProjectKey..":"..TagKey..":"..k1
    redis.call("select", DBKey)
    local tmp = redis.call('zscore', MAIN_KEY, v1)
    local r1 = "0"
    local r2 = "0"
    if tmp~=nil and tmp~="" and tmp~=false then
        r1 = tmp
        r2 = v1
    end
    return {r1, r2}
end
"""
)

SCRIPTS = {
    DEL_ZSET_ALL: DEL_ZSET_ALL_SCRIPT,
    DEL_ZSET: DEL_ZSET_SCRIPT,
    GET_ZSET_ALL_COUNT: GET_ZSET_ALL_COUNT_SCRIPT,
    GET_ZSET_ALL_REV: GET_ZSET_ALL_REV_SCRIPT,
    GET_ZSET_ALL: GET_ZSET_ALL_SCRIPT,
    GET_ZSET_COUNT: GET_ZSET_COUNT_SCRIPT,
    GET_ZSET_RANGE: GET_ZSET_RANGE_SCRIPT,
    GET_ZSET_RANK: GET_ZSET_RANK_SCRIPT,
    GET_ZSET: GET_ZSET_SCRIPT,
}


def _array(reply: Any) -> Sequence[Any]:
    if not isinstance(reply, (list, tuple)):
        raise TypeError(f"expected an array reply, got {type(reply).__name__}")
    return reply


class ZsetCommands:
    """Members of the sorted set ``project:tag:k1``."""

    def __init__(self, scriptor: Scriptor) -> None:
        self.scriptor = scriptor

    def _delete(self, name: str, keys: Sequence[str], args: Sequence[str]) -> None:
        try:
            self.scriptor.exec_sha(name, keys, args)
        except (ScriptError, RedisError) as error:
            log.error("%s failed: %s", name, error)

    def _members(self, name: str, keys: Sequence[str], args: Sequence[str]) -> List[ScriptResult]:
        reply = _array(self.scriptor.exec_sha(name, keys, args))
        return [ScriptResult(value=item.as_string()) for item in ArrayReplyReader(reply)]

    def del_zset_all(self, keys: Sequence[str], args: Sequence[str]) -> None:
        """Delete the whole sorted set; failures are logged, not raised."""
        self._delete(DEL_ZSET_ALL, keys, args)

    def del_zset(self, keys: Sequence[str], args: Sequence[str]) -> None:
        """Remove one member; failures are logged, not raised."""
        self._delete(DEL_ZSET, keys, args)

    def get_zset_all_count(self, keys: Sequence[str], args: Sequence[str]) -> int:
        """Return the number of members in the sorted set."""
        return ReplyValue(self.scriptor.exec_sha(GET_ZSET_ALL_COUNT, keys, args)).as_int64(0)

    def get_zset_all_rev(self, keys: Sequence[str], args: Sequence[str]) -> List[ScriptResult]:
        """Return the members between two ranks, highest score first."""
        return self._members(GET_ZSET_ALL_REV, keys, args)

    def get_zset_all(self, keys: Sequence[str], args: Sequence[str]) -> List[ScriptResult]:
        """Return the members between two ranks, lowest score first."""
        return self._members(GET_ZSET_ALL, keys, args)

    def get_zset_count(self, keys: Sequence[str], args: Sequence[str]) -> int:
        """Return the number of members with scores between two bounds."""
        return ReplyValue(self.scriptor.exec_sha(GET_ZSET_COUNT, keys, args)).as_int64(0)

    def get_zset_range(self, keys: Sequence[str], args: Sequence[str]) -> List[ScriptResult]:
        """Return members with their scores truncated to integers; bad scores give 0."""
        reply = _array(self.scriptor.exec_sha(GET_ZSET_RANGE, keys, args))
        reader = ArrayReplyReader(reply)
        results = []
        for _ in range(len(reply) // 2):
            member = reader.read_string()
            try:
                score = reader.read_int64(0)
            except ValueError as error:
                log.error("GetZsetRange score error for %r: %s", member, error)
                score = 0
            results.append(ScriptResult(value=member, value_int64=score))
        return results

    def get_zset_rank(self, keys: Sequence[str], args: Sequence[str]) -> int:
        """Return a member's rank, or -1 when it is not in the set."""
        reply = self.scriptor.exec_sha(GET_ZSET_RANK, keys, args)
        if reply is None:
            return -1
        return ReplyValue(reply).as_int64(0)

    def get_zset(self, keys: Sequence[str], args: Sequence[str]) -> ScriptResult:
        """Return the member's score as ``value`` and the member as ``value2``; "0" when absent."""
        reader = ArrayReplyReader(_array(self.scriptor.exec_sha(GET_ZSET, keys, args)))
        value = reader.read_string()
        value2 = reader.read_string()
        return ScriptResult(value=value, value2=value2)