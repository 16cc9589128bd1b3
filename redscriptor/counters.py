"""Countdown entries stored as ``count:end`` strings in hash fields."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, Tuple

from redis.exceptions import RedisError

from .reply import ArrayReplyReader
from .scriptor import Scriptor
from .scripts import ScriptError

log = logging.getLogger(__name__)

DEC_COUNT_DOWN = "DecCountDown"
GET_COUNT_DOWN = "GetCountDown"
DEL_COUNT_DOWN = "DelCountDown"


def _require(*checks: tuple[str, str]) -> str:
    """Lua that rejects the first missing or empty variable with an error reply."""
    entries = ", ".join(f'{{{var}, "{label}"}}' for var, label in checks)
    return (
        f"for _, check in ipairs({{{entries}}}) do\n"
        '    if check[1] == nil or check[1] == "" then\n'
        "        return {err = \"invalid argument '\" .. check[2] .. \"'\"}\n"
        "    end\n"
        "end\n"
    )


# Every script addresses the field ARGV[2] of the hash "<project>:<tag>:<ARGV[1]>"
# and can split a stored "count:end" entry at its first colon.
_PRELUDE = """
local db = tonumber(KEYS[1])
local project, tag = KEYS[2], KEYS[3]
local name, field = ARGV[1], ARGV[2]

local function split(entry)
    local colon = string.find(entry, ":", 1, true)
    return string.sub(entry, 1, colon - 1), string.sub(entry, colon + 1)
end
"""

_BASE_CHECKS = (
    ("db", "DBKey"),
    ("project", "ProjectKey"),
    ("tag", "TagKey"),
    ("name", "k1"),
    ("field", "k2"),
)

DEC_COUNT_DOWN_SCRIPT = (
    _PRELUDE
    + "local amount, ends = ARGV[3], ARGV[4]\n"
    + _require(*_BASE_CHECKS, ("amount", "v1"), ("ends", "v2"))
    + """
local hash = table.concat({project, tag, name}, ":")
redis.call("SELECT", db)
local count = 0
local stored = redis.call("HGET", hash, field)
if stored and stored ~= "" then
    count = (split(stored))
end
redis.call("HSET", hash, field, (count - amount) .. ":" .. ends)
return {split(redis.call("HGET", hash, field))}
"""
)

GET_COUNT_DOWN_SCRIPT = (
    _PRELUDE
    + _require(*_BASE_CHECKS)
    + """
redis.call("SELECT", db)
local stored = redis.call("HGET", table.concat({project, tag, name}, ":"), field)
if stored and stored ~= "" then
    return {split(stored)}
end
return {"0", "0"}
"""
)

DEL_COUNT_DOWN_SCRIPT = (
    _PRELUDE
    + _require(*_BASE_CHECKS)
    + """
local hash = table.concat({project, tag, name}, ":")
redis.call("SELECT", db)
redis.call("HDEL", hash, field)
local stored = redis.call("HGET", hash, field)
if stored and stored ~= "" then
    return {split(stored)}
end
return {"0", "0"}
"""
)

SCRIPTS = {
    DEC_COUNT_DOWN: DEC_COUNT_DOWN_SCRIPT,
    GET_COUNT_DOWN: GET_COUNT_DOWN_SCRIPT,
    DEL_COUNT_DOWN: DEL_COUNT_DOWN_SCRIPT,
}


def _array(reply: Any) -> Sequence[Any]:
    if not isinstance(reply, (list, tuple)):
        raise TypeError(f"expected an array reply, got {type(reply).__name__}")
    return reply


def _read_int(reader: ArrayReplyReader, label: str) -> int:
    try:
        return reader.read_int64(0)
    except ValueError as error:
        log.error("%s: %s", label, error)
        return 0


class CountdownCommands:
    """Countdowns kept in the hash ``project:tag:k1``; failures are logged, not raised."""

    def __init__(self, scriptor: Scriptor) -> None:
        self.scriptor = scriptor

    def _run(self, name: str, keys: Sequence[str], args: Sequence[str]) -> Optional[Any]:
        try:
            return self.scriptor.exec_sha(name, keys, args)
        except (ScriptError, RedisError) as error:
            log.error("%s failed: %s", name, error)
            return None

    def dec_count_down(self, keys: Sequence[str], args: Sequence[str]) -> Tuple[int, int]:
        """Decrease a countdown; the reply is not read, so (0, 0) comes back."""
        self._run(DEC_COUNT_DOWN, keys, args)
        return 0, 0

    def get_count_down(self, keys: Sequence[str], args: Sequence[str]) -> Tuple[int, int]:
        """Return the count and end time; (0, 0) when the call fails."""
        reply = self._run(GET_COUNT_DOWN, keys, args)
        if reply is None:
            return 0, 0
        reader = ArrayReplyReader(_array(reply))
        count_down = _read_int(reader, "GetCountDown count")
        end_time = _read_int(reader, "GetCountDown end time")
        return count_down, end_time

    def del_count_down(self, keys: Sequence[str], args: Sequence[str]) -> Tuple[int, int]:
        """Delete a countdown; the reply is not read, so (0, 0) comes back."""
        self._run(DEL_COUNT_DOWN, keys, args)
        return 0, 0