"""Numeric hash fields: decrement, read and delete through registered scripts."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from redis.exceptions import RedisError

from .reply import ArrayReplyReader, ScriptResult
from .scriptor import Scriptor
from .scripts import ScriptError

log = logging.getLogger(__name__)

DEC_VALUE = "DecValue"
DEC_NEGATIVE_VALUE = "DecNegativeValue"
DEC_VALUE_BATCH = "DecValueBatch"
DEC_VALUE_BEFORE = "DecValueBefore"
DEL_VALUE = "DelValue"
GET_VALUE = "GetValue"
GET_VALUE_ALL = "GetValueAll"


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


# Scripts addressing the hash "<project>:<tag>:<name>" and one of its fields.
_FIELD_PRELUDE = """
local db = tonumber(KEYS[1])
local project, tag = KEYS[2], KEYS[3]
local name, field = ARGV[1], ARGV[2]
"""

DEC_VALUE_SCRIPT = (
    _FIELD_PRELUDE
    + """
local amount = tonumber(ARGV[3])
if not (db and project and tag and name and field and amount) then
    return
end
local hash = table.concat({project, tag, name}, ":")
redis.call("SELECT", db)
local current = tonumber(redis.call("HGET", hash, field))
local reply = {-1}
if amount <= current then
    reply = redis.call("HINCRBY", hash, field, -amount)
    redis.call("HSET", hash, "lastUpdateTime", redis.call("TIME")[1])
end
return {reply}
"""
)

DEC_NEGATIVE_VALUE_SCRIPT = (
    _FIELD_PRELUDE
    + """
local amount = tonumber(ARGV[3])
if not (db and project and tag and name and field and amount) then
    return
end
local hash = table.concat({project, tag, name}, ":")
redis.call("SELECT", db)
local reply = redis.call("HINCRBY", hash, field, -amount)
redis.call("HSET", hash, "lastUpdateTime", redis.call("TIME")[1])
return {reply}
"""
)

DEC_VALUE_BATCH_SCRIPT = """
local db = tonumber(KEYS[1])
local project, tag, name = KEYS[2], KEYS[3], KEYS[4]
if not (db and project and tag and name) then
    return
end
local hash = table.concat({project, tag, name}, ":")
redis.call("SELECT", db)
for i = 1, #ARGV, 2 do
    redis.call("HINCRBY", hash, ARGV[i], -ARGV[i + 1])
end
redis.call("HSET", hash, "lastUpdateTime", redis.call("TIME")[1])
return ARGV
"""

DEC_VALUE_BEFORE_SCRIPT = (
    _FIELD_PRELUDE
    + """
local amount = tonumber(ARGV[3])
if not (db and project and tag and name and field and amount) then
    return
end
local hash = table.concat({project, tag, name}, ":")
redis.call("SELECT", db)
local previous = redis.call("HGET", hash, field)
local updated = {}
if amount <= tonumber(previous) then
    updated = redis.call("HINCRBY", hash, field, -amount)
    redis.call("HSET", hash, "lastUpdateTime", redis.call("TIME")[1])
end
return {previous, updated}
"""
)

_FIELD_CHECKS = _require(
    ("db", "DBKey"),
    ("project", "ProjectKey"),
    ("tag", "TagKey"),
    ("name", "k1"),
    ("field", "k2"),
)

DEL_VALUE_SCRIPT = (
    _FIELD_PRELUDE
    + _FIELD_CHECKS
    + """
local hash = table.concat({project, tag, name}, ":")
redis.call("SELECT", db)
redis.call("HDEL", hash, field)
return {redis.call("HGET", hash, field)}
"""
)

GET_VALUE_SCRIPT = (
    _FIELD_PRELUDE
    + _FIELD_CHECKS
    + """
local hash = table.concat({project, tag, name}, ":")
redis.call("SELECT", db)
return {redis.call("HGET", hash, field)}
"""
)

GET_VALUE_ALL_SCRIPT = """
local db = tonumber(KEYS[1])
local project, tag, name = KEYS[2], KEYS[3], ARGV[1]
if not (db and project and tag and name) then
    return
end
redis.call("SELECT", db)
return redis.call("HGETALL", table.concat({project, tag, name}, ":"))
"""

SCRIPTS = {
    DEC_VALUE: DEC_VALUE_SCRIPT,
    DEC_NEGATIVE_VALUE: DEC_NEGATIVE_VALUE_SCRIPT,
    DEC_VALUE_BATCH: DEC_VALUE_BATCH_SCRIPT,
    DEC_VALUE_BEFORE: DEC_VALUE_BEFORE_SCRIPT,
    DEL_VALUE: DEL_VALUE_SCRIPT,
    GET_VALUE: GET_VALUE_SCRIPT,
    GET_VALUE_ALL: GET_VALUE_ALL_SCRIPT,
}


def _array(reply: Any) -> Sequence[Any]:
    if not isinstance(reply, (list, tuple)):
        raise TypeError(f"expected an array reply, got {type(reply).__name__}")
    return reply


def _spread(args: Iterable[Any]) -> Iterator[Any]:
    """Expand lists and mappings among ``args`` into their items."""
    for arg in args:
        if isinstance(arg, Mapping):
            for field, amount in arg.items():
                yield field
                yield amount
        elif isinstance(arg, (list, tuple)):
            yield from arg
        else:
            yield arg


class ValueCommands:
    """Counters stored as fields of the hash ``project:tag:k1``."""

    def __init__(self, scriptor: Scriptor) -> None:
        self.scriptor = scriptor

    def _reader(self, name: str, keys: Optional[Sequence[str]], args: Any) -> ArrayReplyReader:
        return ArrayReplyReader(_array(self.scriptor.exec_sha(name, keys, args)))

    def dec_value(self, keys: Sequence[str], args: Sequence[str]) -> int:
        """Decrease a field if it holds enough; return the new value, or 0 if unchanged."""
        return self._reader(DEC_VALUE, keys, args).read_int64(0)

    def dec_negative_value(self, keys: Sequence[str], args: Sequence[str]) -> int:
        """Decrease a field even below zero; return the new value."""
        return self._reader(DEC_NEGATIVE_VALUE, keys, args).read_int64(0)

    def dec_value_batch(self, keys: Sequence[str], *args: Any) -> List[ScriptResult]:
        """Decrease several fields; return the field and amount pairs that were applied."""
        reply = _array(self.scriptor.exec_sha(DEC_VALUE_BATCH, keys, list(_spread(args))))
        reader = ArrayReplyReader(reply)
        return [
            ScriptResult(key=reader.read_string(), value=reader.read_string())
            for _ in range(len(reply) // 2)
        ]

    def dec_value_before(self, keys: Sequence[str], args: Sequence[str]) -> Tuple[int, int]:
        """Decrease a field if it holds enough; return the values before and after."""
        reader = self._reader(DEC_VALUE_BEFORE, keys, args)
        before = reader.read_int64(0)
        after = reader.read_int64(0)
        return before, after

    def del_value(self, keys: Sequence[str], args: Sequence[str]) -> None:
        """Delete a field; failures are logged, not raised."""
        try:
            self.scriptor.exec_sha(DEL_VALUE, keys, args)
        except (ScriptError, RedisError) as error:
            log.error("DelValue failed: %s", error)

    def get_value(self, keys: Sequence[str], args: Sequence[str]) -> int:
        """Return a field's numeric value, or 0 when it is absent."""
        return self._reader(GET_VALUE, keys, args).read_int64(0)

    def get_value_all(self, keys: Sequence[str], args: Sequence[str]) -> List[ScriptResult]:
        """Return every field with its numeric value; unreadable numbers give 0."""
        reply = _array(self.scriptor.exec_sha(GET_VALUE_ALL, keys, args))
        reader = ArrayReplyReader(reply)
        results = []
        for _ in range(len(reply) // 2):
            key = reader.read_string()
            try:
                number = reader.read_int64(0)
            except ValueError as error:
                log.error("GetValueAll value error for %r: %s", key, error)
                number = 0
            results.append(ScriptResult(key=key, value_int64=number))
        return results