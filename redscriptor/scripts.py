"""Registration of Lua scripts and of their SHA1 digests in a Redis hash."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from redis.exceptions import RedisError

LOAD_TEMPLATE = """
\t\tredis.pcall('SELECT', ARGV[1])
\t\treturn redis.call('HGETALL', KEYS[1])
\t"""

GET_TEMPLATE = """
\t\tredis.pcall('SELECT', ARGV[1])
\t\treturn redis.call('HGET', KEYS[1], ARGV[2])
\t"""

SET_TEMPLATE = """
\t\tredis.pcall('SELECT', ARGV[1])
\t\treturn redis.call('HSET', KEYS[1], ARGV[2], ARGV[3])
\t"""

EXISTS_TEMPLATE = """
\t\tredis.pcall('SELECT', ARGV[1])
\t\treturn redis.call('EXISTS', KEYS[1])
\t"""

HEXISTS_TEMPLATE = """
\t\tredis.pcall('SELECT', ARGV[1])
\t\treturn redis.call('HEXISTS', KEYS[1], ARGV[2])
\t"""


class ScriptError(Exception):
    """A script is missing, unregistered or not in the server's cache."""


def _decode(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return value


def _key_exists(client, definition: str, db: int) -> None:
    if client.eval(EXISTS_TEMPLATE, 1, definition, db) == 0:
        raise ScriptError("Script key does not exist.")


def _member_exists(client, definition: str, name: str, db: int) -> None:
    if client.eval(HEXISTS_TEMPLATE, 2, definition, name, db) == 0:
        raise ScriptError("Script key does not exist.")


def _get_sha(client, definition: str, name: str, db: int) -> str:
    sha = _decode(client.eval(GET_TEMPLATE, 1, definition, db, name))
    if not sha:
        raise ScriptError("Script is not already")
    return sha


def _set_sha(client, definition: str, name: str, sha: str, db: int) -> None:
    client.eval(SET_TEMPLATE, 1, definition, db, name, sha)


def _ensure_cached(client, sha: str) -> None:
    if not client.script_exists(sha)[0]:
        raise ScriptError("script is not exists. please reload your script")


def _available_script(client, definition: str, db: int, name: str) -> str:
    """Return the stored digest of a script that the server still has cached."""
    _key_exists(client, definition, db)
    _member_exists(client, definition, name, db)
    sha = _get_sha(client, definition, name, db)
    _ensure_cached(client, sha)
    return sha


class ScriptDescriptor:
    """Maps script names to the SHA1 digests under which the server knows them."""

    def __init__(self) -> None:
        self.container: Dict[str, str] = {}

    def register(self, client, scripts: Mapping[str, str], definition: str, db: int) -> None:
        """Load each script unless a cached digest is already recorded, and record it."""
        self.container = {}
        for name, body in scripts.items():
            try:
                self.container[name] = _available_script(client, definition, db, name)
                continue
            except (ScriptError, RedisError):
                pass
            sha = _decode(client.script_load(body))
            _set_sha(client, definition, name, sha, db)
            self.container[name] = sha

    def load_scripts(self, client, definition: str, db: int) -> None:
        """Read recorded digests and check that the server still caches each one."""
        if client is None:
            raise ValueError("'client' can not be nil.")
        reply = client.eval(LOAD_TEMPLATE, 1, definition, db)
        if not isinstance(reply, (list, tuple)) or not reply:
            return
        self.container = {}
        items = iter(reply)
        for key, value in zip(items, items):
            sha = _decode(value)
            _ensure_cached(client, sha)
            self.container[_decode(key)] = sha


def new_script_descriptor(
    client, scripts: Optional[Mapping[str, str]], definition: str, db: int
) -> ScriptDescriptor:
    """Register ``scripts``, or load recorded ones when none are given."""
    if client is None:
        raise ValueError("'client' is invalid")
    descriptor = ScriptDescriptor()
    if not scripts:
        descriptor.load_scripts(client, definition, db)
    else:
        descriptor.register(client, scripts, definition, db)
    return descriptor