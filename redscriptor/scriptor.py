"""Script manager: a Redis client with registered Lua scripts."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .options import Option
from .scripts import ScriptError, new_script_descriptor

DEFAULT_SCRIPT_DEFINITION = "scriptor_v.0.0.0"


def _flatten(args: Sequence[Any]) -> List[Any]:
    """Expand a single list or mapping argument into separate arguments."""
    if len(args) == 1:
        (only,) = args
        if isinstance(only, (list, tuple)):
            return list(only)
        if isinstance(only, Mapping):
            return [part for item in only.items() for part in item]
    return list(args)


class Scriptor:
    """Runs Lua scripts, by body or by registered name."""

    def __init__(self, client, script_db: int = 0, script_definition: str = "") -> None:
        self.client = client
        self.script_db = script_db
        self.script_definition = script_definition or DEFAULT_SCRIPT_DEFINITION
        self.scripts: Dict[str, str] = {}

    def _prepare(self, scripts: Optional[Mapping[str, str]]) -> "Scriptor":
        self.client.ping()
        descriptor = new_script_descriptor(
            self.client, scripts, self.script_definition, self.script_db
        )
        self.scripts = descriptor.container
        return self

    def exec(self, script: str, keys: Optional[Iterable[str]], *args: Any) -> Any:
        """Evaluate a script body."""
        if not script:
            raise ScriptError("script not found")
        key_list = list(keys or ())
        return self.client.eval(script, len(key_list), *key_list, *_flatten(args))

    def exec_sha(self, name: str, keys: Optional[Iterable[str]], *args: Any) -> Any:
        """Evaluate a registered script by its name."""
        sha = self.scripts.get(name)
        if not sha:
            raise ScriptError("script not found.")
        key_list = list(keys or ())
        return self.client.evalsha(sha, len(key_list), *key_list, *_flatten(args))

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "Scriptor":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def fast_init(
    host: str,
    port: int,
    password: str,
    db: int,
    pool_size: int,
    script_db: int,
    script_definition: str,
    scripts: Optional[Mapping[str, str]],
) -> Scriptor:
    """Connect to a server and register or load scripts."""
    option = Option(host=host, port=port, password=password, db=db, pool_size=pool_size)
    return Scriptor(option.create(), script_db, script_definition)._prepare(scripts)


def from_client(
    client, script_db: int, script_definition: str, scripts: Optional[Mapping[str, str]]
) -> Scriptor:
    """Use an existing client and register or load scripts."""
    if client is None:
        raise ValueError("'client' cannot be nil")
    return Scriptor(client, script_db, script_definition)._prepare(scripts)


def new_db(
    option: Optional[Option],
    script_db: int,
    script_definition: str,
    scripts: Optional[Mapping[str, str]],
) -> Scriptor:
    """Connect with ``option`` and register or load scripts."""
    if option is None:
        raise ValueError("'option' cannot be nil")
    return Scriptor(option.create(), script_db, script_definition)._prepare(scripts)