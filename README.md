# redscriptor

redscriptor keeps a registry of Lua scripts on a Redis server and calls them
by name through `EVALSHA`. It also ships ready-made scripts, with Python
wrappers, for numeric hash fields, hashes, sorted sets, countdown counters
and pub/sub broadcasts.

## Installation

```
pip install redscriptor
```

## How scripts are managed

Script SHA1 digests are stored in a Redis hash (the *script definition*,
`scriptor_v.0.0.0` unless you give another name) in a chosen database.

* When you pass a mapping of script names to Lua bodies, each name is looked
  up in the registry first; if a digest is recorded and the server still has
  it cached, it is reused, otherwise the body is loaded with `SCRIPT LOAD`
  and its digest is recorded.
* When you pass no scripts, the whole registry is read back and every digest
  is checked against the script cache. A digest the server no longer has
  raises `redscriptor.scripts.ScriptError` asking you to reload your scripts.

This logic lives in `redscriptor.scripts` (`ScriptDescriptor`,
`new_script_descriptor`).

## Connecting

```python
from redscriptor.options import Option
from redscriptor.scriptor import new_db

password = "password"
option = Option(host="localhost", port=6379, password=password, db=0, pool_size=3)

scripts = {"Echo": "return ARGV[1]"}
with new_db(option, 1, "myapp|0.0.1", scripts) as scriptor:
    print(scriptor.exec_sha("Echo", [], "hello"))   # runs the registered script
    print(scriptor.exec("return 1", []))             # runs an inline script
```

`Option.create()` builds a `redis.Redis` client whose reads never time out.
`fast_init(...)` takes the connection settings as separate arguments, and
`from_client(...)` reuses a client you already have. All three ping the
server before registering or loading scripts, so an unreachable server
raises at once. `exec_sha` with a name that is not registered, or `exec`
with an empty script, raises `ScriptError`. A single list or mapping passed
as the arguments is spread into separate script arguments.

## Reading replies

`redscriptor.reply` turns raw script replies into typed values:

```python
from redscriptor.reply import ArrayReplyReader

reader = ArrayReplyReader(["42", "3.5", "name"])
reader.read_int64(0)      # 42
reader.read_float64(0.0)  # 3.5
reader.read_string()      # "name"
reader.read_string()      # "" once the reply is exhausted
```

`ReplyValue` converts a single value (`as_int32`, `as_int64`, `as_float64`,
`as_string`); text that is not a number raises `ValueError`. `nullable_int`
and `nullable_string` keep a nil value as `None`. `ScriptResult` is the small
record the command classes return.

## Ready-made commands

Each command class wraps a connected `Scriptor`, and each of these modules
has a `SCRIPTS` mapping of the script names it calls to their Lua bodies.
Register the ones you use when you connect:

```python
from redscriptor import counters, hashes, pubsub, values, zsets
from redscriptor.scriptor import new_db

scripts = {**values.SCRIPTS, **hashes.SCRIPTS, **zsets.SCRIPTS,
           **counters.SCRIPTS, **pubsub.SCRIPTS}
scriptor = new_db(option, 1, "myapp|0.0.1", scripts)

keys = ["2", "minigame1", "game"]            # database, project key, tag key
zsets.ZsetCommands(scriptor).get_zset_all(keys, ["zsettest", "0", "-1"])
```

Data lives under keys of the form `ProjectKey:TagKey:k1`; the first three
script keys are the database number, the project key and the tag key.

| Module | Class | Covers |
| --- | --- | --- |
| `redscriptor.values` | `ValueCommands` | decrement (guarded, unguarded, batch, with previous value), read and delete numeric hash fields |
| `redscriptor.counters` | `CountdownCommands` | `count:end` countdown entries in hash fields |
| `redscriptor.hashes` | `HashCommands` | single fields, whole hashes, directly named hashes, `get_system_rtp` snapshots |
| `redscriptor.zsets` | `ZsetCommands` | ranges, reverse ranges, scores, ranks, counts, removals |
| `redscriptor.pubsub` | `BroadcastCommands` | `broadcast`, `publish`, `subscribe_string` (background thread), `close_subscribe` |

Delete commands, the countdown commands and the pub/sub commands log
failures through `logging` instead of raising; the read commands raise.

## What it does not do

There are no ready-made commands for lists, plain sets, string keys,
key existence or expiry, or flushing a database. For those, register your
own Lua scripts and call them with `Scriptor.exec_sha`, or run them inline
with `Scriptor.exec`.

## Running the tests

```
pip install -e ".[test]"
pytest
```