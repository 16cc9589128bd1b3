import hashlib
from collections import defaultdict

import pytest
import redis

from redscriptor import scripts
from redscriptor.scripts import ScriptError
from redscriptor.scriptor import DEFAULT_SCRIPT_DEFINITION, from_client, new_db


class FakeRedis:
    def __init__(self, ping_error=None):
        self.dbs = defaultdict(dict)
        self.loaded = {}
        self.calls = []
        self.result = ["ok"]
        self.closed = False
        self.ping_error = ping_error

    def ping(self):
        if self.ping_error is not None:
            raise self.ping_error
        return True

    def close(self):
        self.closed = True

    def script_load(self, body):
        sha = hashlib.sha1(body.encode()).hexdigest()
        self.loaded[sha] = body
        return sha

    def script_exists(self, *shas):
        return [sha in self.loaded for sha in shas]

    def evalsha(self, sha, numkeys, *rest):
        if sha not in self.loaded:
            raise redis.exceptions.NoScriptError("NOSCRIPT")
        self.calls.append(("evalsha", sha, list(rest[:numkeys]), [str(a) for a in rest[numkeys:]]))
        return self.result

    def eval(self, script, numkeys, *rest):
        keys = list(rest[:numkeys])
        argv = [str(a) for a in rest[numkeys:]]

        def arg(i):
            if i > len(argv):
                raise redis.ResponseError("Lua redis() command arguments must be strings or integers")
            return argv[i - 1]

        if script == scripts.LOAD_TEMPLATE:
            store = self.dbs[int(argv[0])]
            return [part for item in store.get(keys[0], {}).items() for part in item]
        if script == scripts.GET_TEMPLATE:
            return self.dbs[int(argv[0])].get(keys[0], {}).get(arg(2))
        if script == scripts.SET_TEMPLATE:
            self.dbs[int(argv[0])].setdefault(keys[0], {})[arg(2)] = arg(3)
            return 1
        if script == scripts.EXISTS_TEMPLATE:
            return int(keys[0] in self.dbs[int(argv[0])])
        if script == scripts.HEXISTS_TEMPLATE:
            return int(arg(2) in self.dbs[int(argv[0])].get(keys[0], {}))
        self.calls.append(("eval", script, keys, argv))
        return self.result


def test_from_client_requires_client():
    with pytest.raises(ValueError):
        from_client(None, 1, "def", None)


def test_new_db_requires_option():
    with pytest.raises(ValueError):
        new_db(None, 1, "def", None)


def test_without_scripts_nothing_is_loaded():
    scriptor = from_client(FakeRedis(), 15, "BFTGaming|0.0.1", None)
    assert scriptor.scripts == {}
    assert scriptor.script_definition == "BFTGaming|0.0.1"


def test_empty_definition_uses_default():
    fake = FakeRedis()
    scriptor = from_client(fake, 1, "", {"echo": "return ARGV[1]"})
    assert scriptor.script_definition == DEFAULT_SCRIPT_DEFINITION
    assert fake.dbs[1]["scriptor_v.0.0.0"] == scriptor.scripts


def test_ping_failure_propagates():
    fake = FakeRedis(ping_error=redis.ConnectionError("down"))
    with pytest.raises(redis.ConnectionError):
        from_client(fake, 1, "def", None)


def test_exec_sha_runs_registered_script_with_flattened_args():
    fake = FakeRedis()
    scriptor = from_client(fake, 1, "def", {"echo": "return ARGV[1]"})
    assert scriptor.exec_sha("echo", ["k"], ["a", "b"]) == ["ok"]
    assert fake.calls[-1] == ("evalsha", scriptor.scripts["echo"], ["k"], ["a", "b"])


def test_exec_sha_without_keys():
    fake = FakeRedis()
    scriptor = from_client(fake, 1, "def", {"echo": "return ARGV[1]"})
    scriptor.exec_sha("echo", None, "x", "y")
    assert fake.calls[-1] == ("evalsha", scriptor.scripts["echo"], [], ["x", "y"])


def test_exec_sha_unknown_name():
    scriptor = from_client(FakeRedis(), 1, "def", {"echo": "return 1"})
    with pytest.raises(ScriptError):
        scriptor.exec_sha("missing", ["k"])


def test_exec_runs_script_body():
    fake = FakeRedis()
    scriptor = from_client(fake, 1, "def", None)
    assert scriptor.exec("return 1", ["k"], "x") == ["ok"]
    assert fake.calls[-1] == ("eval", "return 1", ["k"], ["x"])


def test_exec_empty_script():
    scriptor = from_client(FakeRedis(), 1, "def", None)
    with pytest.raises(ScriptError):
        scriptor.exec("", ["k"])


def test_close_and_context_manager_close_client():
    fake = FakeRedis()
    with from_client(fake, 1, "def", None) as scriptor:
        assert scriptor.client is fake
    assert fake.closed