"""Registry of server-side Lua scripts in Redis, with ready-made keyed data operations."""

__version__ = "0.1.0"

__all__ = [
    "counters",
    "hashes",
    "options",
    "pubsub",
    "reply",
    "scriptor",
    "scripts",
    "values",
    "zsets",
]