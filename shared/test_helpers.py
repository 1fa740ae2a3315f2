"""
Test helper functions and factory methods for the cache access service.
"""

import math
import re
import time
from typing import Any, Callable, Dict, List, Optional, Pattern

from redis.exceptions import ConnectionError as RedisConnectionError

from shared.config import ServiceConfig, get_config
from shared.retry import RetryConfig


STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

SAMPLE_FENS = [
    STARTING_FEN,
    "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1",
    "rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w KQkq e6 0 2",
    "rnbqkbnr/pp1ppppp/8/2p5/4P3/8/PPPP1PPP/RNBQKBNR w KQkq c6 0 2",
    "rnbqkb1r/pppppppp/5n2/8/3P4/8/PPP1PPPP/RNBQKBNR w KQkq - 1 2",
]


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def glob_to_regex(pattern: str) -> Pattern:
    """Translate a Redis glob pattern (``*``, ``?``, ``[...]``, ``\\`` escapes)."""
    parts = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(char))
            else:
                body = pattern[i + 1:end].replace("\\", "\\\\")
                parts.append(f"[{body}]")
                i = end + 1
                continue
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


class InMemoryRedis:
    """Async in-memory double for the redis.asyncio commands the store adapter uses.

    Set ``unavailable`` to make every command fail with a connection error.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None, used_memory_human: str = "1.05M"):
        self.clock = clock or time.monotonic
        self.used_memory_human = used_memory_human
        self.unavailable = False
        self.closed = False
        self.commands: List[str] = []
        self._data: Dict[str, bytes] = {}
        self._expires_at: Dict[str, float] = {}

    def _check(self, command: str) -> None:
        self.commands.append(command)
        if self.unavailable:
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    @staticmethod
    def _name(key: Any) -> str:
        return key.decode("utf-8") if isinstance(key, bytes) else str(key)

    def _live(self, name: str) -> bool:
        expires_at = self._expires_at.get(name)
        if expires_at is not None and expires_at <= self.clock():
            self._data.pop(name, None)
            self._expires_at.pop(name, None)
        return name in self._data

    async def ping(self) -> bool:
        self._check("PING")
        return True

    async def get(self, key: Any) -> Optional[bytes]:
        self._check("GET")
        name = self._name(key)
        return self._data[name] if self._live(name) else None

    async def set(self, key: Any, value: Any, ex: Optional[int] = None) -> bool:
        self._check("SET")
        name = self._name(key)
        self._data[name] = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        self._expires_at.pop(name, None)
        if ex is not None:
            self._expires_at[name] = self.clock() + ex
        return True

    async def delete(self, *keys: Any) -> int:
        self._check("DEL")
        removed = 0
        for key in keys:
            name = self._name(key)
            if self._live(name):
                del self._data[name]
                self._expires_at.pop(name, None)
                removed += 1
        return removed

    async def exists(self, *keys: Any) -> int:
        self._check("EXISTS")
        return sum(1 for key in keys if self._live(self._name(key)))

    async def ttl(self, key: Any) -> int:
        self._check("TTL")
        name = self._name(key)
        if not self._live(name):
            return -2
        if name not in self._expires_at:
            return -1
        return int(math.ceil(self._expires_at[name] - self.clock()))

    async def scan_iter(self, match: Optional[str] = None, count: Optional[int] = None):
        self._check("SCAN")
        regex = glob_to_regex(match) if match is not None else None
        for name in list(self._data):
            if self._live(name) and (regex is None or regex.fullmatch(name)):
                yield name.encode("utf-8")

    async def info(self, section: Optional[str] = None) -> Dict[str, Any]:
        self._check("INFO")
        return {"used_memory": 1101824, "used_memory_human": self.used_memory_human}

    async def aclose(self) -> None:
        self.closed = True

    def raw_keys(self) -> List[str]:
        """All live physical keys, bypassing the availability switch."""
        return [name for name in list(self._data) if self._live(name)]


def make_test_config(**overrides) -> ServiceConfig:
    """Service configuration for tests."""
    values = {
        "env": "test",
        "log_level": "debug",
        "redis_host": "localhost",
        "redis_port": 6379,
        "redis_key_prefix": "lbt:",
        "cache_default_ttl": 86400,
        "cache_lichess_ttl": 604800,
    }
    values.update(overrides)
    return get_config("cache", **values)


def fast_retry_config(max_attempts: int = 2) -> RetryConfig:
    """Reconnect policy without real waiting."""
    return RetryConfig(
        max_attempts=max_attempts,
        base_delay=0.0,
        max_delay=0.0,
        jitter=False,
        backoff_strategy="linear",
    )


class ExplorerDataFactory:
    """Factory for opening explorer payloads."""

    @staticmethod
    def create_explorer_response(white: int = 1000, draws: int = 800, black: int = 600) -> Dict[str, Any]:
        """Explorer payload in the upstream API shape."""
        return {
            "white": white,
            "draws": draws,
            "black": black,
            "moves": [
                {
                    "uci": "e2e4",
                    "san": "e4",
                    "white": 500,
                    "draws": 350,
                    "black": 300,
                    "averageRating": 2410
                },
                {
                    "uci": "d2d4",
                    "san": "d4",
                    "white": 400,
                    "draws": 380,
                    "black": 250,
                    "averageRating": 2425
                }
            ],
            "topGames": [
                {
                    "id": "abc123",
                    "winner": "white",
                    "white": {"name": "Carlsen, M.", "rating": 2863},
                    "black": {"name": "Caruana, F.", "rating": 2835},
                    "year": 2019
                }
            ],
            "opening": {"eco": "A00", "name": "Start position"}
        }

    @staticmethod
    def create_minimal_response() -> Dict[str, Any]:
        """Explorer payload with only the required fields."""
        return {"white": 10, "draws": 5, "black": 3, "moves": []}
