"""
Canonical forms for order-insensitive equality of tree values.

A canonical form is a string used only as an equality/sort key. Two values
that are equal ignoring array order (and ignoring the given field names) get
the same canonical form. Arrays longer than MAX_CANONICAL_ARRAY and objects
with more than MAX_CANONICAL_OBJECT_KEYS keys collapse to a size placeholder,
so such oversized collections are only distinguished by their size.
"""
import json
import math
import threading
import time
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from feeddiff.utils.values import ABSENT, is_array, is_object

MAX_CANONICAL_ARRAY = 1000
MAX_CANONICAL_OBJECT_KEYS = 500

DEFAULT_IDLE_SECONDS = 60.0
DEFAULT_MAX_ENTRIES = 100_000


def ignore_set(ignored_keys: Optional[Iterable[str]]) -> FrozenSet[str]:
    if not ignored_keys:
        return frozenset()
    if isinstance(ignored_keys, frozenset):
        return ignored_keys
    return frozenset(ignored_keys)


class CanonicalCache:
    """
    Process-wide memo of canonical forms keyed by node identity.

    Every entry keeps a reference to its node, so an id cannot be reused by
    another object while the entry exists. The whole cache is dropped after
    `idle_seconds` without use, once it holds `max_entries` entries, or when
    `clear()` is called. Results never depend on the cache being populated.
    """

    def __init__(
        self,
        idle_seconds: float = DEFAULT_IDLE_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self.idle_seconds = idle_seconds
        self.max_entries = max_entries
        self._entries: Dict[Tuple[int, FrozenSet[str]], Tuple[Any, str]] = {}
        self._last_used = time.monotonic()
        self._generation = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def generation(self) -> int:
        """Number of times the cache has been discarded."""
        return self._generation

    def clear(self) -> None:
        with self._lock:
            self._entries = {}
            self._generation += 1

    def _touch(self) -> None:
        now = time.monotonic()
        if now - self._last_used > self.idle_seconds and self._entries:
            self.clear()
        self._last_used = now

    def get(self, node: Any, ignored: FrozenSet[str]) -> Optional[str]:
        self._touch()
        entry = self._entries.get((id(node), ignored))
        if entry is not None and entry[0] is node:
            return entry[1]
        return None

    def put(self, node: Any, ignored: FrozenSet[str], form: str) -> None:
        if len(self._entries) >= self.max_entries:
            self.clear()
        self._entries[(id(node), ignored)] = (node, form)


canonical_cache = CanonicalCache()


def _canonical_number(value: Any) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _canonical_primitive(value: Any) -> str:
    if value is None:
        return "null"
    if value is ABSENT:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _canonical_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    return json.dumps(str(value), ensure_ascii=False)


def _build(value: Any, ignored: FrozenSet[str], cache: Optional[CanonicalCache]) -> str:
    if is_array(value):
        if len(value) > MAX_CANONICAL_ARRAY:
            return f"[array:{len(value)}]"
        items = sorted(canonical_form(item, ignored, cache) for item in value)
        return "[" + ",".join(items) + "]"

    keys = [key for key in value.keys() if key not in ignored]
    if len(keys) > MAX_CANONICAL_OBJECT_KEYS:
        return f"{{object:{len(keys)}}}"
    entries = [
        f"{json.dumps(str(key), ensure_ascii=False)}:{canonical_form(value[key], ignored, cache)}"
        for key in sorted(keys, key=str)
    ]
    return "{" + ",".join(entries) + "}"


def canonical_form(
    value: Any,
    ignored_keys: Optional[Iterable[str]] = None,
    cache: Optional[CanonicalCache] = canonical_cache,
) -> str:
    """
    Build the canonical form of a tree value.

    Args:
        value: Any JSON-like value, or ABSENT.
        ignored_keys: Field names dropped from every object in the tree.
        cache: Memo for composite nodes; pass None to disable memoization.

    Returns:
        Deterministic string, equal for order-insensitively equal values.
    """
    ignored = ignore_set(ignored_keys)

    if not (is_array(value) or is_object(value)):
        return _canonical_primitive(value)

    if cache is not None:
        cached = cache.get(value, ignored)
        if cached is not None:
            return cached

    form = _build(value, ignored, cache)

    if cache is not None:
        cache.put(value, ignored, form)
    return form
