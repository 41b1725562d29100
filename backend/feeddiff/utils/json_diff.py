from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple
import math

from feeddiff.utils.canonical import canonical_form, canonical_cache, ignore_set
from feeddiff.utils.json_path import PathToken
from feeddiff.utils.values import (
    ABSENT, is_array, is_object, is_primitive, primitives_equal, value_kind
)

MAX_DIFF_COUNT = 999

# Thresholds for the cheap estimates used on large arrays
LARGE_ARRAY_LENGTH = 100
SAMPLED_ARRAY_LENGTH = 500
SAMPLE_SIZE = 20


class DiffStatus(str, Enum):
    SAME = "same"
    DIFFERENT = "different"
    MISSING = "missing"
    ADDED = "added"


class ComparisonCache:
    """
    Memo of pairwise equality results for a single comparison run.

    Keyed by the identity of both composite nodes. Only used for comparisons
    without ignored keys.
    """

    def __init__(self):
        self._results: Dict[Tuple[int, int], Tuple[Any, Any, bool]] = {}

    def __len__(self) -> int:
        return len(self._results)

    def get(self, a: Any, b: Any) -> Optional[bool]:
        entry = self._results.get((id(a), id(b)))
        if entry is not None and entry[0] is a and entry[1] is b:
            return entry[2]
        return None

    def put(self, a: Any, b: Any, result: bool) -> None:
        self._results[(id(a), id(b))] = (a, b, result)


def _sorted_forms(values: Any, ignored: FrozenSet[str]) -> List[str]:
    return sorted(canonical_form(item, ignored, canonical_cache) for item in values)


def _equal(a: Any, b: Any, ignored: FrozenSet[str], cache: ComparisonCache) -> bool:
    if a is b:
        return True

    kind = value_kind(a)
    if kind != value_kind(b):
        return False

    if kind not in ("array", "object"):
        return primitives_equal(a, b)

    memoize = not ignored
    if memoize:
        cached = cache.get(a, b)
        if cached is not None:
            return cached

    if kind == "array":
        if len(a) != len(b):
            result = False
        elif len(a) == 0:
            result = True
        else:
            result = _sorted_forms(a, ignored) == _sorted_forms(b, ignored)
    else:
        a_keys = sorted(k for k in a.keys() if k not in ignored)
        b_keys = sorted(k for k in b.keys() if k not in ignored)
        result = a_keys == b_keys and all(
            _equal(a[key], b[key], ignored, cache) for key in a_keys
        )

    if memoize:
        cache.put(a, b, result)
    return result


def deep_equal_ignore_order(
    a: Any,
    b: Any,
    ignored_keys: Optional[Iterable[str]] = None,
    cache: Optional[ComparisonCache] = None,
) -> bool:
    """
    Compare two tree values ignoring array order.

    Arrays are compared as multisets, objects key by key after dropping
    `ignored_keys` on both sides. Never raises for JSON-like input.
    """
    if cache is None:
        cache = ComparisonCache()
    return _equal(a, b, ignore_set(ignored_keys), cache)


compare = deep_equal_ignore_order


def get_diff_status(
    value: Any,
    other_value: Any,
    side: str,
    ignored_keys: Optional[Iterable[str]] = None,
) -> DiffStatus:
    """
    Classify one side of a tracked key.

    When either value is absent the key reads as `missing` from the left side
    and as `added` from the right side.
    """
    if side not in ("left", "right"):
        raise ValueError(f"side must be 'left' or 'right', got {side!r}")

    if other_value is ABSENT or value is ABSENT:
        return DiffStatus.MISSING if side == "left" else DiffStatus.ADDED
    if deep_equal_ignore_order(value, other_value, ignored_keys):
        return DiffStatus.SAME
    return DiffStatus.DIFFERENT


classify = get_diff_status


def _count_sorted_mismatches(a_sorted: List[str], b_sorted: List[str], max_count: int) -> int:
    i = j = diff = 0
    while (i < len(a_sorted) or j < len(b_sorted)) and diff < max_count:
        if i >= len(a_sorted):
            j += 1
        elif j >= len(b_sorted):
            i += 1
        elif a_sorted[i] == b_sorted[j]:
            i += 1
            j += 1
            continue
        elif a_sorted[i] < b_sorted[j]:
            i += 1
        else:
            j += 1
        diff += 1
    return diff


def _count(
    a: Any,
    b: Any,
    ignored: FrozenSet[str],
    max_count: int,
    cache: ComparisonCache,
) -> int:
    if a is ABSENT and b is ABSENT:
        return 0
    if a is ABSENT or b is ABSENT:
        return 1
    if is_primitive(a) or is_primitive(b):
        return 0 if _equal(a, b, ignored, cache) else 1

    if is_array(a) and is_array(b):
        len_a, len_b = len(a), len(b)
        if len_a > LARGE_ARRAY_LENGTH or len_b > LARGE_ARRAY_LENGTH:
            if len_a != len_b:
                return min(abs(len_a - len_b) + 1, max_count)
            if len_a > SAMPLED_ARRAY_LENGTH:
                # Estimate: compare evenly spaced positions and extrapolate
                mismatches = 0
                for i in range(SAMPLE_SIZE):
                    idx = (i * len_a) // SAMPLE_SIZE
                    if not _equal(a[idx], b[idx], ignored, cache):
                        mismatches += 1
                estimate = math.floor(mismatches / SAMPLE_SIZE * len_a + 0.5)
                return min(estimate, max_count)

        diff = _count_sorted_mismatches(
            _sorted_forms(a, ignored), _sorted_forms(b, ignored), max_count
        )
        return min(diff, max_count)

    if is_object(a) and is_object(b):
        keys = list(a.keys())
        keys.extend(key for key in b.keys() if key not in a)
        diff = 0
        for key in keys:
            if key in ignored:
                continue
            if diff >= max_count:
                break
            diff += _count(
                a.get(key, ABSENT), b.get(key, ABSENT), ignored, max_count - diff, cache
            )
        return min(diff, max_count)

    return 0 if _equal(a, b, ignored, cache) else 1


def count_differences(
    a: Any,
    b: Any,
    ignored_keys: Optional[Iterable[str]] = None,
    max_count: int = MAX_DIFF_COUNT,
    cache: Optional[ComparisonCache] = None,
) -> int:
    """
    Count differing leaf paths between two tree values, up to `max_count`.

    The result is exact for objects and for arrays of up to 100 elements.
    For larger arrays it is an estimate: unequal lengths report the length
    difference plus one, and equal-length arrays over 500 elements are
    extrapolated from a 20-position sample. A result equal to `max_count`
    means "at least this many".
    """
    if max_count <= 0:
        return 0
    if cache is None:
        cache = ComparisonCache()
    return max(0, min(_count(a, b, ignore_set(ignored_keys), max_count, cache), max_count))


def iter_leaves(
    obj: Any,
    descend_arrays: bool = True,
    parent: Tuple[PathToken, ...] = (),
) -> Iterator[Tuple[Tuple[PathToken, ...], Any]]:
    """
    Yield `(tokens, value)` for every leaf below `obj`, objects in key order.

    Empty arrays and objects are leaves. With `descend_arrays=False` every
    array is a single leaf, so it can be compared ignoring order. The root
    itself is never yielded.
    """
    if is_object(obj) and obj:
        children = [((*parent, key), value) for key, value in sort_entries(obj)]
    elif is_array(obj) and obj and descend_arrays:
        children = [((*parent, i), value) for i, value in enumerate(obj)]
    else:
        if parent:
            yield parent, obj
        return

    for tokens, value in children:
        yield from iter_leaves(value, descend_arrays, tokens)



def sort_entries(obj: Dict[str, Any]) -> List[Tuple[str, Any]]:
    """Object entries sorted by key, for stable display."""
    return sorted(obj.items(), key=lambda item: item[0])


def sort_array_values(values: List[Any]) -> List[Any]:
    """Array values sorted by canonical form; large arrays are returned as is."""
    if len(values) > SAMPLED_ARRAY_LENGTH:
        return values
    return sorted(values, key=canonical_form)
