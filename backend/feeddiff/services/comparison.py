import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from feeddiff.services.keylog_store import KeyFinding
from feeddiff.utils.canonical import ignore_set
from feeddiff.utils.json_diff import (
    MAX_DIFF_COUNT, ComparisonCache, DiffStatus, count_differences,
    deep_equal_ignore_order, get_diff_status, iter_leaves
)
from feeddiff.utils.json_path import PathToken, format_json_path, get_by_path, get_by_tokens
from feeddiff.utils.values import ABSENT

logger = logging.getLogger(__name__)


@dataclass
class KeyComparison:
    """Classified values of one tracked key path."""

    path: str
    status: DiffStatus
    left_value: Any
    right_value: Any

    def to_finding(self) -> KeyFinding:
        return KeyFinding(self.path, self.left_value, self.right_value)


@dataclass
class ComparisonReport:
    equal: bool
    difference_count: int
    max_count: int
    findings: List[KeyComparison] = field(default_factory=list)

    @property
    def capped(self) -> bool:
        """True when counting stopped at the ceiling."""
        return self.difference_count >= self.max_count

    @property
    def summary(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in DiffStatus}
        for finding in self.findings:
            counts[finding.status.value] += 1
        return counts


def _leaf_tokens(
    left: Any,
    right: Any,
    ignored_keys: Optional[Iterable[str]] = None,
) -> List[Tuple[PathToken, ...]]:
    ignored = ignore_set(ignored_keys)
    tokens = {t for t, _ in iter_leaves(left, descend_arrays=False)}
    tokens.update(t for t, _ in iter_leaves(right, descend_arrays=False))
    tokens = {t for t in tokens if ignored.isdisjoint(t)}
    return sorted(tokens, key=lambda t: (format_json_path(t), t))


def default_key_paths(
    left: Any,
    right: Any,
    ignored_keys: Optional[Iterable[str]] = None,
) -> List[str]:
    """
    Leaf paths present on either side, sorted.

    Arrays are tracked as a whole, never by position, and paths through an
    ignored key are left out.
    """
    return [format_json_path(tokens) for tokens in _leaf_tokens(left, right, ignored_keys)]


def _classify(
    path: str,
    left_value: Any,
    right_value: Any,
    ignored_keys: Optional[Iterable[str]],
) -> KeyComparison:
    if left_value is ABSENT and right_value is ABSENT:
        status = DiffStatus.SAME
    elif left_value is ABSENT:
        status = get_diff_status(right_value, left_value, "right", ignored_keys)
    else:
        status = get_diff_status(left_value, right_value, "left", ignored_keys)
    return KeyComparison(path, status, left_value, right_value)


def classify_key(
    path: str,
    left: Any,
    right: Any,
    ignored_keys: Optional[Iterable[str]] = None,
) -> KeyComparison:
    return _classify(path, get_by_path(left, path), get_by_path(right, path), ignored_keys)


def compare_trees(
    left: Any,
    right: Any,
    key_paths: Optional[Iterable[str]] = None,
    ignored_keys: Optional[Iterable[str]] = None,
    max_count: int = MAX_DIFF_COUNT,
) -> ComparisonReport:
    """
    Compare two responses and classify every tracked key path.

    When `key_paths` is None the leaf paths of both trees are tracked, with
    each array tracked as one value.
    """
    ignored = list(ignored_keys or [])
    cache = ComparisonCache()

    equal = deep_equal_ignore_order(left, right, ignored, cache)
    difference_count = 0 if equal else count_differences(left, right, ignored, max_count, cache)

    if key_paths is None:
        # Resolve by tokens, mapping keys may contain path separators
        findings = [
            _classify(
                format_json_path(tokens),
                get_by_tokens(left, tokens),
                get_by_tokens(right, tokens),
                ignored,
            )
            for tokens in _leaf_tokens(left, right, ignored)
        ]
    else:
        findings = [classify_key(path, left, right, ignored) for path in key_paths]

    logger.debug(f"Compared trees: equal={equal} differences={difference_count} keys={len(findings)}")
    return ComparisonReport(
        equal=equal,
        difference_count=difference_count,
        max_count=max_count,
        findings=findings,
    )
