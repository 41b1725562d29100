import copy

import pytest

from feeddiff.utils.json_diff import (
    ComparisonCache, DiffStatus, count_differences, deep_equal_ignore_order,
    get_diff_status, iter_leaves, sort_array_values, sort_entries
)
from feeddiff.utils.values import ABSENT


TREES = [
    None,
    0,
    1.5,
    "x",
    True,
    [],
    {},
    [1, [2, 3], {"a": None}],
    {"trip": {"stops": [{"id": "A"}, {"id": "B"}]}, "delay": 30},
]


class TestDeepEqual:
    """Order-insensitive structural equality"""

    @pytest.mark.parametrize("tree", TREES)
    def test_reflexive(self, tree):
        assert deep_equal_ignore_order(tree, tree)
        assert deep_equal_ignore_order(tree, copy.deepcopy(tree))

    @pytest.mark.parametrize("a", TREES)
    @pytest.mark.parametrize("b", TREES)
    def test_symmetric(self, a, b):
        assert deep_equal_ignore_order(a, b) == deep_equal_ignore_order(b, a)
        assert deep_equal_ignore_order(a, b, ["a"]) == deep_equal_ignore_order(b, a, ["a"])

    def test_array_order_ignored(self):
        assert deep_equal_ignore_order([1, 2, 3], [3, 2, 1])

    def test_array_is_a_multiset(self):
        assert not deep_equal_ignore_order([1, 2, 3], [1, 2, 3, 3])
        assert not deep_equal_ignore_order([1, 1, 2], [1, 2, 2])

    def test_nested_arrays_of_objects(self):
        a = {"entities": [{"id": "1", "stops": ["A", "B"]}, {"id": "2", "stops": []}]}
        b = {"entities": [{"stops": [], "id": "2"}, {"stops": ["B", "A"], "id": "1"}]}
        assert deep_equal_ignore_order(a, b)

    def test_ignored_keys(self):
        assert deep_equal_ignore_order({"a": 1, "b": 2}, {"a": 1, "b": 3}, ["b"])
        assert not deep_equal_ignore_order({"a": 1, "b": 2}, {"a": 1, "b": 3})

    def test_ignored_key_present_on_one_side_only(self):
        assert deep_equal_ignore_order({"a": 1, "ts": 5}, {"a": 1}, ["ts"])
        assert not deep_equal_ignore_order({"a": 1, "ts": 5}, {"a": 1})

    def test_ignored_keys_inside_arrays(self):
        a = [{"id": 1, "ts": 1}, {"id": 2, "ts": 2}]
        b = [{"id": 2, "ts": 9}, {"id": 1, "ts": 8}]
        assert deep_equal_ignore_order(a, b, ["ts"])

    @pytest.mark.parametrize("a, b", [
        (None, 0),
        (None, {}),
        (True, 1),
        (False, 0),
        ("1", 1),
        ([], {}),
        ([1], 1),
        ({"a": 1}, {"a": 1, "b": None}),
    ])
    def test_type_mismatch_is_unequal(self, a, b):
        assert not deep_equal_ignore_order(a, b)

    def test_int_and_float_are_numbers(self):
        assert deep_equal_ignore_order(1, 1.0)
        assert deep_equal_ignore_order([1, 2.0], [2, 1.0])

    def test_nan_equals_nan(self):
        assert deep_equal_ignore_order(float("nan"), float("nan"))
        assert deep_equal_ignore_order([float("nan"), 1], [1, float("nan")])
        assert not deep_equal_ignore_order(float("nan"), 0.0)

    def test_absent_values(self):
        assert deep_equal_ignore_order(ABSENT, ABSENT)
        assert not deep_equal_ignore_order(ABSENT, None)

    def test_large_top_level_arrays_compared_element_wise(self):
        a = list(range(1500))
        b = list(range(1500))
        b[700] = -1
        assert not deep_equal_ignore_order(a, b)
        assert deep_equal_ignore_order(a, list(reversed(range(1500))))


class TestComparisonCache:
    """Pairwise memoization"""

    def test_results_are_memoized_without_ignore_set(self):
        cache = ComparisonCache()
        a = {"x": {"y": [1, 2]}}
        b = {"x": {"y": [2, 1]}}

        assert deep_equal_ignore_order(a, b, cache=cache)
        assert cache.get(a, b) is True
        assert cache.get(a["x"], b["x"]) is True

    def test_no_memoization_with_ignore_set(self):
        cache = ComparisonCache()
        a = {"x": {"y": 1, "z": 1}}
        b = {"x": {"y": 1, "z": 2}}

        assert deep_equal_ignore_order(a, b, ["z"], cache=cache)
        assert len(cache) == 0
        assert not deep_equal_ignore_order(a, b, cache=cache)
        assert cache.get(a, b) is False


class TestDiffStatus:
    """Four-state classification"""

    def test_missing_from_left(self):
        assert get_diff_status(ABSENT, 5, "left") == DiffStatus.MISSING
        assert get_diff_status(5, ABSENT, "left") == DiffStatus.MISSING

    def test_added_from_right(self):
        assert get_diff_status(5, ABSENT, "right") == DiffStatus.ADDED
        assert get_diff_status(ABSENT, 5, "right") == DiffStatus.ADDED

    def test_absent_on_both_sides(self):
        assert get_diff_status(ABSENT, ABSENT, "left") == DiffStatus.MISSING
        assert get_diff_status(ABSENT, ABSENT, "right") == DiffStatus.ADDED

    def test_same_and_different(self):
        assert get_diff_status([1, 2], [2, 1], "left") == DiffStatus.SAME
        assert get_diff_status({"a": 1}, {"a": 2}, "right") == DiffStatus.DIFFERENT
        assert get_diff_status({"a": 1, "t": 1}, {"a": 1, "t": 2}, "left", ["t"]) == DiffStatus.SAME

    def test_null_is_present(self):
        assert get_diff_status(None, None, "left") == DiffStatus.SAME
        assert get_diff_status(1, None, "left") == DiffStatus.DIFFERENT

    def test_status_values(self):
        assert [s.value for s in DiffStatus] == ["same", "different", "missing", "added"]

    def test_invalid_side(self):
        with pytest.raises(ValueError):
            get_diff_status(1, 2, "middle")


class TestCountDifferences:
    """Bounded difference counting"""

    def test_equal_trees(self):
        assert count_differences({"a": 1}, {"a": 1}) == 0

    def test_nested_leaf_differences(self):
        assert count_differences({"x": {"a": 1, "b": 2}}, {"x": {"a": 9, "b": 9}}) == 2

    def test_count_grows_with_differences(self):
        base = {f"f{i}": i for i in range(10)}
        counts = []
        for changed in range(0, 11, 2):
            other = dict(base)
            for i in range(changed):
                other[f"f{i}"] = -1
            counts.append(count_differences(base, other))
        assert counts == sorted(counts)
        assert counts[0] == 0
        assert counts[-1] == 10

    def test_ceiling(self):
        a = {f"f{i}": i for i in range(2000)}
        b = {f"f{i}": i + 1 for i in range(2000)}
        assert count_differences(a, b, max_count=999) == 999
        assert count_differences(a, b, max_count=10) == 10

    def test_absent_sides(self):
        assert count_differences(ABSENT, ABSENT) == 0
        assert count_differences(ABSENT, {"a": {"b": [1, 2, 3]}}) == 1
        assert count_differences({"a": 1}, {"a": 1, "b": {"c": 1, "d": 2}}) == 1

    def test_primitive_against_collection(self):
        assert count_differences(1, [1, 2]) == 1
        assert count_differences({"a": [1]}, {"a": 1}) == 1

    def test_ignored_keys_are_not_counted(self):
        assert count_differences({"a": 1, "ts": 1}, {"a": 2, "ts": 2}, ["ts"]) == 1

    def test_small_arrays_as_multisets(self):
        assert count_differences([1, 2, 3], [3, 2, 1]) == 0
        assert count_differences([1, 2, 3], [1, 2, 4]) == 2
        assert count_differences([1, 2], [1, 2, 2, 2]) == 2

    def test_small_arrays_respect_ceiling(self):
        assert count_differences(list(range(50)), list(range(50, 100)), max_count=10) == 10

    def test_large_arrays_with_different_lengths(self):
        assert count_differences(list(range(150)), list(range(120))) == 31
        assert count_differences(list(range(2000)), [], max_count=999) == 999

    def test_large_equal_length_arrays_are_sampled(self):
        a = list(range(1000))
        b = [-i - 1 if i % 100 == 0 else i for i in range(1000)]
        # sampled positions are multiples of 50, half of them are multiples of 100
        assert count_differences(a, b) == 500

    def test_sampling_is_capped(self):
        a = list(range(1000))
        b = [i + 10000 for i in range(1000)]
        assert count_differences(a, b) == 999

    def test_non_positive_budget(self):
        assert count_differences({"a": 1}, {"a": 2}, max_count=0) == 0


class TestHelpers:
    """Leaf enumeration and display sorting"""

    def test_iter_leaves(self):
        leaves = dict(iter_leaves({"a": {"b": 1, "c": [2, {"d": None}]}, "e": [], "f": {}}))
        assert leaves == {
            ("a", "b"): 1,
            ("a", "c", 0): 2,
            ("a", "c", 1, "d"): None,
            ("e",): [],
            ("f",): {},
        }

    def test_iter_leaves_keeps_arrays_whole(self):
        leaves = list(iter_leaves({"b": [1, {"x": 2}], "a": {"c": None}}, descend_arrays=False))
        assert leaves == [(("a", "c"), None), (("b",), [1, {"x": 2}])]

    def test_iter_leaves_key_with_dot(self):
        assert list(iter_leaves({"a.b": {"c": 1}})) == [(("a.b", "c"), 1)]

    def test_iter_leaves_primitive_root(self):
        assert list(iter_leaves(5)) == []

    def test_sort_entries(self):
        assert sort_entries({"b": 1, "a": 2}) == [("a", 2), ("b", 1)]

    def test_sort_array_values(self):
        values = [{"id": "b"}, {"id": "a"}]
        assert sort_array_values(values) == [{"id": "a"}, {"id": "b"}]

    def test_sort_array_values_leaves_large_arrays(self):
        values = list(range(600, 0, -1))
        assert sort_array_values(values) is values
