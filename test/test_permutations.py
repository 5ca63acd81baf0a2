import itertools

import pytest

from mig_partitioner import (
    ExhaustedError,
    Layout,
    OrderingError,
    enumerate_layouts,
    get_device_model,
    search_orderings,
    unique_permutations,
)
from mig_partitioner.algorithms.permutations import count_unique_permutations


A100 = get_device_model("A100-SXM4-40GB")


@pytest.mark.parametrize("sequence", [
    "A", "AB", "AAB", "AABB", "AAABBC", "ABCD", "AAAAAAA", "AABBCCD",
])
def test_unique_permutations_visits_each_once(sequence):
    perms = list(unique_permutations(sequence))
    assert len(perms) == len(set(perms))
    assert len(perms) == count_unique_permutations(sequence)
    assert set(perms) == set(itertools.permutations(sequence))


def test_unique_permutations_starts_grouped():
    perms = list(unique_permutations("BAB"))
    assert perms[0] == ("B", "B", "A")
    assert len(perms) == 3


def test_unique_permutations_empty():
    assert list(unique_permutations([])) == []
    assert count_unique_permutations([]) == 1


def _failing_until(success_after):
    seen = []

    def attempt(ordering):
        seen.append(ordering)
        if len(seen) != success_after:
            raise OrderingError(ordering)

    return attempt, seen


def test_empty_layout_needs_no_attempts():
    attempt, seen = _failing_until(1)
    result = search_orderings(Layout(), attempt)
    assert result.attempts == 0
    assert result.ordering == ()
    assert seen == []


def test_example_scenario(small_model):
    layout = Layout.from_names({"1g.5gb": 2, "2g.10gb": 1}, small_model)

    attempt, seen = _failing_until(1)
    result = search_orderings(layout, attempt)
    assert result.attempts == 1
    assert len(seen) == 1

    attempt, seen = _failing_until(-1)
    with pytest.raises(ExhaustedError) as excinfo:
        search_orderings(layout, attempt)
    assert excinfo.value.attempts == 3
    assert len(set(seen)) == 3
    assert isinstance(excinfo.value.last_error, OrderingError)


@pytest.mark.parametrize("layout", enumerate_layouts(A100), ids=str)
def test_short_circuit_and_exhaustion(layout):
    total = layout.unique_orderings()

    for success_after in {1, (total + 1) // 2, total}:
        attempt, seen = _failing_until(success_after)
        result = search_orderings(layout, attempt)
        assert result.attempts == success_after
        assert len(seen) == success_after
        assert result.ordering == seen[-1]

    attempt, seen = _failing_until(-1)
    with pytest.raises(ExhaustedError) as excinfo:
        search_orderings(layout, attempt)
    assert excinfo.value.attempts == total
    assert len(set(seen)) == total
    assert all(sorted(o, key=lambda p: p.sort_key) == list(layout.flatten()) for o in seen)


def test_non_ordering_errors_are_fatal(small_model):
    layout = Layout.from_names({"1g.5gb": 2, "2g.10gb": 1}, small_model)
    calls = []

    def attempt(ordering):
        calls.append(ordering)
        raise RuntimeError("device lost")

    with pytest.raises(RuntimeError, match="device lost"):
        search_orderings(layout, attempt)
    assert len(calls) == 1
