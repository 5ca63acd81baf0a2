import itertools

import pytest

from mig_partitioner import Layout, enumerate_layouts, get_device_model, known_device_models
from mig_partitioner.algorithms.enumerator import count_layouts


def _brute_force(model):
    ranges = []
    for profile in model.profiles:
        upper = profile.max_instances if profile.max_instances is not None else model.total_slices
        ranges.append(range(upper + 1))
    layouts = set()
    for counts in itertools.product(*ranges):
        layout = Layout(zip(model.profiles, counts))
        if model.is_admissible(layout):
            layouts.add(layout)
    return layouts


@pytest.mark.parametrize("name, expected", [
    ("A100-SXM4-40GB", 37),
    ("A100-SXM4-80GB", 37),
    ("A30-24GB", 9),
])
def test_layout_counts(name, expected):
    model = get_device_model(name)
    assert count_layouts(model) == expected
    assert count_layouts(model, include_empty=True) == expected + 1


@pytest.mark.parametrize("model", known_device_models(), ids=lambda m: m.name)
def test_matches_brute_force(model):
    layouts = enumerate_layouts(model, include_empty=True)
    assert len(set(layouts)) == len(layouts)
    assert set(layouts) == _brute_force(model)


@pytest.mark.parametrize("model", known_device_models(), ids=lambda m: m.name)
def test_all_layouts_admissible(model):
    for layout in enumerate_layouts(model):
        assert model.is_admissible(layout)
        assert layout.total_slices() <= model.total_slices


def test_empty_layout_policy(a100):
    assert Layout() not in enumerate_layouts(a100)
    with_empty = enumerate_layouts(a100, include_empty=True)
    assert with_empty[0] == Layout()


def test_order_is_deterministic(a100):
    first = enumerate_layouts(a100)
    assert first == enumerate_layouts(a100)
    # Last profile varies fastest
    assert first[0] == Layout.from_names({"7g.40gb": 1}, a100)
    assert first[1] == Layout.from_names({"4g.20gb": 1}, a100)
    assert first[-1] == Layout.from_names({"1g.5gb": 7}, a100)


def test_budget_only_model(small_model):
    layouts = enumerate_layouts(small_model)
    # a + 2b <= 4: b=0 -> a in 1..4, b=1 -> a in 0..2, b=2 -> a=0
    assert len(layouts) == 8
    assert Layout.from_names({"1g.5gb": 2, "2g.10gb": 1}, small_model) in layouts
