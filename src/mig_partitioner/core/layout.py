"""
MIG Layout

A partition layout: how many instances of each profile a GPU should hold.
"""

import math
from collections.abc import Mapping
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, Optional, Tuple, Union

from .profiles import Profile

if TYPE_CHECKING:
    from .catalog import DeviceModel


class Layout(Mapping):
    """
    Immutable mapping of Profile -> instance count.

    Zero counts are dropped on construction, so a layout that names a profile
    with count 0 compares equal to one that omits it.
    """

    def __init__(self, counts: Union[Mapping, Iterable[Tuple[Profile, int]], None] = None):
        items = counts.items() if isinstance(counts, Mapping) else (counts or ())
        merged: Dict[Profile, int] = {}
        for profile, count in items:
            if not isinstance(profile, Profile):
                raise TypeError(f"Layout keys must be Profile, got {type(profile).__name__}")
            if not isinstance(count, int) or isinstance(count, bool):
                raise TypeError(f"Instance count for {profile} must be an int")
            if count < 0:
                raise ValueError(f"Negative instance count for {profile}: {count}")
            merged[profile] = merged.get(profile, 0) + count

        ordered = sorted((p for p, c in merged.items() if c > 0), key=lambda p: p.sort_key)
        self._counts: Dict[Profile, int] = {p: merged[p] for p in ordered}
        self._hash: Optional[int] = None

    @classmethod
    def from_names(cls, records: Mapping, model: Optional["DeviceModel"] = None) -> "Layout":
        """Build a layout from {profile name: count} records"""
        if model is not None:
            return cls((model.profile(name), count) for name, count in records.items())
        return cls((Profile.parse(name), count) for name, count in records.items())

    def __getitem__(self, profile: Profile) -> int:
        return self._counts[profile]

    def __iter__(self) -> Iterator[Profile]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def __eq__(self, other) -> bool:
        if isinstance(other, Layout):
            return self._counts == other._counts
        if isinstance(other, Mapping):
            try:
                return self._counts == Layout(other)._counts
            except (TypeError, ValueError):
                return False
        return NotImplemented

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._counts.items()))
        return self._hash

    def flatten(self) -> Tuple[Profile, ...]:
        """One entry per requested instance, grouped by profile"""
        return tuple(p for p, count in self._counts.items() for _ in range(count))

    def total_instances(self) -> int:
        return sum(self._counts.values())

    def total_slices(self) -> int:
        return sum(p.slices * count for p, count in self._counts.items())

    def total_memory_slices(self) -> int:
        return sum(p.memory_slices * count for p, count in self._counts.items())

    def unique_orderings(self) -> int:
        """Number of distinct creation orders: n! / (c1! * c2! * ... * ck!)"""
        orderings = math.factorial(self.total_instances())
        for count in self._counts.values():
            orderings //= math.factorial(count)
        return orderings

    def is_empty(self) -> bool:
        return not self._counts

    def to_dict(self) -> Dict[str, int]:
        return {p.name: count for p, count in self._counts.items()}

    def __str__(self) -> str:
        if not self._counts:
            return "<empty>"
        return ", ".join(f"{p.name}:{count}" for p, count in self._counts.items())

    def __repr__(self) -> str:
        return f"Layout({self.to_dict()!r})"
