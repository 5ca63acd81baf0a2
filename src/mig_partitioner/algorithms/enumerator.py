"""
Layout Enumeration

Produces every layout a device model can legally hold.
"""

import logging
from typing import List, Optional, Tuple

from ..core.catalog import DeviceModel
from ..core.layout import Layout


logger = logging.getLogger(__name__)


def _max_count(model: DeviceModel, index: int, slices_left: int,
               memory_left: Optional[int]) -> int:
    profile = model.profiles[index]
    limit = slices_left // profile.slices
    if memory_left is not None:
        limit = min(limit, memory_left // profile.memory_slices)
    if profile.max_instances is not None:
        limit = min(limit, profile.max_instances)
    return limit


def enumerate_layouts(model: DeviceModel, include_empty: bool = False) -> List[Layout]:
    """
    Enumerate all admissible layouts for a device model

    Walks the profiles in catalog order, choosing a count for each from 0 up
    to what the remaining compute/memory budget and the per-profile limit
    allow. Depth-first with an explicit stack; counts ascend per profile and
    the first profile varies slowest, so output order is deterministic.
    The all-zero layout is only emitted when include_empty is set.
    """
    profiles = model.profiles
    layouts: List[Layout] = []

    # (profile index, counts chosen so far, compute slices left, memory slices left)
    stack: List[Tuple[int, Tuple[int, ...], int, Optional[int]]] = [
        (0, (), model.total_slices, model.total_memory_slices)
    ]
    while stack:
        index, counts, slices_left, memory_left = stack.pop()

        if index == len(profiles):
            layout = Layout(zip(profiles, counts))
            if include_empty or not layout.is_empty():
                layouts.append(layout)
            continue

        profile = profiles[index]
        limit = _max_count(model, index, slices_left, memory_left)
        # Pushed in reverse so the smallest count is expanded first
        for count in range(limit, -1, -1):
            stack.append((
                index + 1,
                counts + (count,),
                slices_left - count * profile.slices,
                None if memory_left is None else memory_left - count * profile.memory_slices,
            ))

    logger.debug(f"Enumerated {len(layouts)} layouts for {model.name}")
    return layouts


def count_layouts(model: DeviceModel, include_empty: bool = False) -> int:
    return len(enumerate_layouts(model, include_empty=include_empty))
