"""
Device Catalog

Static description of MIG-capable GPU models: which profiles they support,
how many compute and memory slices they have, and where each profile may be
placed.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from .errors import CapacityError
from .layout import Layout
from .profiles import Profile


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceModel:
    name: str
    device_ids: Tuple[int, ...]
    total_slices: int
    total_memory_slices: Optional[int]
    profiles: Tuple[Profile, ...]
    # profile name -> legal start offsets, in memory-slice units
    placements: Dict[str, Tuple[int, ...]] = field(default_factory=dict, compare=False)

    def profile(self, name: str) -> Profile:
        """Look up a catalog profile by name"""
        wanted = name.strip().lower()
        for profile in self.profiles:
            if profile.name == wanted:
                return profile
        raise KeyError(f"Profile {name!r} is not supported on {self.name}")

    def supports(self, profile: Profile) -> bool:
        return profile in self.profiles

    def slices_used(self, layout: Layout) -> int:
        return sum(self._resolve(p).slices * count for p, count in layout.items())

    def memory_slices_used(self, layout: Layout) -> int:
        return sum(self._resolve(p).memory_slices * count for p, count in layout.items())

    def capacity_problems(self, layout: Layout) -> List[str]:
        """Reasons the layout cannot fit this model (empty when it fits)"""
        unknown = [p.name for p in layout if not self.supports(p)]
        if unknown:
            return [f"unsupported profiles {unknown}"]

        problems = []
        for profile, count in layout.items():
            limit = self._resolve(profile).max_instances
            if limit is not None and count > limit:
                problems.append(f"{count}x {profile.name} exceeds limit of {limit}")

        slices = self.slices_used(layout)
        if slices > self.total_slices:
            problems.append(f"needs {slices} compute slices, device has {self.total_slices}")

        if self.total_memory_slices is not None:
            memory = self.memory_slices_used(layout)
            if memory > self.total_memory_slices:
                problems.append(
                    f"needs {memory} memory slices, device has {self.total_memory_slices}"
                )
        return problems

    def is_admissible(self, layout: Layout) -> bool:
        return not self.capacity_problems(layout)

    def check_capacity(self, layout: Layout):
        """Raise CapacityError when the layout does not fit"""
        problems = self.capacity_problems(layout)
        if problems:
            raise CapacityError(layout, self.name, "; ".join(problems))

    def placements_for(self, profile: Profile) -> Tuple[int, ...]:
        return self.placements.get(profile.name, ())

    def _resolve(self, profile: Profile) -> Profile:
        # Layouts built from bare names carry no catalog costs
        return self.profile(profile.name)


def _a100_model(name: str, device_ids: Tuple[int, ...], memory_unit_gb: int) -> DeviceModel:
    unit = memory_unit_gb
    return DeviceModel(
        name=name,
        device_ids=device_ids,
        total_slices=7,
        total_memory_slices=8,
        profiles=(
            Profile(f"1g.{unit}gb", memory_slices=1, max_instances=7),
            Profile(f"2g.{unit * 2}gb", memory_slices=2, max_instances=3),
            Profile(f"3g.{unit * 4}gb", memory_slices=4, max_instances=2),
            Profile(f"4g.{unit * 4}gb", memory_slices=4, max_instances=1),
            Profile(f"7g.{unit * 8}gb", memory_slices=8, max_instances=1),
        ),
        placements={
            f"1g.{unit}gb": (0, 1, 2, 3, 4, 5, 6),
            f"2g.{unit * 2}gb": (0, 2, 4),
            f"3g.{unit * 4}gb": (0, 4),
            f"4g.{unit * 4}gb": (0,),
            f"7g.{unit * 8}gb": (0,),
        },
    )


A100_SXM4_40GB = _a100_model("A100-SXM4-40GB", (0x20B010DE, 0x20F110DE), 5)
A100_SXM4_80GB = _a100_model("A100-SXM4-80GB", (0x20B210DE, 0x20B510DE), 10)

A30_24GB = DeviceModel(
    name="A30-24GB",
    device_ids=(0x20B710DE,),
    total_slices=4,
    total_memory_slices=4,
    profiles=(
        Profile("1g.6gb", memory_slices=1, max_instances=4),
        Profile("2g.12gb", memory_slices=2, max_instances=2),
        Profile("4g.24gb", memory_slices=4, max_instances=1),
    ),
    placements={
        "1g.6gb": (0, 1, 2, 3),
        "2g.12gb": (0, 2),
        "4g.24gb": (0,),
    },
)

_KNOWN_MODELS = (A100_SXM4_40GB, A100_SXM4_80GB, A30_24GB)


def known_device_models() -> Tuple[DeviceModel, ...]:
    return _KNOWN_MODELS


def get_device_model(key: Union[str, int]) -> DeviceModel:
    """Resolve a device model by name or by PCI device id (e.g. 0x20B010DE)"""
    for model in _KNOWN_MODELS:
        if isinstance(key, int):
            if key in model.device_ids:
                return model
        elif model.name.lower() == key.strip().lower():
            return model

    logger.debug(f"No catalog entry for {key!r}")
    if isinstance(key, int):
        raise KeyError(f"Unknown MIG device id 0x{key:08X}")
    raise KeyError(f"Unknown MIG device model {key!r}")
