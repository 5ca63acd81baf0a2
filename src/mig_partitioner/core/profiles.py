"""
MIG Profiles

GPU instance profiles ("1g.5gb", "3g.20gb", ...) and their slice costs.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Tuple


_PROFILE_RE = re.compile(r"^(\d+)g\.(\d+)gb$")


@dataclass(frozen=True)
class Profile:
    """
    A GPU instance partition template.

    Identity is the canonical name; slice costs and limits come from the
    device catalog and do not take part in equality or hashing.
    """
    name: str
    slices: int = field(default=0, compare=False)
    memory_gb: int = field(default=0, compare=False)
    memory_slices: int = field(default=0, compare=False)
    max_instances: Optional[int] = field(default=None, compare=False)

    def __post_init__(self):
        match = _PROFILE_RE.match(self.name)
        if not match:
            raise ValueError(f"Invalid MIG profile name: {self.name!r}")
        slices, memory_gb = int(match.group(1)), int(match.group(2))
        if slices < 1 or memory_gb < 1:
            raise ValueError(f"Invalid MIG profile name: {self.name!r}")

        # Frozen dataclass, so derived defaults go through object.__setattr__
        if not self.slices:
            object.__setattr__(self, "slices", slices)
        if not self.memory_gb:
            object.__setattr__(self, "memory_gb", memory_gb)
        if not self.memory_slices:
            object.__setattr__(self, "memory_slices", self.slices)
        if self.slices != slices or self.memory_gb != memory_gb:
            raise ValueError(
                f"Profile {self.name} disagrees with slices={self.slices}, "
                f"memory_gb={self.memory_gb}"
            )
        if self.max_instances is not None and self.max_instances < 1:
            raise ValueError(f"max_instances must be positive for {self.name}")

    @classmethod
    def parse(cls, name: str) -> "Profile":
        """Parse a bare '<g>g.<mem>gb' name with no catalog limits"""
        return cls(name.strip().lower())

    @property
    def sort_key(self) -> Tuple[int, int, str]:
        return (self.slices, self.memory_gb, self.name)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"Profile({self.name!r})"
