"""
Device API

Contract for the low-level MIG primitives (create/destroy/list instances and
toggle MIG mode) that the config manager drives.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from ..core.catalog import DeviceModel
from ..core.profiles import Profile


@dataclass(frozen=True)
class MigInstance:
    device: int
    instance_id: int
    profile: Profile
    placement_start: int = 0


class DeviceAPI(ABC):
    """
    MIG device primitives, addressed by GPU index.

    Failures are raised as DeviceAPIError. create_instance may fail for
    placement reasons that depend on what was created before it. When a failed
    create cannot clean up after itself the device state is unknown, and
    FatalDeviceError is raised instead.
    """

    @abstractmethod
    def device_model(self, device: int) -> DeviceModel:
        ...

    @abstractmethod
    def get_mig_mode(self, device: int) -> bool:
        ...

    @abstractmethod
    def set_mig_mode(self, device: int, enabled: bool):
        ...

    @abstractmethod
    def list_instances(self, device: int) -> List[MigInstance]:
        ...

    @abstractmethod
    def create_instance(self, device: int, profile: Profile) -> int:
        """Create one instance and return its id"""

    @abstractmethod
    def destroy_instance(self, device: int, instance_id: int):
        ...
