"""
Simulated MIG Device

In-memory DeviceAPI for tests and dry runs. Instances are placed first-fit on
a per-device memory-slice map using the catalog's legal start offsets, so
whether a create succeeds depends on what was created before it, as on real
hardware. Each SimulatedDeviceAPI owns its own state.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from ..core.catalog import DeviceModel
from ..core.errors import DeviceAPIError
from ..core.profiles import Profile
from .device_api import DeviceAPI, MigInstance


CreateFailureRule = Callable[[int, Profile, List[MigInstance]], bool]


@dataclass
class SimulatedGPU:
    index: int
    model: DeviceModel
    mig_enabled: bool = False
    occupancy: np.ndarray = None
    instances: Dict[int, MigInstance] = field(default_factory=dict)
    next_instance_id: int = 1

    def __post_init__(self):
        if self.occupancy is None:
            width = self.model.total_memory_slices or self.model.total_slices
            self.occupancy = np.zeros(width, dtype=bool)

    def free_start(self, profile: Profile) -> Optional[int]:
        """First legal start offset whose slices are all free"""
        for start in self.model.placements_for(profile):
            end = start + profile.memory_slices
            if end <= len(self.occupancy) and not self.occupancy[start:end].any():
                return start
        return None


class SimulatedDeviceAPI(DeviceAPI):
    """Deterministic MIG device simulator with injectable failures"""

    def __init__(self, model: DeviceModel, num_devices: int = 1, mig_enabled: bool = False):
        self.logger = logging.getLogger(__name__)
        self.gpus: Dict[int, SimulatedGPU] = {
            i: SimulatedGPU(index=i, model=model, mig_enabled=mig_enabled)
            for i in range(num_devices)
        }
        self.calls: List[Tuple[str, int, object]] = []
        self._create_rules: List[CreateFailureRule] = []
        self._failing_operations: Dict[Tuple[str, Optional[int]], Optional[int]] = {}

    # Failure injection

    def fail_create(self, rule: CreateFailureRule):
        """Fail create_instance whenever rule(device, profile, live instances) is true"""
        self._create_rules.append(rule)

    def fail_operation(self, operation: str, device: Optional[int] = None,
                       times: Optional[int] = None):
        """Fail an operation ('list', 'create', 'destroy', 'set_mig_mode') on one or all devices"""
        self._failing_operations[(operation, device)] = times

    def clear_failures(self):
        self._create_rules.clear()
        self._failing_operations.clear()

    def call_count(self, operation: Optional[str] = None) -> int:
        return sum(1 for op, _, _ in self.calls if operation is None or op == operation)

    # DeviceAPI

    def device_model(self, device: int) -> DeviceModel:
        return self._gpu(device, "device_model").model

    def get_mig_mode(self, device: int) -> bool:
        return self._gpu(device, "get_mig_mode").mig_enabled

    def set_mig_mode(self, device: int, enabled: bool):
        gpu = self._begin("set_mig_mode", device, enabled)
        if not enabled and gpu.instances:
            raise DeviceAPIError(device, "set_mig_mode", "MIG instances still present")
        gpu.mig_enabled = enabled
        self.logger.debug(f"GPU {device}: MIG mode {'enabled' if enabled else 'disabled'}")

    def list_instances(self, device: int) -> List[MigInstance]:
        gpu = self._begin("list", device, None)
        return sorted(gpu.instances.values(), key=lambda inst: inst.instance_id)

    def create_instance(self, device: int, profile: Profile) -> int:
        gpu = self._begin("create", device, profile)
        if not gpu.mig_enabled:
            raise DeviceAPIError(device, "create", "MIG mode is disabled")

        try:
            resolved = gpu.model.profile(profile.name)
        except KeyError as e:
            raise DeviceAPIError(device, "create", str(e)) from e

        live = list(gpu.instances.values())
        if any(rule(device, resolved, live) for rule in self._create_rules):
            raise DeviceAPIError(device, "create", f"injected failure for {resolved.name}")

        start = gpu.free_start(resolved)
        if start is None:
            raise DeviceAPIError(device, "create", f"insufficient resources for {resolved.name}")

        instance_id = gpu.next_instance_id
        gpu.next_instance_id += 1
        gpu.occupancy[start:start + resolved.memory_slices] = True
        gpu.instances[instance_id] = MigInstance(device, instance_id, resolved, start)
        self.logger.debug(f"GPU {device}: created {resolved.name} id={instance_id} at {start}")
        return instance_id

    def destroy_instance(self, device: int, instance_id: int):
        gpu = self._begin("destroy", device, instance_id)
        instance = gpu.instances.pop(instance_id, None)
        if instance is None:
            raise DeviceAPIError(device, "destroy", f"no instance with id {instance_id}")
        start = instance.placement_start
        gpu.occupancy[start:start + instance.profile.memory_slices] = False
        self.logger.debug(f"GPU {device}: destroyed {instance.profile.name} id={instance_id}")

    def _gpu(self, device: int, operation: str) -> SimulatedGPU:
        gpu = self.gpus.get(device)
        if gpu is None:
            raise DeviceAPIError(device, operation, "no such device")
        return gpu

    def _begin(self, operation: str, device: int, arg) -> SimulatedGPU:
        self.calls.append((operation, device, arg))
        gpu = self._gpu(device, operation)

        for key in ((operation, device), (operation, None)):
            if key not in self._failing_operations:
                continue
            remaining = self._failing_operations[key]
            if remaining is not None:
                if remaining <= 1:
                    del self._failing_operations[key]
                else:
                    self._failing_operations[key] = remaining - 1
            raise DeviceAPIError(device, operation, "injected failure")
        return gpu
