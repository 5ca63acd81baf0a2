"""
NVML Device API

Production DeviceAPI backed by pynvml. One MIG instance is a GPU instance
plus a single compute instance spanning all of its slices.
"""

import logging
from typing import Dict, List

import pynvml

from ..core.catalog import DeviceModel, get_device_model
from ..core.errors import DeviceAPIError, FatalDeviceError
from ..core.profiles import Profile
from .device_api import DeviceAPI, MigInstance


# Slice count -> (GPU instance profile, compute instance profile)
_SLICE_PROFILES = {
    1: (pynvml.NVML_GPU_INSTANCE_PROFILE_1_SLICE, pynvml.NVML_COMPUTE_INSTANCE_PROFILE_1_SLICE),
    2: (pynvml.NVML_GPU_INSTANCE_PROFILE_2_SLICE, pynvml.NVML_COMPUTE_INSTANCE_PROFILE_2_SLICE),
    3: (pynvml.NVML_GPU_INSTANCE_PROFILE_3_SLICE, pynvml.NVML_COMPUTE_INSTANCE_PROFILE_3_SLICE),
    4: (pynvml.NVML_GPU_INSTANCE_PROFILE_4_SLICE, pynvml.NVML_COMPUTE_INSTANCE_PROFILE_4_SLICE),
    7: (pynvml.NVML_GPU_INSTANCE_PROFILE_7_SLICE, pynvml.NVML_COMPUTE_INSTANCE_PROFILE_7_SLICE),
}


class NVMLDeviceAPI(DeviceAPI):
    """
    MIG primitives via NVML

    Use as a context manager so NVML is initialised and shut down around
    the calls:

        with NVMLDeviceAPI() as api:
            MigConfigManager(api).set_layout(0, layout)
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._models: Dict[int, DeviceModel] = {}

    def __enter__(self) -> "NVMLDeviceAPI":
        pynvml.nvmlInit()
        return self

    def __exit__(self, exc_type, exc, tb):
        pynvml.nvmlShutdown()

    def device_model(self, device: int) -> DeviceModel:
        if device not in self._models:
            handle = self._handle(device, "device_model")
            try:
                pci_id = pynvml.nvmlDeviceGetPciInfo(handle).pciDeviceId
            except pynvml.NVMLError as e:
                raise DeviceAPIError(device, "device_model", str(e)) from e
            try:
                self._models[device] = get_device_model(pci_id)
            except KeyError as e:
                raise DeviceAPIError(device, "device_model", str(e)) from e
        return self._models[device]

    def get_mig_mode(self, device: int) -> bool:
        handle = self._handle(device, "get_mig_mode")
        try:
            current, _pending = pynvml.nvmlDeviceGetMigMode(handle)
        except pynvml.NVMLError as e:
            raise DeviceAPIError(device, "get_mig_mode", str(e)) from e
        return current == pynvml.NVML_DEVICE_MIG_ENABLE

    def set_mig_mode(self, device: int, enabled: bool):
        handle = self._handle(device, "set_mig_mode")
        mode = pynvml.NVML_DEVICE_MIG_ENABLE if enabled else pynvml.NVML_DEVICE_MIG_DISABLE
        try:
            pynvml.nvmlDeviceSetMigMode(handle, mode)
        except pynvml.NVMLError as e:
            raise DeviceAPIError(device, "set_mig_mode", str(e)) from e
        self.logger.info(f"Set MIG mode {'on' if enabled else 'off'} for GPU {device}")

    def list_instances(self, device: int) -> List[MigInstance]:
        handle = self._handle(device, "list")
        model = self.device_model(device)
        instances = []
        for profile in model.profiles:
            gi_profile_id = self._gi_profile_id(handle, device, profile, "list")
            try:
                infos = [
                    pynvml.nvmlGpuInstanceGetInfo(gi)
                    for gi in pynvml.nvmlDeviceGetGpuInstances(handle, gi_profile_id)
                ]
            except pynvml.NVMLError as e:
                raise DeviceAPIError(device, "list", str(e)) from e
            for info in infos:
                instances.append(MigInstance(device, info.id, profile, info.placement.start))
        return sorted(instances, key=lambda inst: inst.instance_id)

    def create_instance(self, device: int, profile: Profile) -> int:
        handle = self._handle(device, "create")
        resolved = self._resolve(device, profile, "create")
        gi_profile_id = self._gi_profile_id(handle, device, resolved, "create")
        _, ci_profile = _SLICE_PROFILES[resolved.slices]

        try:
            gi = pynvml.nvmlDeviceCreateGpuInstance(handle, gi_profile_id)
        except pynvml.NVMLError as e:
            raise DeviceAPIError(device, "create", f"{resolved.name}: {e}") from e

        try:
            ci_info = pynvml.nvmlGpuInstanceGetComputeInstanceProfileInfo(
                gi, ci_profile, pynvml.NVML_COMPUTE_INSTANCE_ENGINE_PROFILE_SHARED
            )
            pynvml.nvmlGpuInstanceCreateComputeInstance(gi, ci_info.id)
        except pynvml.NVMLError as e:
            # Leave no half-built GPU instance behind
            try:
                pynvml.nvmlGpuInstanceDestroy(gi)
            except pynvml.NVMLError as destroy_error:
                raise FatalDeviceError(device, "destroy", cause=destroy_error) from e
            raise DeviceAPIError(device, "create", f"{resolved.name} compute instance: {e}") from e

        try:
            instance_id = pynvml.nvmlGpuInstanceGetInfo(gi).id
        except pynvml.NVMLError as e:
            raise FatalDeviceError(device, "create", cause=e) from e
        self.logger.debug(f"Created {resolved.name} instance {instance_id} on GPU {device}")
        return instance_id

    def destroy_instance(self, device: int, instance_id: int):
        handle = self._handle(device, "destroy")
        try:
            gi = pynvml.nvmlDeviceGetGpuInstanceById(handle, instance_id)
            for _, ci_profile in _SLICE_PROFILES.values():
                try:
                    ci_info = pynvml.nvmlGpuInstanceGetComputeInstanceProfileInfo(
                        gi, ci_profile, pynvml.NVML_COMPUTE_INSTANCE_ENGINE_PROFILE_SHARED
                    )
                except (pynvml.NVMLError_NotSupported, pynvml.NVMLError_InvalidArgument):
                    # Profile not available inside a GPU instance of this size
                    continue
                for ci in pynvml.nvmlGpuInstanceGetComputeInstances(gi, ci_info.id):
                    pynvml.nvmlComputeInstanceDestroy(ci)
            pynvml.nvmlGpuInstanceDestroy(gi)
        except pynvml.NVMLError as e:
            raise DeviceAPIError(device, "destroy", f"instance {instance_id}: {e}") from e
        self.logger.debug(f"Destroyed instance {instance_id} on GPU {device}")

    def _handle(self, device: int, operation: str):
        try:
            return pynvml.nvmlDeviceGetHandleByIndex(device)
        except pynvml.NVMLError as e:
            raise DeviceAPIError(device, operation, str(e)) from e

    def _resolve(self, device: int, profile: Profile, operation: str) -> Profile:
        try:
            resolved = self.device_model(device).profile(profile.name)
        except KeyError as e:
            raise DeviceAPIError(device, operation, str(e)) from e
        if resolved.slices not in _SLICE_PROFILES:
            raise DeviceAPIError(device, operation, f"no NVML profile for {resolved.name}")
        return resolved

    def _gi_profile_id(self, handle, device: int, profile: Profile, operation: str) -> int:
        gi_profile, _ = _SLICE_PROFILES[profile.slices]
        try:
            return pynvml.nvmlDeviceGetGpuInstanceProfileInfo(handle, gi_profile).id
        except pynvml.NVMLError as e:
            raise DeviceAPIError(device, operation, f"{profile.name}: {e}") from e
