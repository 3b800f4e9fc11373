from .step_00_preflight import PreflightStep
from .step_10_select_target import SelectTargetStep
from .step_20_prepare_disk import PrepareDiskStep
from .step_30_mount_target import MountTargetStep
from .step_40_populate_rootfs import PopulateRootfsStep
from .step_50_configure_system import ConfigureSystemStep
from .step_55_slim_target import SlimTargetStep
from .step_60_prepare_chroot import PrepareChrootStep
from .step_90_finalize import FinalizeStep

__all__ = [
    "PreflightStep",
    "SelectTargetStep",
    "PrepareDiskStep",
    "MountTargetStep",
    "PopulateRootfsStep",
    "ConfigureSystemStep",
    "SlimTargetStep",
    "PrepareChrootStep",
    "FinalizeStep",
]
