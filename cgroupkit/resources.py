"""Resource descriptions of a container and the cgroup v2 controller kinds."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class FreezerState(enum.Enum):
    """Requested or observed state of the cgroup freezer."""

    UNDEFINED = "undefined"
    FROZEN = "frozen"
    THAWED = "thawed"


@dataclass
class LinuxCpu:
    """CPU restrictions of a container."""

    shares: int | None = None
    quota: int | None = None
    period: int | None = None
    realtime_runtime: int | None = None
    realtime_period: int | None = None
    cpus: str | None = None
    mems: str | None = None


@dataclass
class LinuxMemory:
    """Memory restrictions of a container."""

    limit: int | None = None
    reservation: int | None = None
    swap: int | None = None
    kernel: int | None = None
    kernel_tcp: int | None = None
    swappiness: int | None = None
    disable_oom_killer: bool | None = None
    use_hierarchy: bool | None = None


@dataclass
class LinuxPids:
    """Limit on the number of tasks in a container."""

    limit: int = 0


@dataclass
class LinuxThrottleDevice:
    """A rate limit for one block device."""

    major: int
    minor: int
    rate: int


@dataclass
class LinuxWeightDevice:
    """An io weight for one block device."""

    major: int
    minor: int
    weight: int | None = None
    leaf_weight: int | None = None


@dataclass
class LinuxBlockIo:
    """Block io restrictions of a container."""

    weight: int | None = None
    leaf_weight: int | None = None
    weight_device: list[LinuxWeightDevice] | None = None
    throttle_read_bps_device: list[LinuxThrottleDevice] | None = None
    throttle_write_bps_device: list[LinuxThrottleDevice] | None = None
    throttle_read_iops_device: list[LinuxThrottleDevice] | None = None
    throttle_write_iops_device: list[LinuxThrottleDevice] | None = None


@dataclass
class LinuxHugepageLimit:
    """Limit of huge page usage for one page size, e.g. ``2MB``."""

    page_size: str
    limit: int


class LinuxDeviceType(enum.Enum):
    """Kind of device a device rule refers to."""

    A = "a"
    B = "b"
    C = "c"
    U = "u"
    P = "p"


@dataclass
class LinuxDeviceCgroup:
    """A device access rule."""

    allow: bool = False
    typ: LinuxDeviceType | None = None
    major: int | None = None
    minor: int | None = None
    access: str | None = None


@dataclass
class LinuxResources:
    """All resource restrictions that can be applied to a cgroup."""

    devices: list[LinuxDeviceCgroup] | None = None
    memory: LinuxMemory | None = None
    cpu: LinuxCpu | None = None
    pids: LinuxPids | None = None
    block_io: LinuxBlockIo | None = None
    hugepage_limits: list[LinuxHugepageLimit] | None = None
    freezer: FreezerState | None = None
    unified: dict[str, str] | None = None


class ControllerType(enum.Enum):
    """Real cgroup v2 controllers."""

    CPU = "cpu"
    CPUSET = "cpuset"
    IO = "io"
    MEMORY = "memory"
    HUGETLB = "hugetlb"
    PIDS = "pids"
    FREEZER = "freezer"

    def __str__(self) -> str:
        return self.value


CONTROLLER_TYPES: tuple[ControllerType, ...] = (
    ControllerType.CPU,
    ControllerType.CPUSET,
    ControllerType.HUGETLB,
    ControllerType.IO,
    ControllerType.MEMORY,
    ControllerType.PIDS,
    ControllerType.FREEZER,
)


class PseudoControllerType(enum.Enum):
    """Settings handled like controllers without being kernel controllers."""

    DEVICES = "devices"
    UNIFIED = "unified"

    def __str__(self) -> str:
        return self.value


PSEUDO_CONTROLLER_TYPES: tuple[PseudoControllerType, ...] = (
    PseudoControllerType.DEVICES,
    PseudoControllerType.UNIFIED,
)