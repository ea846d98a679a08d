"""The cgroup v2 cpu controller."""

from __future__ import annotations

from pathlib import Path

from cgroupkit.resources import LinuxCpu, LinuxResources
from cgroupkit.stats import CpuUsage
from cgroupkit.util import CgroupError, read_cgroup_file, write_cgroup_file

CGROUP_CPU_WEIGHT = "cpu.weight"
CGROUP_CPU_MAX = "cpu.max"
DEFAULT_PERIOD = "100000"
UNRESTRICTED_QUOTA = "max"
CPU_STAT = "cpu.stat"


def apply(resources: LinuxResources, cgroup_path) -> None:
    """Apply the cpu part of ``resources`` to a cgroup."""
    if resources.cpu is None:
        return
    try:
        set_cpu(cgroup_path, resources.cpu)
    except CgroupError as exc:
        raise CgroupError(f"failed to apply cpu resource restrictions: {exc}") from exc


def set_cpu(path, cpu: LinuxCpu) -> None:
    """Write weight and bandwidth limits for a cgroup."""
    path = Path(path)
    if is_realtime_requested(cpu):
        raise CgroupError("realtime is not supported on cgroup v2 yet")

    if cpu.shares is not None:
        weight = convert_shares_to_cgroup2(cpu.shares)
        # A weight of 0 is out of range for the kernel.
        if weight != 0:
            write_cgroup_file(path / CGROUP_CPU_WEIGHT, weight)

    quota = str(cpu.quota) if cpu.quota is not None and cpu.quota > 0 else UNRESTRICTED_QUOTA
    period = str(cpu.period) if cpu.period is not None and cpu.period > 0 else DEFAULT_PERIOD
    write_cgroup_file(path / CGROUP_CPU_MAX, f"{quota} {period}")


def stats(cgroup_path) -> CpuUsage:
    """Read cpu usage from ``cpu.stat``."""
    usage = CpuUsage()
    content = read_cgroup_file(Path(cgroup_path) / CPU_STAT)
    for entry in content.splitlines():
        parts = entry.split()
        if len(parts) != 2:
            continue
        key, raw = parts
        try:
            value = int(raw)
        except ValueError as exc:
            raise CgroupError(f"failed to parse {raw!r} in {CPU_STAT}") from exc
        if key == "usage_usec":
            usage.usage_total = value
        elif key == "user_usec":
            usage.usage_user = value
        elif key == "system_usec":
            usage.usage_kernel = value
    return usage


def convert_shares_to_cgroup2(shares: int) -> int:
    """Map cgroup v1 cpu shares onto the cgroup v2 weight range."""
    if shares == 0:
        return 0
    return 1 + ((shares - 2) * 9999) // 262142


def is_realtime_requested(cpu: LinuxCpu) -> bool:
    """Tell whether realtime scheduling limits are requested."""
    return cpu.realtime_period is not None or cpu.realtime_runtime is not None