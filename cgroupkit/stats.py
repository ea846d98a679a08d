"""Statistics gathered from cgroups and helpers to parse cgroup files."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from cgroupkit.util import CgroupError, read_cgroup_file

PIDS_CURRENT = "pids.current"
PIDS_MAX = "pids.max"
HUGEPAGES_DIR = "/sys/kernel/mm/hugepages"
U64_MAX = (1 << 64) - 1

_UNSIGNED = re.compile(r"\+?[0-9]+")


@dataclass
class CpuUsage:
    """CPU time consumed, in microseconds."""

    usage_total: int = 0
    usage_user: int = 0
    usage_kernel: int = 0
    per_core_usage_total: list[int] = field(default_factory=list)
    per_core_usage_user: list[int] = field(default_factory=list)
    per_core_usage_kernel: list[int] = field(default_factory=list)


@dataclass
class CpuStats:
    """CPU statistics of a cgroup."""

    usage: CpuUsage = field(default_factory=CpuUsage)


@dataclass
class MemoryData:
    """Usage figures of one kind of memory."""

    usage: int = 0
    max_usage: int = 0
    fail_count: int = 0
    limit: int = 0


@dataclass
class MemoryStats:
    """Memory statistics of a cgroup."""

    memory: MemoryData = field(default_factory=MemoryData)
    memswap: MemoryData = field(default_factory=MemoryData)
    kernel: MemoryData = field(default_factory=MemoryData)
    kernel_tcp: MemoryData = field(default_factory=MemoryData)
    cache: int = 0
    hierarchy: bool = False
    stats: dict[str, int] = field(default_factory=dict)


@dataclass
class PidStats:
    """Number of tasks and the task limit; a limit of 0 means unlimited."""

    current: int = 0
    limit: int = 0


@dataclass(order=True)
class BlkioDeviceStat:
    """One io figure for one block device."""

    major: int = 0
    minor: int = 0
    op_type: str | None = None
    value: int = 0


@dataclass
class BlkioStats:
    """Block io statistics of a cgroup."""

    service_bytes: list[BlkioDeviceStat] = field(default_factory=list)
    serviced: list[BlkioDeviceStat] = field(default_factory=list)
    time: list[BlkioDeviceStat] = field(default_factory=list)
    sectors: list[BlkioDeviceStat] = field(default_factory=list)
    service_time: list[BlkioDeviceStat] = field(default_factory=list)
    wait_time: list[BlkioDeviceStat] = field(default_factory=list)
    queued: list[BlkioDeviceStat] = field(default_factory=list)
    merged: list[BlkioDeviceStat] = field(default_factory=list)


@dataclass
class HugeTlbStats:
    """Huge page usage for one page size."""

    usage: int = 0
    max_usage: int = 0
    fail_count: int = 0


@dataclass
class Stats:
    """All statistics of a cgroup."""

    cpu: CpuStats = field(default_factory=CpuStats)
    pids: PidStats = field(default_factory=PidStats)
    hugetlb: dict[str, HugeTlbStats] = field(default_factory=dict)
    blkio: BlkioStats = field(default_factory=BlkioStats)
    memory: MemoryStats = field(default_factory=MemoryStats)


def parse_value(value: str) -> int:
    """Parse an unsigned integer."""
    if not _UNSIGNED.fullmatch(value):
        raise CgroupError(f"failed to parse {value!r}")
    return int(value)


def parse_single_value(path) -> int:
    """Parse a file holding one number or ``max``."""
    path = Path(path)
    value = read_cgroup_file(path).strip()
    if value == "max":
        return U64_MAX
    try:
        return parse_value(value)
    except CgroupError as exc:
        raise CgroupError(f"failed to parse {value!r} from {path}") from exc


def parse_flat_keyed_data(path) -> dict[str, int]:
    """Parse lines of the form ``key value``."""
    path = Path(path)
    result: dict[str, int] = {}
    for line in read_cgroup_file(path).splitlines():
        parts = line.split()
        if len(parts) != 2:
            raise CgroupError(f"invalid format found in {path}")
        result[parts[0]] = parse_value(parts[1])
    return result


def parse_nested_keyed_data(path) -> dict[str, list[str]]:
    """Parse lines of the form ``key sub1=value sub2=value``."""
    result: dict[str, list[str]] = {}
    for line in read_cgroup_file(path).splitlines():
        parts = line.split()
        if len(parts) <= 1:
            continue
        result[parts[0]] = parts[1:]
    return result


def parse_device_number(device: str) -> tuple[int, int]:
    """Split ``major:minor`` into its two numbers."""
    numbers = device.split(":")
    if len(numbers) != 2:
        raise CgroupError(f"failed to parse device number from {device}")
    return parse_value(numbers[0]), parse_value(numbers[1])


def pid_stats(cgroup_path) -> PidStats:
    """Read the current task count and limit of a cgroup."""
    cgroup_path = Path(cgroup_path)
    current = read_cgroup_file(cgroup_path / PIDS_CURRENT).strip()
    limit = read_cgroup_file(cgroup_path / PIDS_MAX).strip()
    stats = PidStats(current=parse_value(current))
    if limit != "max":
        stats.limit = parse_value(limit)
    return stats


def _extract_page_size(dir_name: str) -> str:
    if dir_name.startswith("hugepages-") and dir_name.endswith("kB"):
        size = parse_value(dir_name[len("hugepages-"):-len("kB")])
        if size >= 1 << 20:
            return f"{size >> 20}GB"
        if size >= 1 << 10:
            return f"{size >> 10}MB"
        return f"{size}KB"
    raise CgroupError(f"failed to determine page size from {dir_name}")


def supported_page_sizes(hugepages_dir=HUGEPAGES_DIR) -> list[str]:
    """List the huge page sizes the kernel supports, e.g. ``2MB``."""
    directory = Path(hugepages_dir)
    try:
        entries = sorted(directory.iterdir())
    except OSError as exc:
        raise CgroupError(f"failed to list {directory}: {exc}") from exc
    return [_extract_page_size(entry.name) for entry in entries if entry.is_dir()]