"""The cgroup v2 memory controller."""

from __future__ import annotations

from pathlib import Path

from cgroupkit.resources import LinuxMemory, LinuxResources
from cgroupkit.stats import (
    MemoryData,
    MemoryStats,
    parse_flat_keyed_data,
    parse_single_value,
)
from cgroupkit.util import CgroupError, write_cgroup_file

CGROUP_MEMORY_SWAP = "memory.swap.max"
CGROUP_MEMORY_MAX = "memory.max"
CGROUP_MEMORY_LOW = "memory.low"
MEMORY_STAT = "memory.stat"


def apply(resources: LinuxResources, cgroup_path) -> None:
    """Apply the memory part of ``resources`` to a cgroup."""
    if resources.memory is None:
        return
    try:
        set_memory(cgroup_path, resources.memory)
    except CgroupError as exc:
        raise CgroupError(
            f"failed to apply memory resource restrictions: {exc}"
        ) from exc


def stats(cgroup_path) -> MemoryStats:
    """Read memory and swap usage together with ``memory.stat``."""
    cgroup_path = Path(cgroup_path)
    return MemoryStats(
        memory=get_memory_data(cgroup_path, "memory", "oom"),
        memswap=get_memory_data(cgroup_path, "memory.swap", "fail"),
        hierarchy=True,
        stats=parse_flat_keyed_data(cgroup_path / MEMORY_STAT),
    )


def get_memory_data(cgroup_path, file_prefix: str, fail_event: str) -> MemoryData:
    """Read usage, limit and failure count from the files starting with ``file_prefix``."""
    cgroup_path = Path(cgroup_path)
    usage = parse_single_value(cgroup_path / f"{file_prefix}.current")
    limit = parse_single_value(cgroup_path / f"{file_prefix}.max")
    events = parse_flat_keyed_data(cgroup_path / f"{file_prefix}.events")
    return MemoryData(usage=usage, fail_count=events.get(fail_event, 0), limit=limit)


def set_value(path, val: int) -> None:
    """Write a memory value: 0 leaves the file alone, -1 means unlimited."""
    if val == 0:
        return
    if val == -1:
        write_cgroup_file(path, "max")
    else:
        write_cgroup_file(path, val)


def set_memory(path, memory: LinuxMemory) -> None:
    """Write memory limit, swap limit and reservation of a cgroup."""
    path = Path(path)
    if memory.reservation is None and memory.limit is None and memory.swap is None:
        return

    limit = memory.limit
    swap = memory.swap
    if limit is not None:
        if limit < -1:
            raise CgroupError(f"invalid memory value: {limit}")
        if swap is not None:
            if swap < -1:
                raise CgroupError(f"invalid swap value: {swap}")
            set_value(path / CGROUP_MEMORY_SWAP, swap)
            set_value(path / CGROUP_MEMORY_MAX, limit)
        else:
            if limit == -1:
                set_value(path / CGROUP_MEMORY_SWAP, -1)
            set_value(path / CGROUP_MEMORY_MAX, limit)
    elif swap is not None:
        raise CgroupError("unable to set swap limit without memory limit")

    reservation = memory.reservation
    if reservation is not None:
        if reservation < -1:
            raise CgroupError(f"invalid memory reservation value: {reservation}")
        set_value(path / CGROUP_MEMORY_LOW, reservation)