"""The cgroup v2 cpuset controller."""

from __future__ import annotations

from pathlib import Path

from cgroupkit.resources import LinuxCpu, LinuxResources
from cgroupkit.util import CgroupError, write_cgroup_file

CGROUP_CPUSET_CPUS = "cpuset.cpus"
CGROUP_CPUSET_MEMS = "cpuset.mems"


def apply(resources: LinuxResources, cgroup_path) -> None:
    """Apply the cpuset part of ``resources`` to a cgroup."""
    if resources.cpu is None:
        return
    try:
        set_cpuset(cgroup_path, resources.cpu)
    except CgroupError as exc:
        raise CgroupError(f"failed to apply cpuset resource restrictions: {exc}") from exc


def set_cpuset(path, cpuset: LinuxCpu) -> None:
    """Write the allowed cpus and memory nodes of a cgroup."""
    path = Path(path)
    if cpuset.cpus is not None:
        write_cgroup_file(path / CGROUP_CPUSET_CPUS, cpuset.cpus)
    if cpuset.mems is not None:
        write_cgroup_file(path / CGROUP_CPUSET_MEMS, cpuset.mems)