"""The cgroup v2 pids controller."""

from __future__ import annotations

import logging
from pathlib import Path

from cgroupkit.resources import LinuxPids, LinuxResources
from cgroupkit.stats import PidStats, pid_stats
from cgroupkit.util import CgroupError, write_cgroup_file

PIDS_MAX = "pids.max"

log = logging.getLogger(__name__)


def apply(resources: LinuxResources, cgroup_path) -> None:
    """Apply the pids part of ``resources`` to a cgroup."""
    log.debug("apply pids cgroup v2 config")
    if resources.pids is None:
        return
    try:
        set_limit(cgroup_path, resources.pids)
    except CgroupError as exc:
        raise CgroupError(f"failed to apply pids resource restrictions: {exc}") from exc


def set_limit(root_path, pids: LinuxPids) -> None:
    """Write the task limit; a non-positive limit means unlimited."""
    limit = str(pids.limit) if pids.limit > 0 else "max"
    write_cgroup_file(Path(root_path) / PIDS_MAX, limit)


def stats(cgroup_path) -> PidStats:
    """Read the task count and limit of a cgroup."""
    return pid_stats(cgroup_path)