"""Raw cgroup v2 settings given as file name and value."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from cgroupkit.resources import ControllerType, LinuxResources
from cgroupkit.util import CgroupError, write_cgroup_file

log = logging.getLogger(__name__)


def apply(
    resources: LinuxResources, cgroup_path, controllers: Iterable[ControllerType]
) -> None:
    """Write every unified setting; explain failures by the controllers available."""
    if not resources.unified:
        return
    log.debug("apply unified cgroup config")
    cgroup_path = Path(cgroup_path)
    available = {str(controller) for controller in controllers}

    for cgroup_file, value in resources.unified.items():
        try:
            write_cgroup_file(cgroup_path / cgroup_file, value)
        except CgroupError as exc:
            subsystem, sep, _ = cgroup_file.partition(".")
            if not sep:
                raise CgroupError(f"failed to split {cgroup_file} with .") from exc
            if subsystem not in available:
                message = (
                    f"failed to set {cgroup_file} to {value}: "
                    f"subsystem {subsystem} is not available"
                )
            else:
                message = f"failed to set {cgroup_file} to {value}: {exc}"
            raise CgroupError(message) from exc