"""A cgroup v2 manager working directly on the unified hierarchy."""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterable

from cgroupkit import cpu, cpuset, freezer, hugetlb, memory, pids, unified
from cgroupkit import io as io_controller
from cgroupkit.resources import (
    CONTROLLER_TYPES,
    PSEUDO_CONTROLLER_TYPES,
    ControllerType,
    FreezerState,
    LinuxResources,
    PseudoControllerType,
)
from cgroupkit.stats import Stats
from cgroupkit.util import (
    CGROUP_PROCS,
    CgroupError,
    get_all_pids,
    join_safely,
    write_cgroup_file,
)

CGROUP_CONTROLLERS = "cgroup.controllers"
CGROUP_SUBTREE_CONTROL = "cgroup.subtree_control"

_APPLIERS = {
    ControllerType.CPU: cpu.apply,
    ControllerType.CPUSET: cpuset.apply,
    ControllerType.HUGETLB: hugetlb.apply,
    ControllerType.IO: io_controller.apply,
    ControllerType.MEMORY: memory.apply,
    ControllerType.PIDS: pids.apply,
    ControllerType.FREEZER: freezer.apply,
}

_KNOWN_CONTROLLERS = {controller.value: controller for controller in ControllerType}

log = logging.getLogger(__name__)


def write_controllers(path, controllers: Iterable[str]) -> None:
    """Enable each controller, e.g. ``+cpu``, for the children of ``path``."""
    target = Path(path) / CGROUP_SUBTREE_CONTROL
    for controller in controllers:
        write_cgroup_file(target, controller)


class Manager:
    """Manages one cgroup below the mount point of a cgroup v2 filesystem."""

    def __init__(self, root_path, cgroup_path) -> None:
        self.root_path = Path(root_path)
        self.cgroup_path = PurePosixPath(os.fspath(cgroup_path))
        self.full_path = join_safely(self.root_path, os.fspath(cgroup_path))

    def get_available_controllers(self) -> list[ControllerType]:
        """List the controllers the root cgroup offers that this manager knows."""
        controllers_path = self.root_path / CGROUP_CONTROLLERS
        if not controllers_path.exists():
            raise CgroupError(
                f"cannot get available controllers. {controllers_path} does not exist"
            )
        try:
            content = controllers_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CgroupError(f"failed to read {controllers_path}: {exc}") from exc

        controllers = []
        for name in content.split():
            controller = _KNOWN_CONTROLLERS.get(name)
            if controller is None:
                log.warning("controller %s is not yet implemented", name)
                continue
            controllers.append(controller)
        return controllers

    def _create_unified_cgroup(self, pid: int) -> None:
        controllers = [f"+{c}" for c in self.get_available_controllers()]
        write_controllers(self.root_path, controllers)

        components = self.cgroup_path.parts[1:]
        current = self.root_path
        for position, component in enumerate(components):
            current = current / component
            if not current.exists():
                try:
                    os.mkdir(current, 0o755)
                except OSError as exc:
                    raise CgroupError(f"failed to create {current}: {exc}") from exc
            # The leaf must not enable controllers for children, or adding
            # a process to it fails with EBUSY.
            if position + 1 < len(components):
                write_controllers(current, controllers)

        write_cgroup_file(self.full_path / CGROUP_PROCS, pid)

    def add_task(self, pid: int) -> None:
        """Create the cgroup hierarchy if needed and move ``pid`` into it."""
        self._create_unified_cgroup(pid)

    def apply(self, resources: LinuxResources) -> None:
        """Apply all resource restrictions to the cgroup."""
        for controller in CONTROLLER_TYPES:
            _APPLIERS[controller](resources, self.full_path)

        for pseudo in PSEUDO_CONTROLLER_TYPES:
            if pseudo is PseudoControllerType.UNIFIED:
                unified.apply(
                    resources, self.full_path, self.get_available_controllers()
                )

    def remove(self) -> None:
        """Remove the cgroup directory."""
        log.debug("remove cgroup %s", self.full_path)
        try:
            os.rmdir(self.full_path)
        except OSError as exc:
            raise CgroupError(f"failed to remove {self.full_path}: {exc}") from exc

    def freeze(self, state: FreezerState) -> None:
        """Freeze or thaw all processes in the cgroup."""
        freezer.apply(LinuxResources(freezer=state), self.full_path)

    def stats(self) -> Stats:
        """Collect the statistics of all controllers that provide them."""
        result = Stats()
        for controller in CONTROLLER_TYPES:
            if controller is ControllerType.CPU:
                result.cpu.usage = cpu.stats(self.full_path)
            elif controller is ControllerType.HUGETLB:
                result.hugetlb = hugetlb.stats(self.full_path)
            elif controller is ControllerType.PIDS:
                result.pids = pids.stats(self.full_path)
            elif controller is ControllerType.MEMORY:
                result.memory = memory.stats(self.full_path)
            elif controller is ControllerType.IO:
                result.blkio = io_controller.stats(self.full_path)
        return result

    def get_all_pids(self) -> list[int]:
        """Return the pids of the cgroup and all cgroups below it."""
        return get_all_pids(self.full_path)