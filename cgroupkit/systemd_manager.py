"""A cgroup v2 manager for cgroups laid out the way systemd names them."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from cgroupkit import cpu, cpuset, freezer, hugetlb, memory, pids
from cgroupkit import io as io_controller
from cgroupkit.manager import write_controllers
from cgroupkit.resources import ControllerType, FreezerState, LinuxResources
from cgroupkit.stats import Stats
from cgroupkit.util import (
    CGROUP_PROCS,
    CgroupError,
    get_all_pids,
    join_safely,
    write_cgroup_file,
)

CGROUP_CONTROLLERS = "cgroup.controllers"
SLICE_SUFFIX = ".slice"

# Only these controllers are supported through systemd.
CONTROLLER_TYPES: tuple[ControllerType, ...] = (
    ControllerType.CPU,
    ControllerType.IO,
    ControllerType.MEMORY,
    ControllerType.PIDS,
)

_APPLIERS = {
    ControllerType.CPU: cpu.apply,
    ControllerType.CPUSET: cpuset.apply,
    ControllerType.HUGETLB: hugetlb.apply,
    ControllerType.IO: io_controller.apply,
    ControllerType.MEMORY: memory.apply,
    ControllerType.PIDS: pids.apply,
    ControllerType.FREEZER: freezer.apply,
}


@dataclass
class CgroupsPath:
    """A cgroups path of the form ``slice:scope_prefix:name``."""

    parent: str
    scope: str
    name: str


def destructure_cgroups_path(cgroups_path) -> CgroupsPath:
    """Split a cgroups path into slice, scope prefix and name."""
    text = os.fspath(cgroups_path)
    posix = PurePosixPath(text)
    if posix.parts[:2] == ("/", "youki"):
        name = str(posix.relative_to("/youki"))
        return CgroupsPath(parent="", scope="youki", name="" if name == "." else name)

    parts = text.split(":")
    if len(parts) < 3:
        raise CgroupError(
            f"invalid cgroups path {text!r}: expected [slice]:[scope_prefix]:[name]"
        )
    return CgroupsPath(parent=parts[0], scope=parts[1], name=parts[2])


def get_unit_name(cgroups_path: CgroupsPath) -> str:
    """Return the unit name; a scope unless the name is already a slice."""
    if not cgroups_path.name.endswith(SLICE_SUFFIX):
        return f"{cgroups_path.scope}-{cgroups_path.name}.scope"
    return cgroups_path.name


def expand_slice(slice_name: str) -> Path:
    """Expand e.g. ``test-a-b.slice`` to ``/test.slice/test-a.slice/test-a-b.slice``."""
    if len(slice_name) <= len(SLICE_SUFFIX) or not slice_name.endswith(SLICE_SUFFIX):
        raise CgroupError(f"invalid slice name: {slice_name}")
    if "/" in slice_name:
        raise CgroupError(f"invalid slice name: {slice_name}")

    stem = slice_name
    while stem.endswith(SLICE_SUFFIX):
        stem = stem[: -len(SLICE_SUFFIX)]
    if stem == "-":
        return Path("/")

    path = ""
    prefix = ""
    for component in stem.split("-"):
        if not component:
            raise CgroupError(f"invalid slice name: {slice_name}")
        path = f"{path}/{prefix}{component}{SLICE_SUFFIX}"
        prefix = f"{prefix}{component}-"
    return Path(path)


def construct_cgroups_path(cgroups_path: CgroupsPath) -> Path:
    """Build the cgroup path, placed under ``/machine.slice`` unless a slice is given."""
    parent = Path("/machine.slice")
    if cgroups_path.parent:
        parent = expand_slice(cgroups_path.parent)
    return parent / get_unit_name(cgroups_path)


class SystemdCgroupManager:
    """Manages a cgroup named by systemd conventions."""

    def __init__(self, root_path, cgroups_path) -> None:
        self.root_path = Path(root_path)
        self.cgroups_path = construct_cgroups_path(
            destructure_cgroups_path(cgroups_path)
        )
        self.full_path = join_safely(self.root_path, str(self.cgroups_path))

    def get_available_controllers(self, cgroups_path) -> list[ControllerType]:
        """List the supported controllers offered by the cgroup at ``cgroups_path``."""
        controllers_path = self.root_path / cgroups_path / CGROUP_CONTROLLERS
        if not controllers_path.exists():
            raise CgroupError(
                f"cannot get available controllers. {controllers_path} does not exist"
            )
        try:
            content = controllers_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CgroupError(f"failed to read {controllers_path}: {exc}") from exc

        supported = {controller.value: controller for controller in CONTROLLER_TYPES}
        return [supported[name] for name in content.split() if name in supported]

    def _create_unified_cgroup(self, pid: int) -> None:
        controllers = [
            f"+{c}" for c in self.get_available_controllers(self.root_path)
        ]
        write_controllers(self.root_path, controllers)

        components = self.cgroups_path.parts[1:]
        current = self.root_path
        for position, component in enumerate(components):
            current = current / component
            if not current.exists():
                try:
                    os.mkdir(current, 0o755)
                except OSError as exc:
                    raise CgroupError(f"failed to create {current}: {exc}") from exc
            # The leaf must not enable controllers for children.
            if position + 1 < len(components):
                write_controllers(current, controllers)

        write_cgroup_file(self.full_path / CGROUP_PROCS, pid)

    def add_task(self, pid: int) -> None:
        """Move ``pid`` into the cgroup; a pid of -1 attaches nothing."""
        if pid == -1:
            return
        self._create_unified_cgroup(pid)

    def apply(self, resources: LinuxResources) -> None:
        """Apply the restrictions of the controllers systemd supports."""
        for controller in CONTROLLER_TYPES:
            _APPLIERS[controller](resources, self.full_path)

    def remove(self) -> None:
        """Removal is left to systemd."""

    def freeze(self, state: FreezerState) -> None:
        """Freeze or thaw all processes in the cgroup."""
        freezer.apply(LinuxResources(freezer=state), self.full_path)

    def stats(self) -> Stats:
        """Statistics are not collected through systemd; return empty ones."""
        return Stats()

    def get_all_pids(self) -> list[int]:
        """Return the pids of the cgroup and all cgroups below it."""
        return get_all_pids(self.full_path)