from pathlib import Path

import pytest

from cgroupkit.resources import ControllerType, FreezerState, LinuxPids, LinuxResources
from cgroupkit.stats import Stats
from cgroupkit.systemd_manager import (
    CgroupsPath,
    SystemdCgroupManager,
    construct_cgroups_path,
    destructure_cgroups_path,
    expand_slice,
    get_unit_name,
)
from cgroupkit.util import CgroupError


def _touch(path, content=""):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def test_expand_slice_works():
    assert expand_slice("test-a-b.slice") == Path("/test.slice/test-a.slice/test-a-b.slice")


def test_get_cgroups_path_works_with_a_complex_slice():
    cgroups_path = destructure_cgroups_path(Path("test-a-b.slice:docker:foo"))
    assert construct_cgroups_path(cgroups_path) == Path(
        "/test.slice/test-a.slice/test-a-b.slice/docker-foo.scope"
    )


def test_get_cgroups_path_works_with_a_simple_slice():
    cgroups_path = destructure_cgroups_path(Path("machine.slice:libpod:foo"))
    assert construct_cgroups_path(cgroups_path) == Path("/machine.slice/libpod-foo.scope")


def test_get_cgroups_path_works_with_scope():
    cgroups_path = destructure_cgroups_path(Path(":docker:foo"))
    assert construct_cgroups_path(cgroups_path) == Path("/machine.slice/docker-foo.scope")


def test_destructure_default_path():
    assert destructure_cgroups_path("/youki/1234") == CgroupsPath("", "youki", "1234")


def test_destructure_needs_three_parts():
    with pytest.raises(CgroupError):
        destructure_cgroups_path("system.slice:docker")


def test_unit_name_keeps_slice():
    assert get_unit_name(CgroupsPath("", "docker", "foo.slice")) == "foo.slice"


def test_expand_root_slice():
    assert expand_slice("-.slice") == Path("/")


@pytest.mark.parametrize("bad", [".slice", "test", "a/b.slice"])
def test_expand_slice_rejects_invalid(bad):
    with pytest.raises(CgroupError):
        expand_slice(bad)


def test_manager_full_path(tmp_path):
    manager = SystemdCgroupManager(tmp_path, "machine.slice:libpod:foo")
    assert manager.full_path == tmp_path / "machine.slice" / "libpod-foo.scope"


def test_available_controllers_only_supported(tmp_path):
    _touch(tmp_path / "cgroup.controllers", "cpuset cpu io memory hugetlb pids")
    manager = SystemdCgroupManager(tmp_path, ":docker:foo")
    assert manager.get_available_controllers(tmp_path) == [
        ControllerType.CPU,
        ControllerType.IO,
        ControllerType.MEMORY,
        ControllerType.PIDS,
    ]


def test_add_task_minus_one_does_nothing(tmp_path):
    manager = SystemdCgroupManager(tmp_path, ":docker:foo")
    manager.add_task(-1)
    assert list(tmp_path.iterdir()) == []


def test_add_task_writes_pid(tmp_path):
    _touch(tmp_path / "cgroup.controllers", "pids")
    root_control = _touch(tmp_path / "cgroup.subtree_control")
    slice_control = _touch(tmp_path / "machine.slice" / "cgroup.subtree_control")
    procs = _touch(tmp_path / "machine.slice" / "docker-foo.scope" / "cgroup.procs")

    SystemdCgroupManager(tmp_path, ":docker:foo").add_task(1234)

    assert procs.read_text() == "1234"
    assert root_control.read_text() == "+pids"
    assert slice_control.read_text() == "+pids"


def test_apply_pids(tmp_path):
    pids_max = _touch(tmp_path / "machine.slice" / "docker-foo.scope" / "pids.max")
    manager = SystemdCgroupManager(tmp_path, ":docker:foo")
    manager.apply(LinuxResources(pids=LinuxPids(limit=0)))
    assert pids_max.read_text() == "max"


def test_remove_leaves_directory(tmp_path):
    scope = tmp_path / "machine.slice" / "docker-foo.scope"
    scope.mkdir(parents=True)
    SystemdCgroupManager(tmp_path, ":docker:foo").remove()
    assert scope.is_dir()


def test_stats_are_empty(tmp_path):
    assert SystemdCgroupManager(tmp_path, ":docker:foo").stats() == Stats()


def test_freeze_thawed(tmp_path):
    freeze = _touch(tmp_path / "machine.slice" / "docker-foo.scope" / "cgroup.freeze")
    SystemdCgroupManager(tmp_path, ":docker:foo").freeze(FreezerState.THAWED)
    assert freeze.read_text() == "0"


def test_get_all_pids(tmp_path):
    _touch(tmp_path / "machine.slice" / "docker-foo.scope" / "cgroup.procs", "5\n")
    assert SystemdCgroupManager(tmp_path, ":docker:foo").get_all_pids() == [5]