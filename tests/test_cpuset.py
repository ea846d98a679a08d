import pytest

from cgroupkit import cpuset
from cgroupkit.resources import LinuxCpu, LinuxResources
from cgroupkit.util import CgroupError


def setup(tmp_path, name):
    target = tmp_path / name
    target.write_text("")
    return target


def test_set_cpus(tmp_path):
    cpus = setup(tmp_path, cpuset.CGROUP_CPUSET_CPUS)
    cpuset.set_cpuset(tmp_path, LinuxCpu(cpus="1-3"))
    assert cpus.read_text() == "1-3"


def test_set_mems(tmp_path):
    mems = setup(tmp_path, cpuset.CGROUP_CPUSET_MEMS)
    cpuset.set_cpuset(tmp_path, LinuxCpu(mems="1-3"))
    assert mems.read_text() == "1-3"


def test_apply_through_resources(tmp_path):
    cpus = setup(tmp_path, cpuset.CGROUP_CPUSET_CPUS)
    mems = setup(tmp_path, cpuset.CGROUP_CPUSET_MEMS)
    cpuset.apply(LinuxResources(cpu=LinuxCpu(cpus="0", mems="0-1")), tmp_path)
    assert cpus.read_text() == "0"
    assert mems.read_text() == "0-1"


def test_apply_missing_file_fails(tmp_path):
    with pytest.raises(CgroupError, match="failed to apply cpuset"):
        cpuset.apply(LinuxResources(cpu=LinuxCpu(cpus="0")), tmp_path)


def test_apply_without_cpu_writes_nothing(tmp_path):
    cpus = setup(tmp_path, cpuset.CGROUP_CPUSET_CPUS)
    cpuset.apply(LinuxResources(), tmp_path)
    assert cpus.read_text() == ""