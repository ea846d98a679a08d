from pathlib import Path

import pytest

from cgroupkit.util import (
    CgroupError,
    get_all_pids,
    get_unified_mount_point,
    join_safely,
    read_cgroup_file,
    write_cgroup_file,
)


def test_write_then_read(tmp_path):
    target = tmp_path / "cpu.weight"
    target.write_text("")
    write_cgroup_file(target, 840)
    assert read_cgroup_file(target) == "840"


def test_write_missing_file_fails(tmp_path):
    with pytest.raises(CgroupError):
        write_cgroup_file(tmp_path / "missing", "1")
    assert not (tmp_path / "missing").exists()


def test_read_missing_file_fails(tmp_path):
    with pytest.raises(CgroupError):
        read_cgroup_file(tmp_path / "missing")


def test_join_safely_absolute():
    assert join_safely("/sys/fs/cgroup", "/youki/abc") == Path("/sys/fs/cgroup/youki/abc")


def test_join_safely_empty_gives_root():
    assert join_safely("/sys/fs/cgroup", "") == Path("/sys/fs/cgroup")


def test_join_safely_relative_fails():
    with pytest.raises(CgroupError):
        join_safely("/sys/fs/cgroup", "youki")


def test_get_all_pids_walks_children(tmp_path):
    (tmp_path / "cgroup.procs").write_text("10\n11\n")
    child = tmp_path / "child"
    child.mkdir()
    (child / "cgroup.procs").write_text("12\n")
    assert sorted(get_all_pids(tmp_path)) == [10, 11, 12]


def test_get_all_pids_invalid_content(tmp_path):
    (tmp_path / "cgroup.procs").write_text("abc\n")
    with pytest.raises(CgroupError):
        get_all_pids(tmp_path)


def test_unified_mount_point(tmp_path):
    info = tmp_path / "mountinfo"
    info.write_text(
        "22 1 8:1 / / rw,relatime shared:1 - ext4 /dev/sda1 rw\n"
        "30 23 0:26 / /sys/fs/cgroup rw,nosuid shared:4 - cgroup2 cgroup2 rw,nsdelegate\n"
    )
    assert get_unified_mount_point(info) == Path("/sys/fs/cgroup")


def test_unified_mount_point_escaped(tmp_path):
    info = tmp_path / "mountinfo"
    info.write_text("30 23 0:26 / /mnt/my\\040cg rw - cgroup2 cgroup2 rw\n")
    assert get_unified_mount_point(info) == Path("/mnt/my cg")


def test_unified_mount_point_missing(tmp_path):
    info = tmp_path / "mountinfo"
    info.write_text("22 1 8:1 / / rw,relatime shared:1 - ext4 /dev/sda1 rw\n")
    with pytest.raises(CgroupError):
        get_unified_mount_point(info)