import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from cgroupkit import memory
from cgroupkit.memory import (
    CGROUP_MEMORY_LOW,
    CGROUP_MEMORY_MAX,
    CGROUP_MEMORY_SWAP,
    get_memory_data,
    set_memory,
    set_value,
)
from cgroupkit.resources import LinuxMemory, LinuxResources
from cgroupkit.stats import U64_MAX, MemoryData
from cgroupkit.util import CgroupError


def _fixtures(directory: Path) -> Path:
    for name in (CGROUP_MEMORY_MAX, CGROUP_MEMORY_LOW, CGROUP_MEMORY_SWAP):
        (directory / name).write_text("0")
    return directory


@pytest.fixture
def cgroup(tmp_path):
    return _fixtures(tmp_path)


def test_set_memory(cgroup):
    set_memory(cgroup, LinuxMemory(limit=1024, reservation=512, swap=2048))
    assert (cgroup / CGROUP_MEMORY_MAX).read_text() == "1024"
    assert (cgroup / CGROUP_MEMORY_SWAP).read_text() == "2048"
    assert (cgroup / CGROUP_MEMORY_LOW).read_text() == "512"


def test_set_memory_unlimited(cgroup):
    set_memory(cgroup, LinuxMemory(limit=-1))
    assert (cgroup / CGROUP_MEMORY_MAX).read_text() == "max"
    assert (cgroup / CGROUP_MEMORY_SWAP).read_text() == "max"


def test_err_swap_no_memory(cgroup):
    with pytest.raises(CgroupError):
        set_memory(cgroup, LinuxMemory(swap=512))


def test_err_bad_limit(cgroup):
    with pytest.raises(CgroupError):
        set_memory(cgroup, LinuxMemory(limit=-2))


def test_err_bad_swap(cgroup):
    with pytest.raises(CgroupError):
        set_memory(cgroup, LinuxMemory(limit=512, swap=-3))


def test_err_bad_reservation(cgroup):
    with pytest.raises(CgroupError, match="reservation"):
        set_memory(cgroup, LinuxMemory(reservation=-5))


def test_apply_wraps_error(cgroup):
    resources = LinuxResources(memory=LinuxMemory(limit=-2))
    with pytest.raises(CgroupError, match="failed to apply memory resource restrictions"):
        memory.apply(resources, cgroup)


def test_apply_without_memory_leaves_files(cgroup):
    memory.apply(LinuxResources(), cgroup)
    assert (cgroup / CGROUP_MEMORY_MAX).read_text() == "0"


def test_set_value_zero_does_not_touch(tmp_path):
    target = tmp_path / "missing"
    set_value(target, 0)
    assert not target.exists()


def test_set_value_unlimited(tmp_path):
    target = tmp_path / "memory.max"
    target.write_text("")
    set_value(target, -1)
    assert target.read_text() == "max"


_values = st.none() | st.integers(min_value=-4, max_value=10**12)


@settings(max_examples=60, deadline=None)
@given(limit=_values, swap=_values, reservation=_values)
def test_property_set_memory(limit, swap, reservation):
    linux_memory = LinuxMemory(limit=limit, swap=swap, reservation=reservation)
    with tempfile.TemporaryDirectory() as tmp:
        directory = _fixtures(Path(tmp))
        try:
            set_memory(directory, linux_memory)
            failed = False
        except CgroupError:
            failed = True

        if limit is not None and limit < -1:
            assert failed
            return
        if swap is not None and (swap < -1 or limit is None):
            assert failed
            return
        if reservation is not None and reservation < -1:
            assert failed
            return
        assert not failed

        limit_content = (directory / CGROUP_MEMORY_MAX).read_text()
        if limit == -1:
            assert limit_content == "max"
        elif limit is not None:
            assert limit_content == str(limit)
        else:
            assert limit_content == "0"

        swap_content = (directory / CGROUP_MEMORY_SWAP).read_text()
        if swap == -1:
            assert swap_content == "max"
        elif swap is not None:
            assert swap_content == str(swap)
        elif limit == -1:
            assert swap_content == "max"
        else:
            assert swap_content == "0"

        reservation_content = (directory / CGROUP_MEMORY_LOW).read_text()
        if reservation == -1:
            assert reservation_content == "max"
        elif reservation is not None:
            assert reservation_content == str(reservation)
        else:
            assert reservation_content == "0"


def test_get_memory_data(tmp_path):
    (tmp_path / "memory.current").write_text("12500\n")
    (tmp_path / "memory.max").write_text("25000\n")
    (tmp_path / "memory.events").write_text("slab 5\nanon 13\noom 3")

    actual = get_memory_data(tmp_path, "memory", "oom")
    assert actual == MemoryData(usage=12500, limit=25000, fail_count=3)


def test_get_memory_data_missing_event(tmp_path):
    (tmp_path / "memory.current").write_text("10\n")
    (tmp_path / "memory.max").write_text("max\n")
    (tmp_path / "memory.events").write_text("slab 5\n")

    actual = get_memory_data(tmp_path, "memory", "oom")
    assert actual == MemoryData(usage=10, limit=U64_MAX, fail_count=0)


def test_stats(tmp_path):
    (tmp_path / "memory.current").write_text("100\n")
    (tmp_path / "memory.max").write_text("200\n")
    (tmp_path / "memory.events").write_text("oom 1\n")
    (tmp_path / "memory.swap.current").write_text("30\n")
    (tmp_path / "memory.swap.max").write_text("max\n")
    (tmp_path / "memory.swap.events").write_text("fail 2\n")
    (tmp_path / "memory.stat").write_text("anon 7\nfile 9\n")

    result = memory.stats(tmp_path)
    assert result.memory == MemoryData(usage=100, limit=200, fail_count=1)
    assert result.memswap == MemoryData(usage=30, limit=U64_MAX, fail_count=2)
    assert result.hierarchy is True
    assert result.stats == {"anon": 7, "file": 9}


def test_stats_missing_files(tmp_path):
    with pytest.raises(CgroupError):
        memory.stats(tmp_path)