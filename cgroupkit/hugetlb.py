"""The cgroup v2 hugetlb controller."""

from __future__ import annotations

import logging
from pathlib import Path

from cgroupkit.resources import LinuxHugepageLimit, LinuxResources
from cgroupkit.stats import (
    HugeTlbStats,
    parse_single_value,
    parse_value,
    supported_page_sizes,
)
from cgroupkit.util import CgroupError, read_cgroup_file, write_cgroup_file

log = logging.getLogger(__name__)


def apply(resources: LinuxResources, cgroup_path) -> None:
    """Apply the huge page limits of ``resources`` to a cgroup."""
    log.debug("apply hugetlb cgroup v2 config")
    for hugetlb in resources.hugepage_limits or ():
        try:
            set_limit(cgroup_path, hugetlb)
        except CgroupError as exc:
            raise CgroupError(
                f"failed to apply hugetlb resource restrictions: {exc}"
            ) from exc


def set_limit(root_path, hugetlb: LinuxHugepageLimit) -> None:
    """Write the limit for one page size; the size must be a power of two."""
    digits = ""
    for char in hugetlb.page_size:
        if not char.isdigit():
            break
        digits += char
    try:
        page_size = int(digits)
    except ValueError as exc:
        raise CgroupError(f"invalid page size {hugetlb.page_size!r}") from exc
    if not is_power_of_two(page_size):
        raise CgroupError("page size must be in the format of 2^(integer)")

    write_cgroup_file(
        Path(root_path) / f"hugetlb.{hugetlb.page_size}.limit_in_bytes",
        hugetlb.limit,
    )


def is_power_of_two(number: int) -> bool:
    """Tell whether ``number`` is a positive power of two."""
    return number != 0 and (number & (number - 1)) == 0


def stats(cgroup_path) -> dict[str, HugeTlbStats]:
    """Read huge page usage for every page size the kernel supports."""
    return {
        page_size: stats_for_page_size(cgroup_path, page_size)
        for page_size in supported_page_sizes()
    }


def stats_for_page_size(cgroup_path, page_size: str) -> HugeTlbStats:
    """Read usage and the number of failed allocations for one page size."""
    cgroup_path = Path(cgroup_path)
    events_file = f"hugetlb.{page_size}.events"
    events = read_cgroup_file(cgroup_path / events_file)

    fail_count = 0
    max_line = next((line for line in events.splitlines() if line.startswith("max")), None)
    if max_line is not None:
        try:
            fail_count = parse_value(max_line[3:].strip())
        except CgroupError as exc:
            raise CgroupError(f"failed to parse max value for {events_file}") from exc

    usage = parse_single_value(cgroup_path / f"hugetlb.{page_size}.current")
    return HugeTlbStats(usage=usage, fail_count=fail_count)