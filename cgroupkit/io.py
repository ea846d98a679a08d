"""The cgroup v2 io controller."""

from __future__ import annotations

import logging
from pathlib import Path

from cgroupkit.resources import LinuxBlockIo, LinuxResources
from cgroupkit.stats import (
    BlkioDeviceStat,
    BlkioStats,
    parse_device_number,
    parse_nested_keyed_data,
    parse_value,
)
from cgroupkit.util import CgroupError, write_cgroup_file

CGROUP_BFQ_IO_WEIGHT = "io.bfq.weight"
CGROUP_IO_WEIGHT = "io.weight"
CGROUP_IO_STAT = "io.stat"
CGROUP_IO_MAX = "io.max"

# key prefix in io.stat -> (list to fill, operation type)
_STAT_KEYS = {
    "rbytes": ("service_bytes", "read"),
    "wbytes": ("service_bytes", "write"),
    "rios": ("serviced", "read"),
    "wios": ("serviced", "write"),
}

log = logging.getLogger(__name__)


def apply(resources: LinuxResources, cgroup_path) -> None:
    """Apply the block io part of ``resources`` to a cgroup."""
    log.debug("apply io cgroup v2 config")
    if resources.block_io is None:
        return
    try:
        set_io(cgroup_path, resources.block_io)
    except CgroupError as exc:
        raise CgroupError(f"failed to apply io resource restrictions: {exc}") from exc


def set_io(root_path, blkio: LinuxBlockIo) -> None:
    """Write weights and throttling limits for a cgroup."""
    root_path = Path(root_path)

    for device in blkio.weight_device or ():
        if device.weight is None:
            raise CgroupError(f"no weight given for device {device.major}:{device.minor}")
        write_cgroup_file(
            root_path / CGROUP_BFQ_IO_WEIGHT,
            f"{device.major}:{device.minor} {device.weight}",
        )

    if blkio.leaf_weight is not None and blkio.leaf_weight > 0:
        raise CgroupError("cannot set leaf_weight with cgroupv2")

    if blkio.weight is not None and blkio.weight > 0:
        write_cgroup_file(root_path / CGROUP_IO_WEIGHT, blkio.weight)

    throttles = (
        ("rbps", blkio.throttle_read_bps_device),
        ("wbps", blkio.throttle_write_bps_device),
        ("riops", blkio.throttle_read_iops_device),
        ("wiops", blkio.throttle_write_iops_device),
    )
    for key, devices in throttles:
        for device in devices or ():
            write_cgroup_file(
                root_path / CGROUP_IO_MAX,
                f"{device.major}:{device.minor} {key}={device.rate}",
            )


def stats(cgroup_path) -> BlkioStats:
    """Read bytes and operations per device from ``io.stat``."""
    keyed_data = parse_nested_keyed_data(Path(cgroup_path) / CGROUP_IO_STAT)
    result = BlkioStats()
    for device, values in keyed_data.items():
        major, minor = parse_device_number(device)
        for entry in values:
            key, sep, raw = entry.partition("=")
            if not sep or key not in _STAT_KEYS:
                continue
            target, op_type = _STAT_KEYS[key]
            getattr(result, target).append(
                BlkioDeviceStat(
                    major=major, minor=minor, op_type=op_type, value=parse_value(raw)
                )
            )
    return result