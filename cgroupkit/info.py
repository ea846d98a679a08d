"""Print information about the system the runtime runs on."""

from __future__ import annotations

import argparse
import os
from importlib import metadata
from pathlib import Path

from cgroupkit.util import CgroupError, get_unified_mount_point

OS_RELEASE_PATHS = ("/etc/os-release", "/usr/lib/os-release")
CPUINFO_PATH = "/proc/cpuinfo"
MEMINFO_PATH = "/proc/meminfo"
MOUNTINFO_PATH = "/proc/self/mountinfo"
BOOT_DIR = "/boot"

_V1_SUBSYSTEMS = (
    "cpu",
    "cpuacct",
    "cpuset",
    "devices",
    "hugetlb",
    "memory",
    "pids",
    "perf_event",
    "blkio",
    "net_cls",
    "net_prio",
    "freezer",
)


def _version() -> str:
    try:
        return metadata.version("cgroupkit")
    except metadata.PackageNotFoundError:
        return "0.0.1"


def _row(label: str, value) -> None:
    print(f"{label:<18}{value}")


def print_version() -> None:
    """Print the version of this package."""
    _row("Version", _version())


def print_kernel() -> None:
    """Print kernel release, version and architecture."""
    uname = os.uname()
    _row("Kernel-Release", uname.release)
    _row("Kernel-Version", uname.version)
    _row("Architecture", uname.machine)


def print_os() -> None:
    """Print the name of the operating system distribution."""
    for path in OS_RELEASE_PATHS:
        os_name = try_read_os_from(path)
        if os_name is not None:
            _row("Operating System", os_name)
            return


def try_read_os_from(path) -> str | None:
    """Read the distribution name from an os-release file, if possible."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None

    pretty = find_parameter(content, "PRETTY_NAME")
    if pretty is not None:
        return pretty.strip('"')

    name = find_parameter(content, "NAME")
    version = find_parameter(content, "VERSION")
    if name is not None and version is not None:
        return f"{name.strip(chr(34))} {version.strip(chr(34))}"
    return None


def find_parameter(content: str, param_name: str) -> str | None:
    """Return the value after the last ``=`` of the first line starting with ``param_name``."""
    line = next((l for l in content.splitlines() if l.startswith(param_name)), None)
    if line is None:
        return None
    parts = line.split("=")
    if parts and parts[-1] == "":
        parts.pop()
    return parts[-1] if parts else None


def _count_cores(cpuinfo) -> int:
    content = Path(cpuinfo).read_text(encoding="utf-8")
    return sum(
        1 for line in content.splitlines() if line.split(":")[0].strip() == "processor"
    )


def _mem_total_mb(meminfo) -> int:
    content = Path(meminfo).read_text(encoding="utf-8")
    for line in content.splitlines():
        key, _, rest = line.partition(":")
        if key.strip() == "MemTotal":
            fields = rest.split()
            kib = int(fields[0])
            if len(fields) > 1 and fields[1] == "kB":
                return kib * 1024 // (1024**2)
            return kib // (1024**2)
    raise ValueError("MemTotal not found")


def print_hardware() -> None:
    """Print the number of cores and the total memory in MB."""
    try:
        _row("Cores", _count_cores(CPUINFO_PATH))
    except (OSError, ValueError):
        pass
    try:
        _row("Total Memory", _mem_total_mb(MEMINFO_PATH))
    except (OSError, ValueError, IndexError):
        pass


def _cgroup_mounts() -> list[tuple[str, str, list[str]]]:
    """Return (fs type, mount point, super options) of cgroup mounts."""
    content = Path(MOUNTINFO_PATH).read_text(encoding="utf-8")
    mounts = []
    for line in content.splitlines():
        fields = line.split()
        if "-" not in fields:
            continue
        sep = fields.index("-")
        if sep < 5 or sep + 1 >= len(fields):
            continue
        fs_type = fields[sep + 1]
        if fs_type not in ("cgroup", "cgroup2"):
            continue
        options = fields[sep + 3].split(",") if sep + 3 < len(fields) else []
        mounts.append((fs_type, fields[4], options))
    return mounts


def print_cgroups() -> None:
    """Print the cgroup versions in use and where the controllers are mounted."""
    try:
        mounts = _cgroup_mounts()
    except OSError:
        mounts = None

    if mounts is not None:
        versions = []
        if any(fs == "cgroup" for fs, _, _ in mounts):
            versions.append("v1")
        if any(fs == "cgroup2" for fs, _, _ in mounts):
            versions.append("v2")
        if versions:
            _row("Cgroup version", " and ".join(versions))

    print("Cgroup mounts")
    if mounts is not None:
        v1_mounts = sorted(
            f"  {subsystem:<16}{mount_point}"
            for fs, mount_point, options in mounts
            if fs == "cgroup"
            for subsystem in options
            if subsystem in _V1_SUBSYSTEMS
        )
        for entry in v1_mounts:
            print(entry)

    try:
        unified = get_unified_mount_point(MOUNTINFO_PATH)
    except CgroupError:
        return
    print(f"  {'unified':<16}{unified}")


def print_namespaces() -> None:
    """Print which namespaces the kernel configuration enables."""
    kernel_config = Path(BOOT_DIR) / f"config-{os.uname().release}"
    if not kernel_config.exists():
        return
    try:
        content = kernel_config.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return

    ns_enabled = find_parameter(content, "CONFIG_NAMESPACES")
    if ns_enabled is not None:
        if ns_enabled == "y":
            print(f"{'Namespaces':<18}enabled")
        else:
            print(f"{'Namespaces':<18}disabled")
            return

    # Mount namespaces are always there when namespaces are.
    print(f"  {'mount':<16}enabled")
    print_feature_status(content, "CONFIG_UTS_NS", "uts")
    print_feature_status(content, "CONFIG_IPC_NS", "ipc")
    print_feature_status(content, "CONFIG_USER_NS", "user")
    print_feature_status(content, "CONFIG_PID_NS", "pid")
    print_feature_status(content, "CONFIG_NET_NS", "network")


def print_feature_status(config: str, feature: str, display: str) -> None:
    """Print whether a kernel feature is set to ``y`` in ``config``."""
    status = "enabled" if find_parameter(config, feature) == "y" else "disabled"
    print(f"  {display:<16}{status}")


def main(argv=None) -> int:
    """Print all system information."""
    parser = argparse.ArgumentParser(description="Show information about the system.")
    parser.parse_args(argv)
    print_version()
    print_kernel()
    print_os()
    print_hardware()
    print_cgroups()
    print_namespaces()
    return 0