"""Reading and writing cgroup files and locating the unified hierarchy."""

from __future__ import annotations

import os
import re
from pathlib import Path

CGROUP_PROCS = "cgroup.procs"
DEFAULT_MOUNTINFO = "/proc/self/mountinfo"

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


class CgroupError(Exception):
    """Raised when a cgroup operation fails."""


def write_cgroup_file(path, value) -> None:
    """Write ``value`` to an existing cgroup file."""
    path = Path(path)
    data = str(value).encode()
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CLOEXEC)
    except OSError as exc:
        raise CgroupError(f"failed to open {path}: {exc}") from exc
    try:
        os.write(fd, data)
    except OSError as exc:
        raise CgroupError(f"failed to write to {path}: {exc}") from exc
    finally:
        os.close(fd)


def read_cgroup_file(path) -> str:
    """Return the whole content of a cgroup file."""
    path = Path(path)
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CgroupError(f"failed to open {path}: {exc}") from exc


def join_safely(root, path) -> Path:
    """Append an absolute cgroup path below ``root``."""
    text = os.fspath(path)
    if text and not os.path.isabs(text):
        raise CgroupError(f"cannot join {text} because it is not the absolute path.")
    return Path(os.fspath(root) + text)


def get_all_pids(cgroup_path) -> list[int]:
    """Collect the pids of a cgroup and all cgroups below it."""
    pids: list[int] = []
    for directory, dirnames, _ in os.walk(cgroup_path):
        dirnames.sort()
        procs = Path(directory) / CGROUP_PROCS
        if not procs.exists():
            continue
        for line in read_cgroup_file(procs).splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                pids.append(int(line))
            except ValueError as exc:
                raise CgroupError(f"invalid pid {line!r} in {procs}") from exc
    return pids


def _unescape(field: str) -> str:
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


def get_unified_mount_point(mountinfo=DEFAULT_MOUNTINFO) -> Path:
    """Find where the cgroup2 filesystem is mounted according to a mountinfo file."""
    try:
        content = Path(mountinfo).read_text(encoding="utf-8")
    except OSError as exc:
        raise CgroupError(f"failed to read {mountinfo}: {exc}") from exc
    for line in content.splitlines():
        fields = line.split()
        if "-" not in fields:
            continue
        separator = fields.index("-")
        if separator < 5 or separator + 1 >= len(fields):
            continue
        if fields[separator + 1] == "cgroup2":
            return Path(_unescape(fields[4]))
    raise CgroupError("could not find mountpoint for unified")