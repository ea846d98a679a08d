"""List the processes that run inside a cgroup."""

from __future__ import annotations

import json
import subprocess
from typing import Iterable, Sequence

from cgroupkit.util import CgroupError, get_all_pids

DEFAULT_PS_OPTIONS = ("-ef",)


def get_pid_index(title: str) -> int:
    """Return the column of ``PID`` in the header line of ps output."""
    for index, name in enumerate(title.split()):
        if name == "PID":
            return index
    raise CgroupError("could't find PID field in ps output")


def filter_ps_output(output: str, pids: Iterable[int]) -> list[str]:
    """Keep the header and the lines of ps output whose pid is in ``pids``."""
    wanted = set(pids)
    lines = output.split("\n")
    header = lines[0]
    pid_index = get_pid_index(header)
    kept = [header]
    for line in lines[1:]:
        if not line:
            continue
        fields = line.split()
        try:
            pid = int(fields[pid_index])
        except (IndexError, ValueError) as exc:
            raise CgroupError(f"failed to read pid from ps line: {line!r}") from exc
        if pid in wanted:
            kept.append(line)
    return kept


def list_processes(
    cgroup_path, fmt: str = "table", ps_options: Sequence[str] | None = None
) -> list[str]:
    """Print the processes of a cgroup as ``json`` or ``table``; return the printed lines."""
    pids = get_all_pids(cgroup_path)

    if fmt == "json":
        lines = [json.dumps(pids, separators=(",", ":"))]
    elif fmt == "table":
        options = list(ps_options) if ps_options else list(DEFAULT_PS_OPTIONS)
        try:
            result = subprocess.run(["ps", *options], capture_output=True, check=False)
        except OSError as exc:
            raise CgroupError(f"failed to run ps: {exc}") from exc
        if result.returncode != 0:
            lines = [result.stderr.decode("utf-8")]
        else:
            lines = filter_ps_output(result.stdout.decode("utf-8"), pids)
    else:
        lines = []

    for line in lines:
        print(line)
    return lines