"""The cgroup v2 freezer."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from cgroupkit.resources import FreezerState, LinuxResources
from cgroupkit.util import CgroupError

CGROUP_FREEZE = "cgroup.freeze"
CGROUP_EVENTS = "cgroup.events"

_WAIT_TIME = 0.01
_MAX_ITER = 1000

log = logging.getLogger(__name__)


def apply(resources: LinuxResources, cgroup_path) -> None:
    """Apply the freezer state of ``resources`` to a cgroup."""
    if resources.freezer is None:
        return
    try:
        set_state(resources.freezer, cgroup_path)
    except CgroupError as exc:
        raise CgroupError(f"failed to apply freezer: {exc}") from exc


def set_state(state: FreezerState, path) -> None:
    """Freeze or thaw a cgroup and confirm the change took effect."""
    path = Path(path)
    if state is FreezerState.UNDEFINED:
        return
    value = b"1" if state is FreezerState.FROZEN else b"0"

    try:
        fd = os.open(path / CGROUP_FREEZE, os.O_WRONLY | os.O_CLOEXEC)
    except OSError as exc:
        if state is FreezerState.FROZEN:
            raise CgroupError(f"freezer not supported {exc}") from exc
        return
    try:
        os.write(fd, value)
    except OSError as exc:
        raise CgroupError(f"failed to write {CGROUP_FREEZE}: {exc}") from exc
    finally:
        os.close(fd)

    actual = read_freezer_state(path)
    if actual is not state:
        raise CgroupError(
            f'expected "{CGROUP_FREEZE}" to be in state {state.name} '
            f"but was in {actual.name}"
        )


def read_freezer_state(path) -> FreezerState:
    """Read the state recorded in ``cgroup.freeze``."""
    path = Path(path)
    try:
        with open(path / CGROUP_FREEZE, "rb") as freeze:
            head = freeze.read(1)
    except OSError as exc:
        raise CgroupError(f"failed to read {CGROUP_FREEZE}: {exc}") from exc
    if len(head) != 1:
        raise CgroupError(f"failed to read {CGROUP_FREEZE}: file is empty")
    if head == b"0":
        return FreezerState.THAWED
    if head == b"1":
        return wait_frozen(path)
    shown = head.decode("utf-8", errors="replace")
    raise CgroupError(f'unknown "{CGROUP_FREEZE}" state: {shown}')


def wait_frozen(path) -> FreezerState:
    """Poll ``cgroup.events`` until it reports ``frozen 1``."""
    try:
        events = open(Path(path) / CGROUP_EVENTS, encoding="utf-8")
    except OSError as exc:
        raise CgroupError(f"failed to open {CGROUP_EVENTS}: {exc}") from exc

    with events:
        retries = 0
        while True:
            if retries == _MAX_ITER:
                raise CgroupError(
                    f"timeout of {round(_WAIT_TIME * 1000) * _MAX_ITER} ms reached "
                    "waiting for the cgroup to freeze"
                )
            line = events.readline()
            if not line:
                break
            if line.startswith("frozen "):
                if line.startswith("frozen 1"):
                    if retries > 1:
                        log.debug("frozen after %d retries", retries)
                    return FreezerState.FROZEN
                retries += 1
                time.sleep(_WAIT_TIME)
                events.seek(0)

    return FreezerState.UNDEFINED