"""Resetting and dropping the capabilities of the calling process."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

log = logging.getLogger(__name__)


class CapSet(enum.Enum):
    """The capability sets a process has."""

    EFFECTIVE = "effective"
    PERMITTED = "permitted"
    INHERITABLE = "inheritable"
    BOUNDING = "bounding"
    AMBIENT = "ambient"


class Capability(enum.IntEnum):
    """Linux capabilities with their kernel numbers."""

    CHOWN = 0
    DAC_OVERRIDE = 1
    DAC_READ_SEARCH = 2
    FOWNER = 3
    FSETID = 4
    KILL = 5
    SETGID = 6
    SETUID = 7
    SETPCAP = 8
    LINUX_IMMUTABLE = 9
    NET_BIND_SERVICE = 10
    NET_BROADCAST = 11
    NET_ADMIN = 12
    NET_RAW = 13
    IPC_LOCK = 14
    IPC_OWNER = 15
    SYS_MODULE = 16
    SYS_RAWIO = 17
    SYS_CHROOT = 18
    SYS_PTRACE = 19
    SYS_PACCT = 20
    SYS_ADMIN = 21
    SYS_BOOT = 22
    SYS_NICE = 23
    SYS_RESOURCE = 24
    SYS_TIME = 25
    SYS_TTY_CONFIG = 26
    MKNOD = 27
    LEASE = 28
    AUDIT_WRITE = 29
    AUDIT_CONTROL = 30
    SETFCAP = 31
    MAC_OVERRIDE = 32
    MAC_ADMIN = 33
    SYSLOG = 34
    WAKE_ALARM = 35
    BLOCK_SUSPEND = 36
    AUDIT_READ = 37
    PERFMON = 38
    BPF = 39
    CHECKPOINT_RESTORE = 40

    def __str__(self) -> str:
        return f"CAP_{self.name}"

    @classmethod
    def from_name(cls, name: str) -> "Capability":
        """Look up a capability by a name such as ``CAP_CHOWN``."""
        if not name.startswith("CAP_") or name[4:] not in cls.__members__:
            raise ValueError(f"unknown capability: {name}")
        return cls[name[4:]]


@dataclass
class LinuxCapabilities:
    """Capabilities requested for the container process, per set."""

    bounding: list[Capability] | None = None
    effective: list[Capability] | None = None
    inheritable: list[Capability] | None = None
    permitted: list[Capability] | None = None
    ambient: list[Capability] | None = None


class _Syscall(Protocol):
    def set_capability(self, cset: CapSet, value: set[Capability]) -> None: ...


def all_capabilities() -> set[Capability]:
    """Return the set of every known capability."""
    return set(Capability)


def _to_set(caps: Iterable[Capability]) -> set[Capability]:
    return set(caps)


def reset_effective(syscall: _Syscall) -> None:
    """Make every capability effective for the calling process."""
    log.debug("reset all caps")
    syscall.set_capability(CapSet.EFFECTIVE, all_capabilities())


def drop_privileges(cs: LinuxCapabilities, syscall: _Syscall) -> None:
    """Reduce each capability set to what ``cs`` lists for it."""
    log.debug("dropping bounding capabilities to %s", cs.bounding)
    for cset, caps in (
        (CapSet.BOUNDING, cs.bounding),
        (CapSet.EFFECTIVE, cs.effective),
        (CapSet.PERMITTED, cs.permitted),
        (CapSet.INHERITABLE, cs.inheritable),
    ):
        if caps is not None:
            syscall.set_capability(cset, _to_set(caps))

    if cs.ambient is not None:
        # Ambient capabilities are not always available.
        try:
            syscall.set_capability(CapSet.AMBIENT, _to_set(cs.ambient))
        except Exception as exc:  # noqa: BLE001
            log.error("failed to set ambient capabilities: %s", exc)