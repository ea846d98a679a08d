import pytest

from cgroupkit.capabilities import (
    CapSet,
    Capability,
    LinuxCapabilities,
    all_capabilities,
    drop_privileges,
    reset_effective,
)


class RecordingSyscall:
    def __init__(self, failing=()):
        self.calls = []
        self.failing = set(failing)

    def set_capability(self, cset, value):
        if cset in self.failing:
            raise OSError(f"cannot set {cset}")
        self.calls.append((cset, value))


def test_reset_effective():
    syscall = RecordingSyscall()
    reset_effective(syscall)
    assert [caps for _, caps in syscall.calls] == [all_capabilities()]
    assert syscall.calls[0][0] is CapSet.EFFECTIVE


def test_all_capabilities_holds_every_member():
    caps = all_capabilities()
    assert Capability.CHOWN in caps
    assert Capability.SYS_ADMIN in caps
    assert len(caps) == len(Capability)


def test_capability_names():
    assert str(Capability.CHOWN) == "CAP_CHOWN"
    assert Capability.from_name("CAP_NET_RAW") is Capability.NET_RAW
    with pytest.raises(ValueError):
        Capability.from_name("CAP_NOT_A_THING")
    with pytest.raises(ValueError):
        Capability.from_name("CHOWN")


def test_drop_privileges_order_and_sets():
    cs = LinuxCapabilities(
        bounding=[Capability.CHOWN, Capability.KILL],
        effective=[Capability.KILL],
        permitted=[Capability.KILL, Capability.KILL],
        inheritable=[],
        ambient=[Capability.NET_RAW],
    )
    syscall = RecordingSyscall()
    drop_privileges(cs, syscall)
    assert syscall.calls == [
        (CapSet.BOUNDING, {Capability.CHOWN, Capability.KILL}),
        (CapSet.EFFECTIVE, {Capability.KILL}),
        (CapSet.PERMITTED, {Capability.KILL}),
        (CapSet.INHERITABLE, set()),
        (CapSet.AMBIENT, {Capability.NET_RAW}),
    ]


def test_drop_privileges_skips_missing_sets():
    syscall = RecordingSyscall()
    drop_privileges(LinuxCapabilities(effective=[Capability.SETUID]), syscall)
    assert syscall.calls == [(CapSet.EFFECTIVE, {Capability.SETUID})]


def test_ambient_failure_is_ignored():
    syscall = RecordingSyscall(failing={CapSet.AMBIENT})
    cs = LinuxCapabilities(bounding=[Capability.CHOWN], ambient=[Capability.KILL])
    drop_privileges(cs, syscall)
    assert syscall.calls == [(CapSet.BOUNDING, {Capability.CHOWN})]


def test_other_failures_propagate():
    syscall = RecordingSyscall(failing={CapSet.PERMITTED})
    cs = LinuxCapabilities(effective=[Capability.CHOWN], permitted=[Capability.CHOWN])
    with pytest.raises(OSError):
        drop_privileges(cs, syscall)
    assert syscall.calls == [(CapSet.EFFECTIVE, {Capability.CHOWN})]