# cgroupkit

Tools for driving the Linux **cgroup v2** unified hierarchy from Python: apply
OCI-style resource limits, freeze and thaw groups, collect statistics, and
compile device access rules into device filter programs that can be run and
checked without a kernel.

The package has no third-party dependencies.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## What is inside

| Module | Purpose |
| --- | --- |
| `cgroupkit.resources` | Resource descriptions (`LinuxResources`, `LinuxCpu`, `LinuxMemory`, `LinuxPids`, `LinuxBlockIo`, `LinuxThrottleDevice`, `LinuxWeightDevice`, `LinuxHugepageLimit`, `LinuxDeviceCgroup`, `LinuxDeviceType`, `FreezerState`) and the `ControllerType` / `PseudoControllerType` enums |
| `cgroupkit.util` | `CgroupError`, `write_cgroup_file`, `read_cgroup_file`, `join_safely`, `get_all_pids`, `get_unified_mount_point` |
| `cgroupkit.stats` | Statistics records (`Stats`, `CpuUsage`, `MemoryStats`, `PidStats`, `BlkioStats`, `HugeTlbStats`, ...) and parsers for single-value, flat-keyed and nested-keyed cgroup files |
| `cgroupkit.cpu`, `cpuset`, `pids`, `memory`, `io`, `hugetlb`, `freezer` | One module per controller, each with `apply(resources, cgroup_path)`; most also have a `stats(cgroup_path)` |
| `cgroupkit.unified` | `apply(resources, cgroup_path, controllers)` writes raw `file: value` settings |
| `cgroupkit.manager` | `Manager`, which creates a cgroup below a mount point and drives every controller |
| `cgroupkit.systemd_manager` | `SystemdCgroupManager` and the `slice:prefix:name` path handling |
| `cgroupkit.emulator`, `cgroupkit.program` | Device rule collection (`Emulator`) and the device filter program (`Program`) built from it |
| `cgroupkit.capabilities` | `Capability`, `CapSet`, `LinuxCapabilities`, `reset_effective`, `drop_privileges` |
| `cgroupkit.info` | System report: version, kernel, OS, hardware, cgroup mounts, namespaces |
| `cgroupkit.ps` | Listing the processes that belong to a cgroup |

Every failure is raised as `cgroupkit.util.CgroupError`.

## Applying limits

```python
from cgroupkit.manager import Manager
from cgroupkit.resources import LinuxCpu, LinuxResources

manager = Manager("/sys/fs/cgroup", "/mycontainer")
manager.add_task(4242)
manager.apply(LinuxResources(cpu=LinuxCpu(shares=1024, quota=50000, period=100000)))

print(manager.get_all_pids())
print(manager.stats())
manager.remove()
```

`add_task` enables the controllers listed in the root's `cgroup.controllers`
on each level of the path, creates missing directories and writes the pid to
`cgroup.procs` of the leaf. `apply` runs the cpu, cpuset, hugetlb, io, memory,
pids and freezer controllers in that order, then writes the `unified`
settings.

Each controller writes only the files it owns. For example the cpu controller
writes `cpu.weight` (converted from shares) and `cpu.max` (`"max 100000"` when
neither quota nor period is given), and a pids limit of zero or less becomes
`"max"`. Invalid requests, such as a real-time cpu setting, a swap limit
without a memory limit or a huge page size that is not a power of two, raise
`CgroupError`.

Freezing writes `cgroup.freeze` and, for a freeze, polls `cgroup.events` until
it reports `frozen 1`:

```python
from cgroupkit.resources import FreezerState

manager.freeze(FreezerState.FROZEN)
manager.freeze(FreezerState.THAWED)
```

## systemd cgroup paths

`SystemdCgroupManager` accepts paths of the form `slice:prefix:name`, or a
path under `/youki`:

```python
from cgroupkit.systemd_manager import construct_cgroups_path, destructure_cgroups_path, expand_slice

print(expand_slice("test-a-b.slice"))
# /test.slice/test-a.slice/test-a-b.slice

print(construct_cgroups_path(destructure_cgroups_path("machine.slice:libpod:foo")))
# /machine.slice/libpod-foo.scope
```

It applies only the cpu, io, memory and pids controllers, returns empty
statistics from `stats()`, and its `remove()` does nothing.

## Device rules

`Emulator` collects `LinuxDeviceCgroup` rules: a rule of type `a` clears the
list and switches between allow-all and deny-all, and a rule without access is
dropped. `Program.from_rules(rules, default_allow)` compiles the result into
eBPF instructions that check the rules last to first.

```python
from cgroupkit.emulator import Emulator
from cgroupkit.program import Program
from cgroupkit.resources import LinuxDeviceCgroup, LinuxDeviceType

emulator = Emulator(default_allow=False)
emulator.add_rule(LinuxDeviceCgroup(allow=True, typ=LinuxDeviceType.C, major=10, minor=20, access="r"))
program = Program.from_rules(emulator.rules, emulator.default_allow)

print(program.execute(LinuxDeviceType.C, 10, 20, "r"))  # 1
print(program.execute(LinuxDeviceType.C, 10, 20, "w"))  # 0
program.dump()  # prints the disassembled instructions
```

`Program.bytecodes()` returns the encoded instructions.

## Capabilities

`reset_effective(syscall)` and `drop_privileges(cs, syscall)` decide which
capability sets to change and call `syscall.set_capability(cap_set, capabilities)`
on an object you supply. A failure to set ambient capabilities is logged, not
raised.

## Processes in a cgroup

```python
from cgroupkit.ps import list_processes

list_processes("/sys/fs/cgroup/mycontainer", fmt="json")
list_processes("/sys/fs/cgroup/mycontainer", fmt="table", ps_options=["-ef"])
```

The `table` format runs the system `ps` command and keeps the lines whose pid
belongs to the cgroup or any cgroup below it.

## System report

```
cgroupkit-info
```

prints the package version, kernel release and version, architecture,
operating system, cpu cores, total memory in MB, the cgroup versions and
mounts in use, and which namespaces the running kernel's `/boot/config-*`
enables.

## What it does not do

- It is not a container runtime: there are no commands to create, start,
  kill, pause or delete containers, and no container state is stored.
- Device programs are only built and run in-process; nothing loads or
  attaches them to a cgroup, and `Manager.apply` does not apply device rules.
- `SystemdCgroupManager` does not talk to systemd; it only lays out
  directories the way systemd names them.
- Capabilities are not changed on the running process by the package itself;
  the `syscall` object does that.