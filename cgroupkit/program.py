"""Build and run eBPF programs that decide device access for a cgroup."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable

from cgroupkit.resources import LinuxDeviceCgroup, LinuxDeviceType
from cgroupkit.util import CgroupError

BPF_DEVCG_ACC_MKNOD = 1
BPF_DEVCG_ACC_READ = 2
BPF_DEVCG_ACC_WRITE = 4
BPF_DEVCG_DEV_BLOCK = 1
BPF_DEVCG_DEV_CHAR = 2

_ALL_ACCESS = BPF_DEVCG_ACC_READ | BPF_DEVCG_ACC_WRITE | BPF_DEVCG_ACC_MKNOD

# Instruction classes, sources and modes.
_CLASS_LDX = 0x01
_CLASS_ALU = 0x04
_CLASS_JMP = 0x05
_CLASS_ALU64 = 0x07
_SRC_K = 0x00
_SRC_X = 0x08
_MODE_MEM = 0x60
_SIZE_W = 0x00

_LOAD_SIZES = {0x00: (4, "w"), 0x08: (2, "h"), 0x10: (1, "b"), 0x18: (8, "dw")}

_ALU_NAMES = {
    0x00: "add",
    0x10: "sub",
    0x20: "mul",
    0x30: "div",
    0x40: "or",
    0x50: "and",
    0x60: "lsh",
    0x70: "rsh",
    0x80: "neg",
    0x90: "mod",
    0xA0: "xor",
    0xB0: "mov",
    0xC0: "arsh",
}
_OP_AND = 0x50
_OP_RSH = 0x70
_OP_MOV = 0xB0

_JMP_NAMES = {
    0x00: "ja",
    0x10: "jeq",
    0x20: "jgt",
    0x30: "jge",
    0x40: "jset",
    0x50: "jne",
    0x60: "jsgt",
    0x70: "jsge",
    0x90: "exit",
    0xA0: "jlt",
    0xB0: "jle",
    0xC0: "jslt",
    0xD0: "jsle",
}
_OP_JA = 0x00
_OP_JNE = 0x50
_OP_EXIT = 0x90

_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1
_MAX_STEPS = 1_000_000

_INSN_FORMAT = struct.Struct("<BBhi")
_CTX_FORMAT = struct.Struct("<III")


def _to_i32(value: int) -> int:
    return ((value + (1 << 31)) & _MASK32) - (1 << 31)


def _signed(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    return value - (1 << bits) if value >> (bits - 1) else value


@dataclass(frozen=True)
class _Insn:
    opcode: int
    dst: int = 0
    src: int = 0
    off: int = 0
    imm: int = 0

    def encode(self) -> bytes:
        return _INSN_FORMAT.pack(
            self.opcode, (self.src << 4) | self.dst, self.off, self.imm
        )

    @classmethod
    def decode_all(cls, code: bytes) -> list["_Insn"]:
        if len(code) % _INSN_FORMAT.size:
            raise CgroupError("program length is not a multiple of the instruction size")
        return [
            cls(opcode, regs & 0x0F, regs >> 4, off, imm)
            for opcode, regs, off, imm in _INSN_FORMAT.iter_unpack(code)
        ]

    def disassemble(self) -> str:
        cls = self.opcode & 0x07
        if cls == _CLASS_LDX and self.opcode & 0xE0 == _MODE_MEM:
            _, suffix = _LOAD_SIZES[self.opcode & 0x18]
            return f"ldx{suffix} r{self.dst}, [r{self.src}{self.off:+#x}]"
        if cls in (_CLASS_ALU, _CLASS_ALU64):
            name = _ALU_NAMES.get(self.opcode & 0xF0)
            if name is not None:
                bits = 64 if cls == _CLASS_ALU64 else 32
                if name == "neg":
                    return f"neg{bits} r{self.dst}"
                operand = f"r{self.src}" if self.opcode & _SRC_X else f"{self.imm:#x}"
                return f"{name}{bits} r{self.dst}, {operand}"
        if cls == _CLASS_JMP:
            name = _JMP_NAMES.get(self.opcode & 0xF0)
            if name == "exit":
                return "exit"
            if name == "ja":
                return f"ja {self.off:+#x}"
            if name is not None:
                operand = f"r{self.src}" if self.opcode & _SRC_X else f"{self.imm:#x}"
                return f"{name} r{self.dst}, {operand}, {self.off:+#x}"
        return f"unknown {self.opcode:#04x}"


def _alu(op: int, a: int, b: int, bits: int) -> int:
    mask = (1 << bits) - 1
    if op == 0x00:
        return a + b
    if op == 0x10:
        return a - b
    if op == 0x20:
        return a * b
    if op == 0x30:
        if b == 0:
            raise CgroupError("division by zero")
        return a // b
    if op == 0x40:
        return a | b
    if op == 0x50:
        return a & b
    if op == 0x60:
        return a << (b & (bits - 1))
    if op == 0x70:
        return a >> (b & (bits - 1))
    if op == 0x80:
        return -a
    if op == 0x90:
        if b == 0:
            raise CgroupError("division by zero")
        return a % b
    if op == 0xA0:
        return a ^ b
    if op == 0xB0:
        return b
    if op == 0xC0:
        return (_signed(a, bits) >> (b & (bits - 1))) & mask
    raise CgroupError(f"unsupported alu operation {op:#04x}")


def _jump_taken(op: int, a: int, b: int) -> bool:
    if op == 0x10:
        return a == b
    if op == 0x20:
        return a > b
    if op == 0x30:
        return a >= b
    if op == 0x40:
        return a & b != 0
    if op == 0x50:
        return a != b
    if op == 0xA0:
        return a < b
    if op == 0xB0:
        return a <= b
    sa, sb = _signed(a, 64), _signed(b, 64)
    if op == 0x60:
        return sa > sb
    if op == 0x70:
        return sa >= sb
    if op == 0xC0:
        return sa < sb
    if op == 0xD0:
        return sa <= sb
    raise CgroupError(f"unsupported jump operation {op:#04x}")


def _run(code: bytes, mem: bytes) -> int:
    insns = _Insn.decode_all(code)
    regs = [0] * 11
    regs[1] = 0  # the context starts at address 0 of ``mem``
    pc = 0
    for _ in range(_MAX_STEPS):
        if not 0 <= pc < len(insns):
            raise CgroupError(f"program counter {pc} is outside the program")
        insn = insns[pc]
        pc += 1
        cls = insn.opcode & 0x07

        if cls == _CLASS_LDX:
            if insn.opcode & 0xE0 != _MODE_MEM:
                raise CgroupError(f"unsupported load {insn.opcode:#04x}")
            size, _ = _LOAD_SIZES[insn.opcode & 0x18]
            address = regs[insn.src] + insn.off
            if address < 0 or address + size > len(mem):
                raise CgroupError(f"memory access out of bounds at {address}")
            regs[insn.dst] = int.from_bytes(mem[address : address + size], "little")
        elif cls in (_CLASS_ALU, _CLASS_ALU64):
            bits = 64 if cls == _CLASS_ALU64 else 32
            mask = (1 << bits) - 1
            operand = regs[insn.src] if insn.opcode & _SRC_X else insn.imm & _MASK64
            result = _alu(insn.opcode & 0xF0, regs[insn.dst] & mask, operand & mask, bits)
            regs[insn.dst] = result & mask
        elif cls == _CLASS_JMP:
            op = insn.opcode & 0xF0
            if op == _OP_EXIT:
                return regs[0]
            if op == _OP_JA:
                pc += insn.off
                continue
            operand = regs[insn.src] if insn.opcode & _SRC_X else insn.imm & _MASK64
            if _jump_taken(op, regs[insn.dst], operand):
                pc += insn.off
        else:
            raise CgroupError(f"unsupported instruction {insn.opcode:#04x}")
    raise CgroupError("program did not finish")


def bpf_dev_type(typ: LinuxDeviceType) -> int:
    """Map a device type to its number in the device program context."""
    if typ is LinuxDeviceType.C:
        return BPF_DEVCG_DEV_CHAR
    if typ is LinuxDeviceType.B:
        return BPF_DEVCG_DEV_BLOCK
    if typ is LinuxDeviceType.U:
        raise CgroupError("unbuffered char device not supported")
    if typ is LinuxDeviceType.P:
        raise CgroupError("pipe device not supported")
    raise CgroupError("wildcard device type should be removed when cleaning rules")


def bpf_access(access: str) -> int:
    """Turn an access string such as ``rwm`` into its bit mask."""
    flags = {"r": BPF_DEVCG_ACC_READ, "w": BPF_DEVCG_ACC_WRITE, "m": BPF_DEVCG_ACC_MKNOD}
    value = 0
    for char in access:
        if char not in flags:
            raise CgroupError(f"invalid access: {char}")
        value |= flags[char]
    return value


def bpf_cgroup_dev_ctx(typ: LinuxDeviceType, major: int, minor: int, access: str) -> bytes:
    """Build the context a device program sees for one access request."""
    try:
        type_access = bpf_dev_type(typ) & 0xFFFF
    except CgroupError:
        type_access = 0
    type_access |= bpf_access(access) << 16
    return _CTX_FORMAT.pack(type_access & _MASK32, major & _MASK32, minor & _MASK32)


class Program:
    """A device program: rules are checked last to first, then the default applies."""

    def __init__(self) -> None:
        self._insns: list[_Insn] = []

    @classmethod
    def from_rules(
        cls, rules: Iterable[LinuxDeviceCgroup], default_allow: bool
    ) -> "Program":
        """Compile ``rules`` into a program."""
        prog = cls()
        prog._init()
        for rule in reversed(list(rules)):
            prog._add_rule(rule)
        prog._finalize(default_allow)
        return prog

    def bytecodes(self) -> bytes:
        """Return the encoded instructions."""
        return b"".join(insn.encode() for insn in self._insns)

    def dump(self) -> list[str]:
        """Print the disassembled program and return its lines."""
        lines = [insn.disassemble() for insn in self._insns]
        for line in lines:
            print(line)
        return lines

    def execute(
        self, typ: LinuxDeviceType, major: int, minor: int, access: str
    ) -> int:
        """Run the program for one access request: 1 allows it, 0 denies it."""
        return _run(self.bytecodes(), bpf_cgroup_dev_ctx(typ, major, minor, access))

    def _emit(self, opcode: int, dst: int = 0, src: int = 0, off: int = 0, imm: int = 0) -> None:
        self._insns.append(_Insn(opcode, dst, src, off, _to_i32(imm)))

    def _init(self) -> None:
        # R2 <- device type (low 16 bits of access_type)
        # R3 <- access (high 16 bits of access_type)
        # R4 <- major, R5 <- minor
        load_word = _CLASS_LDX | _MODE_MEM | _SIZE_W
        self._emit(load_word, dst=2, src=1, off=0)
        self._emit(_CLASS_ALU | _OP_AND | _SRC_K, dst=2, imm=0xFFFF)
        self._emit(load_word, dst=3, src=1, off=0)
        self._emit(_CLASS_ALU | _OP_RSH | _SRC_K, dst=3, imm=16)
        self._emit(load_word, dst=4, src=1, off=4)
        self._emit(load_word, dst=5, src=1, off=8)

    def _finalize(self, default_allow: bool) -> None:
        self._emit(_CLASS_ALU | _OP_MOV | _SRC_K, dst=0, imm=int(default_allow))
        self._emit(_CLASS_JMP | _OP_EXIT)

    def _add_rule(self, rule: LinuxDeviceCgroup) -> None:
        dev_type = bpf_dev_type(rule.typ or LinuxDeviceType.A)
        access = bpf_access(rule.access or "")
        has_access = access != _ALL_ACCESS
        has_major = rule.major is not None and rule.major >= 0
        has_minor = rule.minor is not None and rule.minor >= 0

        instruction_count = 1 + 3 * has_access + has_major + has_minor + 2
        next_rule = instruction_count - 1

        # if (R2 != dev_type) goto next rule
        self._emit(_CLASS_JMP | _OP_JNE | _SRC_K, dst=2, imm=dev_type, off=next_rule)

        if has_access:
            next_rule -= 3
            # if (R3 & access != R3) goto next rule, with R1 as scratch
            self._emit(_CLASS_ALU | _OP_MOV | _SRC_X, dst=1, src=3)
            self._emit(_CLASS_ALU | _OP_AND | _SRC_K, dst=1, imm=access)
            self._emit(_CLASS_JMP | _OP_JNE | _SRC_X, dst=1, src=3, off=next_rule)

        if has_major:
            next_rule -= 1
            self._emit(_CLASS_JMP | _OP_JNE | _SRC_K, dst=4, imm=rule.major, off=next_rule)

        if has_minor:
            next_rule -= 1
            self._emit(_CLASS_JMP | _OP_JNE | _SRC_K, dst=5, imm=rule.minor, off=next_rule)

        self._emit(_CLASS_ALU | _OP_MOV | _SRC_K, dst=0, imm=int(rule.allow))
        self._emit(_CLASS_JMP | _OP_EXIT)