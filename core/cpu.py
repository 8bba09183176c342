from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Union


REGISTER_ORDER = [f"R{index}" for index in range(16)]
PC_INDEX = 15

FLAG_BITS = [
    ("N", 31),
    ("Z", 30),
    ("C", 29),
    ("V", 28),
    ("I", 7),
    ("T", 5),
]
MODE_MASK = 0b11111


def clamp_u32(value: int) -> int:
    return value & 0xFFFFFFFF


def _bit(value: int, index: int) -> bool:
    return (value >> index) & 1 == 1


class ProcessorMode(Enum):
    USER = (0b10000, "USR")
    FIQ = (0b10001, "FIQ")
    IRQ = (0b10010, "IRQ")
    SUPERVISOR = (0b10011, "SVC")
    ABORT = (0b10111, "ABT")
    UNDEFINED = (0b11011, "UND")
    SYSTEM = (0b11111, "SYS")

    def __init__(self, bits: int, label: str) -> None:
        self.bits = bits
        self.label = label


_MODES_BY_BITS = {mode.bits: mode for mode in ProcessorMode}


@dataclass(frozen=True)
class UnknownMode:
    bits: int

    @property
    def label(self) -> str:
        return format(self.bits, "b")


Mode = Union[ProcessorMode, UnknownMode]


class InstructionSet(Enum):
    ARM = "arm"
    THUMB = "thumb"

    @property
    def width(self) -> int:
        return 2 if self is InstructionSet.THUMB else 4

    @property
    def pipeline_offset(self) -> int:
        # The reported PC runs two fetches ahead of the executing instruction.
        return 2 * self.width


@dataclass(frozen=True)
class StatusFlags:
    negative: bool
    zero: bool
    carry: bool
    overflow: bool
    irq_disabled: bool
    thumb: bool
    mode: Mode

    @property
    def instruction_set(self) -> InstructionSet:
        return InstructionSet.THUMB if self.thumb else InstructionSet.ARM

    def letters(self) -> str:
        states = [self.negative, self.zero, self.carry, self.overflow, self.irq_disabled, self.thumb]
        return "".join(name if on else "-" for (name, _), on in zip(FLAG_BITS, states))


def decode_mode(bits: int) -> Mode:
    bits &= MODE_MASK
    mode = _MODES_BY_BITS.get(bits)
    if mode is None:
        return UnknownMode(bits)
    return mode


def decode_status(raw: int) -> StatusFlags:
    raw = clamp_u32(raw)
    return StatusFlags(
        negative=_bit(raw, 31),
        zero=_bit(raw, 30),
        carry=_bit(raw, 29),
        overflow=_bit(raw, 28),
        irq_disabled=_bit(raw, 7),
        thumb=_bit(raw, 5),
        mode=decode_mode(raw),
    )


def format_flags(flags: StatusFlags) -> str:
    return f"{flags.letters()} {flags.mode.label}"


@dataclass(frozen=True)
class RegisterSnapshot:
    """Registers and status word read from the engine in a single pass.

    Snapshots are never reused across a step; take a new one after every
    engine mutation.
    """

    registers: List[int]
    cpsr: int

    @classmethod
    def capture(cls, engine) -> "RegisterSnapshot":
        registers = [clamp_u32(engine.get_register(index)) for index in range(len(REGISTER_ORDER))]
        return cls(registers=registers, cpsr=clamp_u32(engine.get_cpsr()))

    @property
    def pc(self) -> int:
        return self.registers[PC_INDEX]

    @property
    def flags(self) -> StatusFlags:
        return decode_status(self.cpsr)

    def hex_values(self) -> List[str]:
        return [f"{value:08X}" for value in self.registers]
