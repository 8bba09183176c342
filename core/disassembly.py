from __future__ import annotations

import logging
from typing import List, Protocol

from capstone import CS_ARCH_ARM, CS_MODE_ARM, CS_MODE_LITTLE_ENDIAN, CS_MODE_THUMB, Cs, CsError

from core.cpu import InstructionSet
from core.model import DecodeFailed, Decoded, DecodeResult, DisassemblyLine, DisassemblyWindow

logger = logging.getLogger(__name__)


class DisassemblyError(Exception):
    def __init__(self, message: str, base_address: int) -> None:
        super().__init__(message)
        self.message = message
        self.base_address = base_address


class Disassembler(Protocol):
    def disassemble(self, data: bytes, base_address: int) -> List[DisassemblyLine]:
        ...


class CapstoneDisassembler:
    """ARM/Thumb disassembler backed by capstone."""

    def __init__(self, instruction_set: InstructionSet) -> None:
        self.instruction_set = instruction_set
        mode = CS_MODE_THUMB if instruction_set is InstructionSet.THUMB else CS_MODE_ARM
        self.md = Cs(CS_ARCH_ARM, mode + CS_MODE_LITTLE_ENDIAN)

    def disassemble(self, data: bytes, base_address: int) -> List[DisassemblyLine]:
        try:
            lines = [
                DisassemblyLine(
                    address=insn.address,
                    raw_bytes=bytes(insn.bytes),
                    mnemonic=insn.mnemonic,
                    op_str=insn.op_str,
                )
                for insn in self.md.disasm(bytes(data), base_address)
            ]
        except CsError as exc:
            raise DisassemblyError(str(exc), base_address) from exc
        if data and not lines:
            raise DisassemblyError(
                f"No {self.instruction_set.value} instruction decodes at 0x{base_address:08X}",
                base_address,
            )
        return lines


class DisassemblerBank:
    def __init__(self, arm: Disassembler | None = None, thumb: Disassembler | None = None) -> None:
        self.arm = arm or CapstoneDisassembler(InstructionSet.ARM)
        self.thumb = thumb or CapstoneDisassembler(InstructionSet.THUMB)

    def select(self, instruction_set: InstructionSet) -> Disassembler:
        if instruction_set is InstructionSet.THUMB:
            return self.thumb
        return self.arm


def plan_window(pc: int, instruction_set: InstructionSet) -> DisassemblyWindow:
    # Two already-fetched instructions precede the reported PC.
    width = instruction_set.width
    return DisassemblyWindow(start=max(0, pc - 2 * width), end=pc + width)


def disassemble_window(
    memory,
    bios_base: int,
    window: DisassemblyWindow,
    disassembler: Disassembler,
) -> DecodeResult:
    data = bytes(memory[bios_base + window.start : bios_base + window.end])
    try:
        lines = disassembler.disassemble(data, window.base_address)
    except DisassemblyError as exc:
        logger.warning("Disassembly failed at 0x%08X: %s", window.start, exc.message)
        return DecodeFailed(exc.message)
    return Decoded(lines)
