from __future__ import annotations

from typing import List, Optional, Set

import pytest

from core.disassembly import DisassemblyError
from core.model import DisassemblyLine

SVC_ARM = 0b10011
THUMB_BIT = 1 << 5

BIOS_BASE = 0x100
VRAM_BASE = 0x4000
BG_PALETTE_BASE = 0x1C000
SPRITE_PALETTE_BASE = 0x1C400
MEMORY_SIZE = 0x1C800


class FakeEngine:
    """Scripted engine: each step advances R15 by the current width."""

    def __init__(self) -> None:
        self.registers: List[int] = [0] * 16
        self.cpsr = SVC_ARM
        self.bios_base = BIOS_BASE
        self.buffer = bytearray(MEMORY_SIZE)
        self.engine_steps = 0
        self.frames = 0
        self.panic_hooks = 0
        self.flush_at: Set[int] = set()
        self.calls: List[str] = []

    def upload_bios(self, data: bytes) -> None:
        self.calls.append("upload_bios")
        # Reallocate and relocate, like a growing wasm heap.
        self.bios_base += 0x10
        self.buffer = bytearray(MEMORY_SIZE + 0x10)
        self.buffer[self.bios_base : self.bios_base + len(data)] = data
        self.registers = [0] * 16
        self.registers[15] = 8
        self.cpsr = SVC_ARM

    def upload_rom(self, data: bytes) -> None:
        self.calls.append("upload_rom")

    def step(self) -> bool:
        self.calls.append("step")
        self.engine_steps += 1
        width = 2 if self.cpsr & THUMB_BIT else 4
        self.registers[15] = (self.registers[15] + width) & 0xFFFFFFFF
        return self.engine_steps in self.flush_at

    def frame(self) -> None:
        self.calls.append("frame")
        self.frames += 1

    def get_register(self, index: int) -> int:
        return self.registers[index]

    def get_cpsr(self) -> int:
        return self.cpsr

    def get_bios(self) -> int:
        self.calls.append("get_bios")
        return self.bios_base

    def get_vram(self) -> int:
        return VRAM_BASE

    def get_bg_palette(self) -> int:
        return BG_PALETTE_BASE

    def get_sprite_palette(self) -> int:
        return SPRITE_PALETTE_BASE

    def set_panic_hook(self) -> None:
        self.panic_hooks += 1

    def memory(self):
        self.calls.append("memory")
        return self.buffer


class StubDisassembler:
    def __init__(self, name: str) -> None:
        self.name = name
        self.calls: List[tuple] = []
        self.fail_with: Optional[str] = None

    def disassemble(self, data: bytes, base_address: int) -> List[DisassemblyLine]:
        self.calls.append((bytes(data), base_address))
        if self.fail_with:
            raise DisassemblyError(self.fail_with, base_address)
        return [DisassemblyLine(base_address, bytes(data[:2]), self.name, "")]


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()
