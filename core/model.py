from __future__ import annotations

from dataclasses import dataclass
from typing import List, Union


@dataclass(frozen=True)
class DisassemblyLine:
    address: int
    raw_bytes: bytes
    mnemonic: str
    op_str: str

    def text(self) -> str:
        raw = " ".join(f"{b:02x}" for b in self.raw_bytes)
        return f"{self.address:x}: ({raw}) {self.mnemonic} {self.op_str}".rstrip()


@dataclass(frozen=True)
class DisassemblyWindow:
    start: int
    end: int

    @property
    def base_address(self) -> int:
        return self.start

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Decoded:
    lines: List[DisassemblyLine]


@dataclass(frozen=True)
class DecodeFailed:
    reason: str


DecodeResult = Union[Decoded, DecodeFailed]


@dataclass(frozen=True)
class MemoryPointers:
    bios: int
    vram: int
    bg_palette: int
    sprite_palette: int

    @classmethod
    def fetch(cls, engine) -> "MemoryPointers":
        return cls(
            bios=engine.get_bios(),
            vram=engine.get_vram(),
            bg_palette=engine.get_bg_palette(),
            sprite_palette=engine.get_sprite_palette(),
        )

