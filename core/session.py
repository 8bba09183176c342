from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from core.config import DebuggerConfig
from core.cpu import RegisterSnapshot, format_flags
from core.disassembly import DisassemblerBank, disassemble_window, plan_window
from core.emulator import Engine, ExecutionController, RunOutcome
from core.model import DecodeFailed, DisassemblyLine, MemoryPointers
from core.parser import parse_breakpoint, parse_trace_count
from core.tiles import Color, PixelBuffer, read_palette, render_tiles

logger = logging.getLogger(__name__)


@dataclass
class DisplayState:
    registers: List[str]
    flags: str
    mode: str
    disassembly: List[DisassemblyLine]
    bg_palette: List[Color]
    sprite_palette: List[Color]
    tiles: PixelBuffer
    instruction_count: int
    last_run: Optional[RunOutcome] = None
    disassembly_error: Optional[str] = None


class DebugSession:
    """Owns the engine handle, the shared memory view and the execution counters.

    Every operation ends with a full refresh so the returned ``DisplayState``
    always reflects the engine after the mutation.
    """

    def __init__(
        self,
        engine: Engine,
        config: Optional[DebuggerConfig] = None,
        disassemblers: Optional[DisassemblerBank] = None,
    ) -> None:
        self.engine = engine
        self.config = config or DebuggerConfig()
        self.controller = ExecutionController(engine, run_limit=self.config.run_limit)
        self.disassemblers = disassemblers or DisassemblerBank()
        self.disassembly: List[DisassemblyLine] = []
        self.last_run: Optional[RunOutcome] = None
        self.state: Optional[DisplayState] = None
        self.engine.set_panic_hook()
        self._update_shared_memory()

    @property
    def instruction_count(self) -> int:
        return self.controller.instruction_count

    def _update_shared_memory(self) -> None:
        # Uploads may reallocate the engine's buffer, so pointers and view are re-read together.
        self.pointers = MemoryPointers.fetch(self.engine)
        self.memory = self.engine.memory()

    def load_bios(self, data: bytes) -> DisplayState:
        self.engine.upload_bios(data)
        self._update_shared_memory()
        self.controller.reset_counter()
        self.last_run = None
        logger.info("BIOS loaded (%d bytes)", len(data))
        self.refresh()
        self.controller.fill_pipeline()
        return self.refresh()

    def load_rom(self, data: bytes) -> DisplayState:
        self.engine.upload_rom(data)
        self._update_shared_memory()
        self.controller.reset_counter()
        self.last_run = None
        logger.info("ROM loaded (%d bytes)", len(data))
        return self.refresh()

    def step(self) -> DisplayState:
        self.controller.step()
        return self.refresh()

    def frame(self) -> DisplayState:
        self.controller.frame()
        return self.refresh()

    def run_until_break(self, target: str | int) -> DisplayState:
        address = parse_breakpoint(target) if isinstance(target, str) else target
        self.last_run = self.controller.run_until_break(address)
        logger.info("%s at 0x%08X after %d steps", self.last_run.reason.value, self.last_run.pc, self.last_run.steps)
        return self.refresh()

    def trace(self, count: str | int) -> DisplayState:
        steps = parse_trace_count(count) if isinstance(count, str) else count
        self.controller.trace(steps)
        return self.refresh()

    def refresh(self) -> DisplayState:
        snapshot = RegisterSnapshot.capture(self.engine)
        flags = snapshot.flags
        instruction_set = flags.instruction_set
        window = plan_window(snapshot.pc, instruction_set)
        result = disassemble_window(
            self.memory,
            self.pointers.bios,
            window,
            self.disassemblers.select(instruction_set),
        )
        error = None
        if isinstance(result, DecodeFailed):
            error = result.reason
        else:
            self.disassembly = result.lines

        order = self.config.palette_order
        self.state = DisplayState(
            registers=snapshot.hex_values(),
            flags=format_flags(flags),
            mode=flags.mode.label,
            disassembly=list(self.disassembly),
            bg_palette=read_palette(self.memory, self.pointers.bg_palette, order),
            sprite_palette=read_palette(self.memory, self.pointers.sprite_palette, order),
            tiles=render_tiles(
                self.memory,
                self.pointers.vram,
                self.pointers.bg_palette,
                self.pointers.sprite_palette,
                order,
            ),
            instruction_count=self.controller.instruction_count,
            last_run=self.last_run,
            disassembly_error=error,
        )
        return self.state
