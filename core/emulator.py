from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from core.cpu import PC_INDEX, InstructionSet, clamp_u32, decode_status

logger = logging.getLogger(__name__)

DEFAULT_RUN_LIMIT = 100_000
REFILL_STEPS = 2


class Engine(Protocol):
    def upload_bios(self, data: bytes) -> None: ...

    def upload_rom(self, data: bytes) -> None: ...

    def step(self) -> bool: ...

    def frame(self) -> None: ...

    def get_register(self, index: int) -> int: ...

    def get_cpsr(self) -> int: ...

    def get_bios(self) -> int: ...

    def get_vram(self) -> int: ...

    def get_bg_palette(self) -> int: ...

    def get_sprite_palette(self) -> int: ...

    def set_panic_hook(self) -> None: ...

    def memory(self): ...


class RunStopReason(Enum):
    BREAKPOINT_HIT = "Breakpoint hit"
    LIMIT_REACHED = "Step limit reached"


@dataclass(frozen=True)
class RunOutcome:
    reason: RunStopReason
    steps: int
    pc: int

    @property
    def hit(self) -> bool:
        return self.reason is RunStopReason.BREAKPOINT_HIT


class ExecutionController:
    """Drives the engine one instruction, one frame or one run at a time.

    ``instruction_count`` only tracks user-visible steps. The two engine
    steps issued to refill the pipeline after a flush are not counted.
    """

    def __init__(self, engine: Engine, run_limit: int = DEFAULT_RUN_LIMIT) -> None:
        self.engine = engine
        self.run_limit = run_limit
        self.instruction_count = 0

    @property
    def instruction_set(self) -> InstructionSet:
        return decode_status(self.engine.get_cpsr()).instruction_set

    def effective_pc(self) -> int:
        reported = clamp_u32(self.engine.get_register(PC_INDEX))
        return clamp_u32(reported - self.instruction_set.pipeline_offset)

    def reset_counter(self) -> None:
        self.instruction_count = 0

    def fill_pipeline(self) -> None:
        for _ in range(REFILL_STEPS):
            self.engine.step()

    def _engine_step(self) -> None:
        if self.engine.step():
            logger.debug("Pipeline flushed, refilling")
            self.fill_pipeline()

    def step(self) -> None:
        self._engine_step()
        self.instruction_count += 1

    def frame(self) -> None:
        self.engine.frame()

    def run_until_break(self, target: int) -> RunOutcome:
        target = clamp_u32(target)
        steps = 0
        while True:
            self._engine_step()
            steps += 1
            if self.effective_pc() == target:
                reason = RunStopReason.BREAKPOINT_HIT
                break
            if steps >= self.run_limit:
                reason = RunStopReason.LIMIT_REACHED
                logger.info("Run stopped after %d steps without reaching 0x%08X", steps, target)
                break
        self.instruction_count += steps
        return RunOutcome(reason=reason, steps=steps, pc=self.effective_pc())

    def trace(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"Trace count must be non-negative: {count}")
        for _ in range(count):
            self._engine_step()
        self.instruction_count += count
