import pytest

from core.config import DebuggerConfig
from core.disassembly import DisassemblerBank
from core.emulator import RunStopReason
from core.parser import InputError
from core.session import DebugSession

from conftest import BG_PALETTE_BASE, SPRITE_PALETTE_BASE, THUMB_BIT, StubDisassembler


def _session(engine, **config):
    arm = StubDisassembler("arm")
    thumb = StubDisassembler("thumb")
    session = DebugSession(engine, DebuggerConfig(**config), DisassemblerBank(arm=arm, thumb=thumb))
    return session, arm, thumb


def test_panic_hook_installed_once(engine):
    session, _, _ = _session(engine)
    session.step()
    session.frame()
    assert engine.panic_hooks == 1


def test_bios_upload_refreshes_pointers_before_filling_pipeline(engine):
    session, arm, _ = _session(engine)
    engine.calls.clear()
    session.load_bios(b"\x01\x02\x03\x04" * 8)

    upload = engine.calls.index("upload_bios")
    first_step = engine.calls.index("step")
    assert upload < engine.calls.index("get_bios") < first_step
    assert upload < engine.calls.index("memory") < first_step
    assert engine.calls.count("step") == 2
    assert session.pointers.bios == engine.bios_base
    assert session.memory is engine.buffer


def test_bios_upload_fill_steps_are_not_counted(engine):
    session, _, _ = _session(engine)
    session.step()
    state = session.load_bios(bytes(64))
    assert state.instruction_count == 0
    assert engine.registers[15] == 16


def test_rom_upload_resets_counter(engine):
    session, _, _ = _session(engine)
    session.trace("3")
    assert session.instruction_count == 3
    state = session.load_rom(b"rom")
    assert state.instruction_count == 0


def test_cold_reset_reports_supervisor(engine):
    session, _, _ = _session(engine)
    session.load_bios(bytes(64))
    state = session.load_rom(bytes(64))
    assert state.mode == "SVC"
    assert state.flags == "------ SVC"


def test_refresh_disassembles_window_from_bios(engine):
    session, arm, _ = _session(engine)
    bios = bytes(range(64))
    state = session.load_bios(bios)
    # PC is 16 after the two fill steps: window 8..20 in ARM state.
    data, base = arm.calls[-1]
    assert base == 8
    assert data == bios[8:20]
    assert state.disassembly[0].address == 8
    assert len(state.registers) == 16
    assert state.registers[15] == "00000010"


def test_thumb_state_selects_thumb_disassembler(engine):
    session, arm, thumb = _session(engine)
    session.load_bios(bytes(64))
    engine.cpsr |= THUMB_BIT
    arm.calls.clear()
    state = session.step()
    assert arm.calls == []
    data, base = thumb.calls[-1]
    assert (base, len(data)) == (18 - 4, 6)
    assert state.disassembly[0].mnemonic == "thumb"


def test_failed_disassembly_keeps_previous_lines(engine):
    session, arm, _ = _session(engine)
    before = session.load_bios(bytes(64)).disassembly
    arm.fail_with = "unaligned"
    state = session.step()
    assert state.disassembly_error == "unaligned"
    assert state.disassembly == before
    assert state.instruction_count == 1


def test_run_until_break_parses_hex_and_reports_outcome(engine):
    session, _, _ = _session(engine)
    session.load_bios(bytes(64))
    state = session.run_until_break("0x30")
    assert state.last_run.reason is RunStopReason.BREAKPOINT_HIT
    assert engine.registers[15] == 0x38
    assert state.instruction_count == state.last_run.steps


def test_run_until_break_limit_comes_from_config(engine):
    session, _, _ = _session(engine, run_limit=7)
    state = session.run_until_break("1")
    assert state.last_run.reason is RunStopReason.LIMIT_REACHED
    assert state.instruction_count == 7


def test_trace_parses_decimal_count(engine):
    session, _, _ = _session(engine)
    state = session.trace("12")
    assert state.instruction_count == 12
    assert engine.engine_steps == 12


@pytest.mark.parametrize("text", ["", "zz", "0xg1"])
def test_bad_breakpoint_fails_fast(engine, text):
    session, _, _ = _session(engine)
    with pytest.raises(InputError):
        session.run_until_break(text)
    assert engine.engine_steps == 0


@pytest.mark.parametrize("text", ["", "-1", "ten", "0x10"])
def test_bad_trace_count_fails_fast(engine, text):
    session, _, _ = _session(engine)
    with pytest.raises(InputError):
        session.trace(text)
    assert engine.engine_steps == 0


def test_swatches_read_both_palettes(engine):
    session, _, _ = _session(engine)
    engine.buffer[BG_PALETTE_BASE : BG_PALETTE_BASE + 4] = bytes([0, 0xFF, 0x80, 0])
    engine.buffer[SPRITE_PALETTE_BASE + 4 : SPRITE_PALETTE_BASE + 8] = bytes([0x11, 0x22, 0x33, 0])
    state = session.frame()
    assert engine.frames == 1
    assert state.bg_palette[0].css() == "rgb(128,255,0)"
    assert state.sprite_palette[1].css() == "rgb(51,34,17)"
    assert len(state.bg_palette) == len(state.sprite_palette) == 256
    assert (state.tiles.width, state.tiles.height) == (256, 384)
