from __future__ import annotations

import re


HEX_RE = re.compile(r"(?:0x)?([0-9A-Fa-f]+)")
DEC_RE = re.compile(r"\d+")


class InputError(Exception):
    def __init__(self, message: str, text: str) -> None:
        super().__init__(message)
        self.message = message
        self.text = text


def parse_breakpoint(text: str) -> int:
    raw = text.strip()
    match = HEX_RE.fullmatch(raw)
    if not match:
        raise InputError(f"Invalid breakpoint address: {text!r}", text)
    value = int(match.group(1), 16)
    if value > 0xFFFFFFFF:
        raise InputError(f"Breakpoint address out of range: {text!r}", text)
    return value


def parse_trace_count(text: str) -> int:
    raw = text.strip()
    if not DEC_RE.fullmatch(raw):
        raise InputError(f"Invalid trace count: {text!r}", text)
    return int(raw, 10)
