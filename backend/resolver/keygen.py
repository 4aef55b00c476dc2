"""Secret key derivation for the upstream aggregator's provider endpoint.

The aggregator expects an opaque ``secretKey`` query parameter computed from the
content identifier. This is obfuscation rather than cryptography: the only
inputs are the identifier and the public salt table below. Every step works on
UTF-16 code units with 32-bit unsigned wraparound so the output matches the
aggregator's browser client bit for bit.
"""
from __future__ import annotations

import base64
import math
import re
from typing import Sequence

MASK32 = 0xFFFFFFFF

MISSING_IDENTIFIER_KEY = "rive"
FALLBACK_KEY = "topSecret"

# Interoperability constant lifted from the aggregator's client bundle.
SALT_TABLE: tuple[str, ...] = (
    "4Z7lUo", "gwIVSMD", "PLmz2elE2v", "Z4OFV0", "SZ6RZq6Zc", "zhJEFYxrz8", "FOm7b0", "axHS3q4KDq",
    "o9zuXQ", "4Aebt", "wgjjWwKKx", "rY4VIxqSN", "kfjbnSo", "2DyrFA1M", "YUixDM9B", "JQvgEj0",
    "mcuFx6JIek", "eoTKe26gL", "qaI9EVO1rB", "0xl33btZL", "1fszuAU", "a7jnHzst6P", "wQuJkX",
    "cBNhTJlEOf", "KNcFWhDvgT", "XipDGjST", "PCZJlbHoyt", "2AYnMZkqd", "HIpJh", "KH0C3iztrG",
    "W81hjts92", "rJhAT", "NON7LKoMQ", "NMdY3nsKzI", "t4En5v", "Qq5cOQ9H", "Y9nwrp", "VX5FYVfsf",
    "cE5SJG", "x1vj1", "HegbLe", "zJ3nmt4OA", "gt7rxW57dq", "clIE9b", "jyJ9g", "B5jTwI1f",
    "qgiK0E", "cx9wQ", "5F9bGa", "7UjkKrp", "Yvhrj", "wYXez5Dg3", "pG4GMU", "MwMAu", "rFRD5wlM",
)

_DECIMAL_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_RADIX_RE = re.compile(r"0([xXoObB])([0-9a-fA-F]+)")
_INFINITY_RE = re.compile(r"[+-]?Infinity")
_RADIX_BASES = {"x": 16, "o": 8, "b": 2}


def _utf16_units(text: str) -> list[int]:
    data = text.encode("utf-16-le", "surrogatepass")
    return [int.from_bytes(data[i : i + 2], "little") for i in range(0, len(data), 2)]


def _to_number(text: str) -> float | None:
    """Mirror JavaScript ``Number(text)``; ``None`` stands in for ``NaN``."""

    stripped = text.strip()
    if not stripped:
        return 0.0
    if _DECIMAL_RE.fullmatch(stripped):
        return float(stripped)
    radix_match = _RADIX_RE.fullmatch(stripped)
    if radix_match:
        base = _RADIX_BASES[radix_match.group(1).lower()]
        try:
            return float(int(radix_match.group(2), base))
        except ValueError:
            return None
        except OverflowError:
            return math.inf
    if _INFINITY_RE.fullmatch(stripped):
        return -math.inf if stripped.startswith("-") else math.inf
    return None


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (32 - bits))) & MASK32


def _imul(value: int, constant: int) -> int:
    # Equivalent to the client's split 16x16 multiplication truncated to 32 bits.
    return (value * constant) & MASK32


def _mix32_units(units: Sequence[int]) -> int:
    acc = 0
    for position, code in enumerate(units):
        acc = (code + (acc << 6) + (acc << 16) - acc) & MASK32
        rotated = _rotl(acc, position % 5)
        shift = position % 7
        acc = (acc ^ rotated ^ ((code << shift) | (code >> (8 - shift)))) & MASK32
        acc = (acc + ((acc >> 11) ^ ((acc << 3) & MASK32))) & MASK32

    acc ^= acc >> 15
    acc = _imul(acc, 49842)
    acc ^= acc >> 13
    acc = _imul(acc, 40503)
    acc ^= acc >> 16
    return acc


def _mix32b_units(units: Sequence[int]) -> int:
    acc = (0xDEADBEEF ^ len(units)) & MASK32
    for position, code in enumerate(units):
        code ^= ((131 * position + 89) ^ (code << (position % 5))) & 0xFF
        acc = _rotl(acc, 7) ^ code
        acc = _imul(acc, 60205)
        acc ^= acc >> 11

    acc ^= acc >> 15
    acc = _imul(acc, 49842)
    acc ^= acc >> 13
    acc = _imul(acc, 40503)
    acc ^= acc >> 16
    acc = _imul(acc, 10196)
    acc ^= acc >> 15
    return acc


def mix32(text: str) -> str:
    """Return the 8-hex-digit digest applied to the salted identifier."""

    return f"{_mix32_units(_utf16_units(text)):08x}"


def mix32b(text: str) -> str:
    """Return the 8-hex-digit digest applied to the output of :func:`mix32`."""

    return f"{_mix32b_units(_utf16_units(text)):08x}"


def salt_for(value: float, identifier: str) -> str:
    """Pick the salt for an identifier's numeric (or character-sum) value."""

    slot = math.fmod(value, len(SALT_TABLE))
    if slot >= 0 and slot.is_integer():
        return SALT_TABLE[int(slot)]
    return base64.b64encode(identifier.encode("utf-8")).decode("ascii")


def insertion_offset(value: float, length: int) -> int:
    """Return where the salt is spliced into the identifier.

    The client computes ``Math.floor(value % length / 2)``; negative results
    index from the end exactly like ``String.prototype.slice``.
    """

    return math.floor(math.fmod(value, length) / 2)


def derive_secret_key(identifier: str | int | None) -> str:
    """Derive the ``secretKey`` query value for a content identifier."""

    if identifier is None:
        return MISSING_IDENTIFIER_KEY

    text = str(identifier)
    if not text:
        return FALLBACK_KEY

    numeric = _to_number(text)
    if numeric is not None and not math.isfinite(numeric):
        return FALLBACK_KEY

    units = _utf16_units(text)
    value = numeric if numeric is not None else float(sum(units))
    offset = insertion_offset(value, len(units))
    combined = units[:offset] + _utf16_units(salt_for(value, text)) + units[offset:]

    h2 = f"{_mix32_units(combined):08x}"
    h1 = mix32b(h2)
    return base64.b64encode(h1.encode("ascii")).decode("ascii")
