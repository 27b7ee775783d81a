"""Static ABI word codec — only ``uint256`` and ``address`` arguments.

Every argument and return value the Liquity reads and writes use is a
single 32-byte word, so no dynamic-type encoding is needed.
"""
from __future__ import annotations

import re

from ...errors import RemoteReadError

WORD_HEX_CHARS = 64
MAX_UINT256 = 2**256 - 1

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def encode_uint256(value: int) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"uint256 argument must be an int, got {value!r}")
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"uint256 argument out of range: {value}")
    return f"{value:064x}"


def encode_address(address: str) -> str:
    if not _ADDRESS_RE.match(address):
        raise ValueError(f"Invalid address: {address!r}")
    return address[2:].lower().rjust(WORD_HEX_CHARS, "0")


def encode_call(selector: str, *args: int | str) -> str:
    """Selector followed by one word per argument (ints as uint256, strs as address)."""
    parts = [selector[2:] if selector.startswith("0x") else selector]
    for arg in args:
        parts.append(encode_address(arg) if isinstance(arg, str) else encode_uint256(arg))
    return "0x" + "".join(parts)


def decode_words(data: str) -> list[int]:
    """Split hex return data into 32-byte unsigned words."""
    if not isinstance(data, str) or not data.startswith("0x"):
        raise RemoteReadError(f"Malformed call result: {data!r}")
    body = data[2:]
    if len(body) % WORD_HEX_CHARS:
        raise RemoteReadError(f"Call result is not word-aligned ({len(body)} hex chars)")
    try:
        return [
            int(body[i : i + WORD_HEX_CHARS], 16)
            for i in range(0, len(body), WORD_HEX_CHARS)
        ]
    except ValueError as e:
        raise RemoteReadError(f"Malformed call result: {data!r}") from e


def decode_address(word: int) -> str:
    if word >> 160:
        raise RemoteReadError(f"Word is not an address: {word:#x}")
    return f"0x{word:040x}"
