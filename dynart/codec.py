# dynart/codec.py
"""
Base64 binary-to-text codec.

Standard alphabet (A-Z, a-z, 0-9, '+', '/') with '=' padding. Output must
match RFC 4648 byte for byte because rendered references are compared
verbatim by consumers.
"""

from typing import Dict

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
PAD = "="

_REVERSE: Dict[str, int] = {char: index for index, char in enumerate(ALPHABET)}


def encoded_length(n: int) -> int:
    """Length of the encoding of n bytes: 4 * ceil(n / 3)."""
    return 4 * ((n + 2) // 3)


def encode(data: bytes) -> str:
    """
    Encode bytes as base64 text.

    Each 3-byte group becomes 4 characters. A final group of 1 byte is
    padded with '==', a final group of 2 bytes with '='.
    """
    data = bytes(data)
    out = []
    full = len(data) - len(data) % 3

    for i in range(0, full, 3):
        group = (data[i] << 16) | (data[i + 1] << 8) | data[i + 2]
        out.append(ALPHABET[(group >> 18) & 0x3F])
        out.append(ALPHABET[(group >> 12) & 0x3F])
        out.append(ALPHABET[(group >> 6) & 0x3F])
        out.append(ALPHABET[group & 0x3F])

    remaining = len(data) - full
    if remaining == 1:
        group = data[full] << 16
        out.append(ALPHABET[(group >> 18) & 0x3F])
        out.append(ALPHABET[(group >> 12) & 0x3F])
        out.append(PAD * 2)
    elif remaining == 2:
        group = (data[full] << 16) | (data[full + 1] << 8)
        out.append(ALPHABET[(group >> 18) & 0x3F])
        out.append(ALPHABET[(group >> 12) & 0x3F])
        out.append(ALPHABET[(group >> 6) & 0x3F])
        out.append(PAD)

    return "".join(out)


def decode(text: str) -> bytes:
    """
    Decode base64 text produced by encode().

    Raises:
        ValueError: On a length that is not a multiple of 4, a character
            outside the alphabet, or padding anywhere but the end
    """
    if len(text) % 4:
        raise ValueError(f"Invalid base64 length: {len(text)}")
    if not text:
        return b""

    padding = len(text) - len(text.rstrip(PAD))
    if padding > 2:
        raise ValueError("Too much base64 padding")
    body = text[:len(text) - padding]

    out = bytearray()
    for i in range(0, len(text), 4):
        chunk = body[i:i + 4]
        group = 0
        for char in chunk:
            if char not in _REVERSE:
                raise ValueError(f"Invalid base64 character: {char!r}")
            group = (group << 6) | _REVERSE[char]
        # Left-align a short final chunk to 24 bits
        group <<= 6 * (4 - len(chunk))
        out.append((group >> 16) & 0xFF)
        if len(chunk) > 2:
            out.append((group >> 8) & 0xFF)
        if len(chunk) > 3:
            out.append(group & 0xFF)

    return bytes(out)
