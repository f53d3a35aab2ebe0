#!/usr/bin/env python3
"""
Hash helpers
Deterministic string fingerprints for formula signatures and cache keys
"""

import hashlib

_BASE36_DIGITS = '0123456789abcdefghijklmnopqrstuvwxyz'


def _rolling_hash(text: str) -> int:
    """31-multiplier rolling hash folded to an unsigned 32-bit integer"""
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    return value


def hash_code(text: str) -> str:
    """Hex fingerprint of text ('0' for empty input)"""
    if not text:
        return '0'
    return format(_rolling_hash(text), 'x')


def hash_base36(text: str) -> str:
    """Base-36 fingerprint of text ('0' for empty input)"""
    if not text:
        return '0'
    value = _rolling_hash(text)
    if value == 0:
        return '0'
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return ''.join(reversed(digits))


def content_hash(*parts) -> str:
    """md5 digest of the joined parts, used as a conversion cache key"""
    content = '|'.join(str(part) for part in parts)
    return hashlib.md5(content.encode()).hexdigest()
