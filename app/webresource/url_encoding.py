from __future__ import annotations

import re
import string
from dataclasses import replace
from typing import Optional

from webresource.address import Address
from webresource.charsets import UTF_8, codec_name

# Character classes of RFC 2396, section 2 and appendix A.
_RESERVED = frozenset(";/?:@&=+$,")
_MARK = frozenset("-_.!~*'()")
_ALPHANUM = frozenset(string.ascii_letters + string.digits)
_UNRESERVED = _ALPHANUM | _MARK
_HEX = frozenset(string.hexdigits)
_ESCAPED = _HEX | {"%"}
_URIC = _RESERVED | _UNRESERVED | _ESCAPED
_PCHAR = _UNRESERVED | _ESCAPED | frozenset(":@&=+$,")
_SEGMENT = _PCHAR | {";"}
_ABS_PATH = _SEGMENT | {"/"}


def _byte_set(chars: frozenset) -> frozenset:
    return frozenset(ord(c) for c in chars)


PATH_ALLOWED_CHARS = _byte_set(_ABS_PATH)
QUERY_ALLOWED_CHARS = _byte_set(_URIC)
ANCHOR_ALLOWED_CHARS = _byte_set(_URIC)
HASH_ALLOWED_CHARS = _byte_set(_URIC)

_BROKEN_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_SPACE = ord(" ")
_PLUS = ord("+")
_PERCENT = ord("%")
_ASCII_WHITESPACE = frozenset(b"\t\n\x0c\r ")


class InvalidPercentEncodingError(ValueError):
    pass


def encode_bytes(allowed: frozenset, data: bytes) -> str:
    """Escape every byte outside ``allowed`` as ``%XX`` (uppercase hex)."""
    out: list[str] = []
    for b in data:
        if b in allowed:
            out.append("+" if b == _SPACE else chr(b))
        else:
            out.append(f"%{b:02X}")
    return "".join(out)


def encode_percent_sign(value: str) -> str:
    """Rewrite each ``%`` not followed by two hex digits as ``%25``."""
    return _BROKEN_ESCAPE_RE.sub("%25", value)


def _encode(unescaped: str, allowed: frozenset, charset: str) -> str:
    # Characters the charset cannot represent become "?", like a legacy form submission.
    data = unescaped.encode(codec_name(charset), errors="replace")
    return encode_percent_sign(encode_bytes(allowed, data))


def encode_path(path: Optional[str]) -> Optional[str]:
    if path is None:
        return None
    return _encode(path, PATH_ALLOWED_CHARS, UTF_8)


def encode_query(query: Optional[str], charset: str = UTF_8) -> Optional[str]:
    if query is None:
        return None
    return _encode(query, QUERY_ALLOWED_CHARS, charset)


def encode_anchor(anchor: Optional[str]) -> Optional[str]:
    if anchor is None:
        return None
    return _encode(anchor, ANCHOR_ALLOWED_CHARS, UTF_8)


def encode_hash(hash_: Optional[str]) -> Optional[str]:
    if hash_ is None:
        return None
    return _encode(hash_, HASH_ALLOWED_CHARS, UTF_8)


def encode_url(address: Address, charset: str = UTF_8) -> Address:
    """
    Escape the characters real browsers escape in a normal address.

    ``http://first/?a=b c`` becomes ``http://first/?a=b%20c``. The path and
    fragment are always escaped as UTF-8, the query with ``charset`` (the
    page encoding of a form submission). javascript:, about:, data: and
    unknown schemes come back untouched.
    """
    if not address.is_normal:
        return address
    return replace(
        address,
        path=encode_path(address.path),
        parameters=encode_path(address.parameters),
        query=encode_query(address.query, charset),
        fragment=encode_anchor(address.fragment),
    )


def _hex_value(data: bytes, i: int) -> int:
    if i >= len(data):
        raise InvalidPercentEncodingError("Invalid URL encoding: truncated escape")
    c = chr(data[i])
    if c not in _HEX:
        raise InvalidPercentEncodingError(
            f"Invalid URL encoding: not a valid digit (radix 16): {data[i]}"
        )
    return int(c, 16)


def decode_url(data: bytes) -> bytes:
    """Reverse ``%XX`` escapes and ``+`` for space at the byte level."""
    out = bytearray()
    i = 0
    while i < len(data):
        b = data[i]
        if b == _PLUS:
            out.append(_SPACE)
        elif b == _PERCENT:
            out.append((_hex_value(data, i + 1) << 4) + _hex_value(data, i + 2))
            i += 2
        else:
            out.append(b)
        i += 1
    return bytes(out)


def decode(escaped: str) -> str:
    data = escaped.encode("ascii", errors="replace")
    return decode_url(data).decode("utf-8", errors="replace")


def decode_data_url(data: bytes, remove_whitespace: bool = False) -> bytes:
    """Percent-decode the payload of a data: URL; ``+`` is kept literally."""
    out = bytearray()
    i = 0
    while i < len(data):
        b = data[i]
        if b == _PERCENT:
            b = (_hex_value(data, i + 1) << 4) + _hex_value(data, i + 2)
            i += 2
        i += 1
        if remove_whitespace and b in _ASCII_WHITESPACE:
            continue
        out.append(b)
    return bytes(out)
