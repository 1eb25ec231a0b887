"""
Character encoding sniffing for fetched resources.

Detection follows a fixed precedence chain, stopping at the first hit:

1. Unicode byte order mark in the first bytes of the content.
2. ``charset=`` parameter of the transport ``Content-Type`` header.
3. A declaration embedded in the document, depending on its category:
   HTML ``<meta>`` prescan, XML declaration, or CSS ``@charset`` rule.

The HTML prescan follows the WHATWG "prescan a byte stream to determine its
encoding" algorithm, including its ``x-user-defined`` and UTF-16 overrides.
Nothing here raises for malformed or missing declarations; every sniffer
returns ``None`` and callers pick their own default.
"""

from __future__ import annotations

from enum import Enum
from typing import BinaryIO, Callable, NamedTuple, Optional

from webresource.charsets import UTF_8, UTF_16BE, UTF_16LE, WINDOWS_1252, to_charset
from webresource.http_parsing import (
    CONTENT_TYPE,
    DocumentCategory,
    Headers,
    document_category,
    iter_headers,
)
from webresource.limits import get_sniff_limits
from webresource.logging_config import get_logger

logger = get_logger(__name__)

_BOMS: tuple[tuple[bytes, str], ...] = (
    (b"\xef\xbb\xbf", UTF_8),
    (b"\xfe\xff", UTF_16BE),
    (b"\xff\xfe", UTF_16LE),
)

_SPACE = frozenset(b"\t\n\x0c\r ")
_SPACE_OR_SLASH = _SPACE | {ord("/")}
_SPACE_OR_GT = _SPACE | {ord(">")}
_SPACE_OR_SEMICOLON = _SPACE | {ord(";")}
_QUOTES = frozenset(b"\"'")

_COMMENT_START = b"<!--"
_COMMENT_END = b"-->"
_META_NAME = b"meta"
_CHARSET = b"charset"
_XML_DECLARATION_PREFIX = b"<?xml "
_CSS_CHARSET_PREFIX = b'@charset "'

_LT = ord("<")
_GT = ord(">")
_EQ = ord("=")
_SLASH = ord("/")


class Attribute(NamedTuple):
    name: str
    value: str
    next_pos: int


class MarkupKind(Enum):
    COMMENT = "comment"
    META = "meta"
    START_TAG = "start_tag"
    END_TAG = "end_tag"
    OTHER_MARKUP = "other_markup"
    TEXT = "text"


class ScanStep(NamedTuple):
    # next_pos is None when the window is exhausted and the scan must stop.
    next_pos: Optional[int]
    charset: Optional[str] = None


def _is_ascii_letter(b: int) -> bool:
    return 0x41 <= b <= 0x5A or 0x61 <= b <= 0x7A


def _fold(b: int) -> str:
    if 0x41 <= b <= 0x5A:
        b += 0x20
    return chr(b)


def _skip_to_any_of(window: bytes, start: int, targets: frozenset) -> int:
    for i in range(start, len(window)):
        if window[i] in targets:
            return i
    return -1


# ---- byte windows ----


def read_window(stream: Optional[BinaryIO], size: int) -> bytes:
    """
    Read up to ``size`` bytes, looping over short reads until EOF.

    The result is shorter than ``size`` only when the stream ran dry.
    """
    if stream is None or size <= 0:
        return b""
    buf = bytearray()
    while len(buf) < size:
        chunk = stream.read(size - len(buf))
        if not chunk:
            break
        buf.extend(chunk)
    return bytes(buf)


# ---- precedence chain steps ----


def sniff_encoding_from_unicode_bom(window: Optional[bytes]) -> Optional[str]:
    if not window:
        return None
    for bom, charset in _BOMS:
        if window.startswith(bom):
            logger.debug("Encoding found in Unicode Byte Order Mark: %r", charset)
            return charset
    return None


def sniff_encoding_from_http_headers(headers: Optional[Headers]) -> Optional[str]:
    for name, value in iter_headers(headers):
        if name.strip().lower() != CONTENT_TYPE:
            continue
        charset = extract_encoding_from_content_type(value)
        if charset is not None:
            logger.debug("Encoding found in HTTP headers: %r", charset)
            return charset
    return None


def extract_encoding_from_content_type(value: Optional[str]) -> Optional[str]:
    """
    Extract the charset of a Content-Type value, e.g. ``text/html; charset=UTF-8``.

    The ``charset`` keyword is matched case-insensitively; the label may be
    double quoted, single quoted or a bare token ending at whitespace or ``;``.
    """
    if value is None:
        return None
    data = value.encode("ascii", errors="replace")
    n = len(data)

    start = data.lower().find(_CHARSET)
    if start == -1:
        return None
    i = start + len(_CHARSET)
    while i < n and data[i] in _SPACE:
        i += 1
    if i >= n or data[i] != _EQ:
        return None
    i += 1
    while i < n and data[i] in _SPACE:
        i += 1
    if i >= n:
        return None

    if data[i] in _QUOTES:
        end = data.find(data[i : i + 1], i + 1)
        if end == -1:
            return None
        return to_charset(data[i + 1 : end].decode("ascii"))

    end = _skip_to_any_of(data, i, _SPACE_OR_SEMICOLON)
    if end == -1:
        end = n
    return to_charset(data[i:end].decode("ascii"))


# ---- HTML meta prescan ----


def get_attribute(window: bytes, start: int) -> Optional[Attribute]:
    """
    Read the next tag attribute starting at ``start``.

    Returns None when the tag ends (``>``) or the window is exhausted before a
    name starts. Names and values are lower-cased (ASCII only). ``next_pos`` is
    where the following attribute, or the end of the tag, begins; it may be
    ``len(window)`` when the attribute ran past the end.
    """
    n = len(window)
    pos = start
    while pos < n and window[pos] in _SPACE_OR_SLASH:
        pos += 1
    if pos >= n or window[pos] == _GT:
        return None

    name: list[str] = []
    value: list[str] = []

    def attribute(at: int) -> Attribute:
        return Attribute("".join(name), "".join(value), at)

    while True:
        if pos >= n:
            return attribute(pos)
        b = window[pos]
        if b == _EQ and name:
            pos += 1
            break
        if b in _SPACE:
            while pos < n and window[pos] in _SPACE:
                pos += 1
            if pos >= n or window[pos] != _EQ:
                return attribute(pos)
            pos += 1
            break
        if b == _SLASH or b == _GT:
            return attribute(pos)
        name.append(_fold(b))
        pos += 1

    while pos < n and window[pos] in _SPACE:
        pos += 1
    if pos >= n:
        return attribute(pos)

    b = window[pos]
    if b in _QUOTES:
        quote = b
        pos += 1
        while pos < n:
            if window[pos] == quote:
                return attribute(pos + 1)
            value.append(_fold(window[pos]))
            pos += 1
        return attribute(pos)
    if b == _GT:
        return attribute(pos)

    while pos < n and window[pos] not in _SPACE_OR_GT:
        value.append(_fold(window[pos]))
        pos += 1
    return attribute(pos)


def classify_markup(window: bytes, pos: int) -> MarkupKind:
    """Tell which prescan pattern, if any, starts at ``pos``."""
    if window[pos] != _LT:
        return MarkupKind.TEXT
    if window.startswith(_COMMENT_START, pos):
        return MarkupKind.COMMENT

    nxt = window[pos + 1] if pos + 1 < len(window) else None
    after = pos + 1 + len(_META_NAME)
    if (
        after < len(window)
        and window[pos + 1 : after].lower() == _META_NAME
        and window[after] in _SPACE_OR_SLASH
    ):
        return MarkupKind.META
    if nxt is not None and _is_ascii_letter(nxt):
        return MarkupKind.START_TAG
    if nxt == _SLASH and pos + 2 < len(window) and _is_ascii_letter(window[pos + 2]):
        return MarkupKind.END_TAG
    if nxt is not None and nxt in b"!/?":
        return MarkupKind.OTHER_MARKUP
    return MarkupKind.TEXT


def _scan_comment(window: bytes, pos: int) -> ScanStep:
    end = window.find(_COMMENT_END, pos)
    if end == -1:
        return ScanStep(None)
    return ScanStep(end + len(_COMMENT_END))


def _charset_from_meta_attribute(name: str, value: str) -> Optional[str]:
    charset: Optional[str] = None
    if name == "charset":
        charset = to_charset(value)
        if charset is None and value == "x-user-defined":
            charset = WINDOWS_1252
    elif name == "content":
        charset = extract_encoding_from_content_type(value)
        if charset is None and "x-user-defined" in value:
            charset = WINDOWS_1252
    # A declared UTF-16 would already have been caught by the BOM; the bytes are ASCII-compatible.
    if charset in (UTF_16BE, UTF_16LE):
        charset = UTF_8
    return charset


def _scan_meta(window: bytes, pos: int) -> ScanStep:
    pos += 1 + len(_META_NAME) + 1
    attr = get_attribute(window, pos)
    while attr is not None:
        pos = attr.next_pos
        charset = _charset_from_meta_attribute(attr.name, attr.value)
        if charset is not None:
            return ScanStep(pos, charset)
        attr = get_attribute(window, pos)
    return ScanStep(pos + 1)


def _skip_attributes(window: bytes, pos: int) -> ScanStep:
    pos = _skip_to_any_of(window, pos, _SPACE_OR_GT)
    if pos == -1:
        return ScanStep(None)
    attr = get_attribute(window, pos)
    while attr is not None:
        pos = attr.next_pos
        attr = get_attribute(window, pos)
    return ScanStep(pos + 1)


def _skip_other_markup(window: bytes, pos: int) -> ScanStep:
    end = window.find(b">", pos)
    if end == -1:
        return ScanStep(None)
    return ScanStep(end + 1)


def _skip_text(window: bytes, pos: int) -> ScanStep:
    return ScanStep(pos + 1)


_PRESCAN_ARMS: dict[MarkupKind, Callable[[bytes, int], ScanStep]] = {
    MarkupKind.COMMENT: _scan_comment,
    MarkupKind.META: _scan_meta,
    MarkupKind.START_TAG: _skip_attributes,
    MarkupKind.END_TAG: _skip_attributes,
    MarkupKind.OTHER_MARKUP: _skip_other_markup,
    MarkupKind.TEXT: _skip_text,
}


def prescan_meta_charset(window: bytes) -> Optional[str]:
    pos = 0
    while pos < len(window):
        step = _PRESCAN_ARMS[classify_markup(window, pos)](window, pos)
        if step.charset is not None:
            logger.debug("Encoding found in meta tag: %r", step.charset)
            return step.charset
        if step.next_pos is None:
            break
        pos = step.next_pos
    return None


def sniff_encoding_from_meta_tag(stream: Optional[BinaryIO]) -> Optional[str]:
    return prescan_meta_charset(read_window(stream, get_sniff_limits().html_bytes))


# ---- XML and CSS declarations ----


def xml_declaration_charset(window: bytes) -> Optional[str]:
    if not window.startswith(_XML_DECLARATION_PREFIX):
        return None
    close = window.find(b"?", 2)
    if close == -1 or close + 1 >= len(window) or window[close + 1] != _GT:
        return None
    declaration = window[: close + 2].decode("ascii", errors="replace")

    start = declaration.find("encoding")
    if start == -1:
        return None
    start += len("encoding")
    while start < len(declaration) and declaration[start] not in "\"'":
        start += 1
    if start >= len(declaration):
        return None
    end = declaration.find(declaration[start], start + 1)
    if end == -1:
        return None

    charset = to_charset(declaration[start + 1 : end])
    if charset is not None:
        logger.debug("Encoding found in XML declaration: %r", charset)
    return charset


def sniff_encoding_from_xml_declaration(stream: Optional[BinaryIO]) -> Optional[str]:
    return xml_declaration_charset(read_window(stream, get_sniff_limits().xml_bytes))


def css_declaration_charset(window: bytes) -> Optional[str]:
    if not window.startswith(_CSS_CHARSET_PREFIX):
        return None
    start = len(_CSS_CHARSET_PREFIX)
    end = window.find(b'"', start)
    if end == -1 or end + 1 >= len(window) or window[end + 1] != ord(";"):
        return None

    charset = to_charset(window[start:end].decode("ascii", errors="replace"))
    # https://www.w3.org/TR/css-syntax-3/#input-byte-stream
    if charset in (UTF_16BE, UTF_16LE):
        charset = UTF_8
    if charset is not None:
        logger.debug("Encoding found in CSS declaration: %r", charset)
    return charset


def sniff_encoding_from_css_declaration(stream: Optional[BinaryIO]) -> Optional[str]:
    return css_declaration_charset(read_window(stream, get_sniff_limits().css_bytes))


# ---- combined precedence chain ----


def _declaration_sniffer(
    category: DocumentCategory,
) -> Optional[tuple[Callable[[bytes], Optional[str]], int]]:
    limits = get_sniff_limits()
    if category is DocumentCategory.HTML:
        return prescan_meta_charset, limits.html_bytes
    if category is DocumentCategory.XML:
        return xml_declaration_charset, limits.xml_bytes
    if category is DocumentCategory.CSS:
        return css_declaration_charset, limits.css_bytes
    return None


def sniff_encoding(
    headers: Optional[Headers],
    content: Optional[BinaryIO],
    category: Optional[DocumentCategory] = None,
) -> Optional[str]:
    """
    Run the full precedence chain over headers and a content stream.

    ``category`` defaults to the one implied by the Content-Type header. At most
    one declaration window is consumed from ``content``.
    """
    prefix = read_window(content, get_sniff_limits().bom_bytes)
    charset = sniff_encoding_from_unicode_bom(prefix)
    if charset is not None:
        return charset

    charset = sniff_encoding_from_http_headers(headers)
    if charset is not None or content is None:
        return charset

    if category is None:
        category = document_category(headers)
    sniffer = _declaration_sniffer(category)
    if sniffer is None:
        return None
    scan, size = sniffer
    window = prefix + read_window(content, size - len(prefix))
    return scan(window)
