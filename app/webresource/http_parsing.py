from __future__ import annotations

from enum import Enum
from typing import Iterable, Iterator, Mapping, Optional, Tuple, Union

CONTENT_TYPE = "content-type"

Headers = Union[Mapping[str, str], Iterable[Tuple[str, str]]]

_XML_ENDINGS = ("text/xml", "application/xml", "text/vnd.wap.wml", "+xml")


class DocumentCategory(Enum):
    HTML = "html"
    XML = "xml"
    CSS = "css"
    UNKNOWN = "unknown"


def iter_headers(headers: Optional[Headers]) -> Iterator[tuple[str, str]]:
    """Yield (name, value) pairs in order from a mapping or a sequence of pairs."""
    if not headers:
        return
    items = headers.items() if isinstance(headers, Mapping) else headers
    for name, value in items:
        if not isinstance(name, str):
            continue
        yield name, "" if value is None else str(value)


def get_header_values(headers: Optional[Headers], name: str) -> list[str]:
    wanted = (name or "").strip().lower()
    return [v for k, v in iter_headers(headers) if k.strip().lower() == wanted]


def get_header(headers: Optional[Headers], name: str) -> Optional[str]:
    values = get_header_values(headers, name)
    return values[0] if values else None


def media_type(content_type: Optional[str]) -> str:
    value = content_type or ""
    i = value.find(";")
    if i != -1:
        value = value[:i]
    return value.strip().lower()


def content_type_ends_with(headers: Optional[Headers], *endings: str) -> bool:
    # Only the first Content-Type header is consulted.
    content_type = get_header(headers, CONTENT_TYPE)
    if content_type is None:
        return False
    value = media_type(content_type)
    return any(value.endswith(ending.lower()) for ending in endings)


def document_category(headers: Optional[Headers]) -> DocumentCategory:
    if content_type_ends_with(headers, "text/html"):
        return DocumentCategory.HTML
    if content_type_ends_with(headers, *_XML_ENDINGS):
        return DocumentCategory.XML
    if content_type_ends_with(headers, "text/css"):
        return DocumentCategory.CSS
    return DocumentCategory.UNKNOWN
