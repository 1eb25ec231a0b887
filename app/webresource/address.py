"""
Address parsing, classification and relative resolution.

Resolution follows RFC 1808 section 4 with the deviations browsers make:
WHATWG-style whitespace clean-up before parsing, ``?`` and ``;`` accepted as
the end of the network location, and ``../`` segments directly after the
root ``/`` dropped instead of climbing above it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

ABOUT = "about"
JAVASCRIPT = "javascript"
DATA = "data"

NORMAL_SCHEMES = frozenset({"http", "https", "file"})
SPECIAL_SCHEMES = frozenset({"ftp", "file", "http", "https", "ws", "wss"})
DEFAULT_PORTS = {"http": 80, "https": 443, "ftp": 21, "ws": 80, "wss": 443}

_TAB_OR_NEWLINE = "\t\r\n"
_SCHEME_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789+.-"
)


@dataclass
class MalformedAddressError(ValueError):
    code: str
    message: str

    def __str__(self) -> str:
        return self.message


class AddressKind(Enum):
    NORMAL = "normal"
    SCRIPT = "script"
    ABOUT = "about"
    DATA = "data"
    OTHER = "other"


@dataclass(frozen=True)
class ProtocolHandler:
    """Opaque marker for the handler that serves a non-normal address."""

    name: str


JAVASCRIPT_HANDLER = ProtocolHandler(JAVASCRIPT)
ABOUT_HANDLER = ProtocolHandler(ABOUT)
DATA_HANDLER = ProtocolHandler(DATA)
ANY_HANDLER = ProtocolHandler("any")

_HANDLERS = {
    AddressKind.SCRIPT: JAVASCRIPT_HANDLER,
    AddressKind.ABOUT: ABOUT_HANDLER,
    AddressKind.DATA: DATA_HANDLER,
    AddressKind.OTHER: ANY_HANDLER,
}


def _kind_of_scheme(scheme: str) -> AddressKind:
    scheme = scheme.lower()
    if scheme in NORMAL_SCHEMES:
        return AddressKind.NORMAL
    if scheme == JAVASCRIPT:
        return AddressKind.SCRIPT
    if scheme == ABOUT:
        return AddressKind.ABOUT
    if scheme == DATA:
        return AddressKind.DATA
    return AddressKind.OTHER


@dataclass(frozen=True)
class Address:
    scheme: Optional[str] = None
    location: Optional[str] = None
    path: Optional[str] = None
    parameters: Optional[str] = None
    query: Optional[str] = None
    fragment: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.scheme is not None:
            parts.append(self.scheme + ":")
        if self.location is not None:
            parts.append("//" + self.location)
        if self.path is not None:
            parts.append(self.path)
        if self.parameters is not None:
            parts.append(";" + self.parameters)
        if self.query is not None:
            parts.append("?" + self.query)
        if self.fragment is not None:
            parts.append("#" + self.fragment)
        return "".join(parts)

    @property
    def kind(self) -> AddressKind:
        return _kind_of_scheme(self.scheme or "")

    @property
    def is_normal(self) -> bool:
        return self.kind is AddressKind.NORMAL

    @property
    def user_info(self) -> Optional[str]:
        location = self.location or ""
        if "@" not in location:
            return None
        return location.rsplit("@", 1)[0]

    def _host_port(self) -> tuple[str, Optional[str]]:
        host_port = (self.location or "").rsplit("@", 1)[-1]
        if ":" in host_port:
            host, port = host_port.rsplit(":", 1)
            return host, port
        return host_port, None

    @property
    def host(self) -> str:
        return self._host_port()[0]

    @property
    def port(self) -> Optional[int]:
        raw = self._host_port()[1]
        if not raw or not raw.isdigit():
            return None
        return int(raw)

    @property
    def effective_port(self) -> Optional[int]:
        port = self.port
        if port is not None:
            return port
        return DEFAULT_PORTS.get((self.scheme or "").lower())


ABOUT_BLANK_URL = "about:blank"
ABOUT_BLANK = Address(scheme=ABOUT, path="blank")


def is_valid_scheme(scheme: str) -> bool:
    """First character an ASCII letter; the rest letters, digits, ``+``, ``.`` or ``-``."""
    if not scheme:
        return False
    first = scheme[0]
    if not ("a" <= first <= "z" or "A" <= first <= "Z"):
        return False
    return all(c in _SCHEME_CHARS for c in scheme[1:])


def is_special_scheme(scheme: str) -> bool:
    return (scheme or "").lower() in SPECIAL_SCHEMES


def _clean_spec(spec: str) -> str:
    # https://url.spec.whatwg.org/#concept-basic-url-parser:
    # drop leading/trailing C0 control or space, and every tab or newline.
    spec = "".join(c for c in spec if c not in _TAB_OR_NEWLINE)
    return spec.strip("".join(chr(i) for i in range(0x21)))


def parse_address(spec: str) -> Address:
    """Split an address string into its RFC 1808 components."""
    spec = _clean_spec(spec or "")
    start = 0
    end = len(spec)
    scheme = location = path = parameters = query = fragment = None

    crosshatch = spec.find("#", start, end)
    if crosshatch >= 0:
        fragment = spec[crosshatch + 1 : end]
        end = crosshatch

    colon = spec.find(":", start, end)
    if colon > 0 and is_valid_scheme(spec[start:colon]):
        scheme = spec[start:colon]
        start = colon + 1

    # The network location also ends at "?" or ";" when no "/" follows it.
    location_start = location_end = -1
    if spec.startswith("//", start):
        location_start = start + 2
        location_end = spec.find("/", location_start, end)
        if location_end >= 0:
            start = location_end

    question_mark = spec.find("?", start, end)
    if question_mark >= 0:
        if location_start >= 0 and location_end < 0:
            location_end = question_mark
            start = question_mark
        query = spec[question_mark + 1 : end]
        end = question_mark

    semicolon = spec.find(";", start, end)
    if semicolon >= 0:
        if location_start >= 0 and location_end < 0:
            location_end = semicolon
            start = semicolon
        parameters = spec[semicolon + 1 : end]
        end = semicolon

    if location_start >= 0 and location_end < 0:
        location_end = end
    elif start < end:
        path = spec[start:end]

    if location_start >= 0:
        location = spec[location_start:location_end]

    return Address(
        scheme=scheme,
        location=location,
        path=path,
        parameters=parameters,
        query=query,
        fragment=fragment,
    )


def classify(url: str) -> AddressKind:
    return _kind_of_scheme((url or "").split(":", 1)[0])


def to_url(url: str) -> Address:
    """
    Turn an address string into an Address, attaching it to its scheme family.

    Normal (http, https, file) addresses are parsed into components and
    http/https ones must carry a host. Other schemes are kept opaque: the
    scheme plus everything after the first colon as the path. ``about:blank``
    always maps to the shared ``ABOUT_BLANK`` value.
    """
    if url is None:
        raise MalformedAddressError(code="missing_url", message="url is required")

    kind = classify(url)
    if kind is AddressKind.NORMAL:
        address = parse_address(url)
        scheme = (address.scheme or "").lower()
        if scheme.startswith("http") and not address.host:
            raise MalformedAddressError(
                code="missing_host", message=f"Missing host name in url: {url}"
            )
        return address

    if kind is AddressKind.ABOUT and url.lower() == ABOUT_BLANK_URL:
        return ABOUT_BLANK

    if ":" not in url:
        return Address(path=url)
    scheme, rest = url.split(":", 1)
    return Address(scheme=scheme, path=rest)


def protocol_handler(address: Address) -> Optional[ProtocolHandler]:
    return _HANDLERS.get(address.kind)


def _remove_leading_slash_points(path: str) -> str:
    # Browsers drop "../" right after the root instead of climbing above it (not in RFC 1808).
    if not path.startswith("/"):
        return path
    i = 1
    while path.startswith("../", i):
        i += 3
    if i > 1:
        return "/" + path[i:]
    return path


def _remove_dot_segments(path: str) -> str:
    # a) every "./" that is a complete segment
    while True:
        i = path.find("/./")
        if i < 0:
            break
        path = path[: i + 1] + path[i + 3 :]

    # b) a trailing "."
    if path.endswith("/."):
        path = path[:-1]

    # c) leftmost "<segment>/../" with segment != "..", repeatedly
    search_from = 1
    while True:
        i = path.find("/../", search_from)
        if i <= 0:
            break
        head = path[:i]
        slash = head.rfind("/")
        if head[slash + 1 :] == "..":
            search_from = i + 1
            continue
        path = path[: slash + 1] + path[i + 4 :]
        search_from = 1

    # d) a trailing "<segment>/.."
    if path.endswith("/.."):
        head = path[:-3]
        slash = head.rfind("/")
        if slash >= 0 and head[slash + 1 :] != "..":
            path = path[: slash + 1]

    return _remove_leading_slash_points(path)


def resolve_address(base: Optional[Address], reference: str) -> Address:
    """Resolve ``reference`` against ``base`` (RFC 1808 section 4)."""
    reference = reference or ""
    url = parse_address(reference)

    if base is None:
        return url
    if reference == "":
        return replace(base)
    if url.scheme is not None:
        return url

    url = replace(url, scheme=base.scheme)

    if url.location is not None:
        if url.path and url.path.startswith("/"):
            return replace(url, path=_remove_leading_slash_points(url.path))
        return url
    url = replace(url, location=base.location)

    if url.path and url.path.startswith("/"):
        return replace(url, path=_remove_leading_slash_points(url.path))

    if url.path is None:
        url = replace(url, path=base.path)
        if url.parameters is not None:
            return url
        url = replace(url, parameters=base.parameters)
        if url.query is not None:
            return url
        return replace(url, query=base.query)

    if base.path is None:
        merged = "/"
    else:
        merged = base.path[: base.path.rfind("/") + 1]
    return replace(url, path=_remove_dot_segments(merged + url.path))


def resolve_url(base: Union[str, Address, None], reference: str) -> str:
    if reference is None:
        raise ValueError("Relative URL must not be None")
    if isinstance(base, str):
        base = parse_address(base)
    return str(resolve_address(base, reference))
