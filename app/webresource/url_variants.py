from __future__ import annotations

from dataclasses import replace
from typing import Optional
from urllib.parse import quote_plus

from webresource.address import Address, MalformedAddressError


def _require_normal(address: Address) -> None:
    if not address.is_normal:
        raise MalformedAddressError(
            code="unsupported_scheme",
            message=f"only http, https and file urls can be rewritten: {address}",
        )


def _location(user_info: Optional[str], host: str, port: Optional[int]) -> str:
    location = host or ""
    if user_info is not None:
        location = f"{user_info}@{location}"
    if port is not None:
        location = f"{location}:{port}"
    return location


def _with_location(
    address: Address,
    *,
    user_info: Optional[str],
    host: str,
    port: Optional[int],
) -> Address:
    _require_normal(address)
    return replace(address, location=_location(user_info, host, port))


def url_with_new_scheme(address: Address, scheme: str) -> Address:
    _require_normal(address)
    return replace(address, scheme=scheme)


def url_with_new_host(address: Address, host: str) -> Address:
    return _with_location(
        address, user_info=address.user_info, host=host, port=address.port
    )


def url_with_new_port(address: Address, port: Optional[int]) -> Address:
    return _with_location(
        address, user_info=address.user_info, host=address.host, port=port
    )


def url_with_new_host_and_port(
    address: Address, host: str, port: Optional[int]
) -> Address:
    return _with_location(address, user_info=address.user_info, host=host, port=port)


def url_with_new_path(address: Address, path: Optional[str]) -> Address:
    _require_normal(address)
    if path and not path.startswith("/") and address.location is not None:
        path = "/" + path
    return replace(address, path=path, parameters=None)


def url_with_new_query(address: Address, query: Optional[str]) -> Address:
    _require_normal(address)
    return replace(address, query=query)


def url_with_new_ref(address: Address, ref: Optional[str]) -> Address:
    _require_normal(address)
    if ref is not None and ref.startswith("#"):
        ref = ref[1:]
    return replace(address, fragment=ref)


def url_without_ref(address: Address) -> Address:
    _require_normal(address)
    return replace(address, fragment=None)


def url_with_protocol_and_authority(address: Address) -> Address:
    _require_normal(address)
    return Address(scheme=address.scheme, location=address.location)


def url_with_new_user_name(address: Address, user_name: Optional[str]) -> Address:
    user_info = user_name or ""
    current = address.user_info
    if current and ":" in current:
        user_info += current[current.index(":") :]
    return _with_location(
        address, user_info=user_info or None, host=address.host, port=address.port
    )


def url_with_new_user_password(address: Address, password: Optional[str]) -> Address:
    user_info = "" if password is None else ":" + password
    current = address.user_info
    if current:
        colon = current.find(":")
        user_info = (current[:colon] if colon > -1 else current) + user_info
    return _with_location(
        address, user_info=user_info or None, host=address.host, port=address.port
    )


def remove_redundant_port(address: Address) -> Address:
    scheme = (address.scheme or "").lower()
    port = address.port
    if (scheme == "https" and port == 443) or (scheme == "http" and port == 80):
        return url_with_new_port(address, None)
    return address


def normalize_path(path: Optional[str]) -> str:
    """Remove "." and ".." segments; "" becomes "/" and ".." never climbs above the root."""
    raw = path or ""
    if raw == "":
        return "/"
    # An absolute path keeps its leading empty segment.
    floor = 1 if raw.startswith("/") else 0

    segments = raw.split("/")
    out: list[str] = []
    for i, seg in enumerate(segments):
        last = i == len(segments) - 1
        if seg in (".", ".."):
            if seg == ".." and len(out) > floor:
                out.pop()
            if last:
                out.append("")
            continue
        out.append(seg)

    normalized = "/".join(out)
    if raw.startswith("/") and not normalized.startswith("/"):
        normalized = "/" + normalized
    return normalized


def _file_part(address: Address) -> str:
    path = address.path or ""
    if address.parameters is not None:
        path += ";" + address.parameters
    file_part = normalize_path(path)
    if address.query is not None:
        file_part += "?" + address.query
    return file_part


def same_file(a: Optional[Address], b: Optional[Address]) -> bool:
    """
    Whether two addresses name the same resource, ignoring fragments.

    Hosts are compared as strings (no DNS lookup); missing ports count as the
    scheme's default port and dot segments in paths are normalized away.
    """
    if a is b:
        return True
    if a is None or b is None:
        return False
    if (a.scheme or "").lower() != (b.scheme or "").lower():
        return False
    if a.effective_port != b.effective_port:
        return False
    if a.host.lower() != b.host.lower():
        return False
    return _file_part(a) == _file_part(b)


def normalize(address: Address) -> str:
    """Cache key form ``scheme://host:port/path?query``."""
    port = address.effective_port
    authority = address.host if port is None else f"{address.host}:{port}"
    return f"{address.scheme}://{authority}{_file_part(address)}"


def encode_query_part(part: Optional[str]) -> str:
    if not part:
        return ""
    return quote_plus(part, encoding="utf-8")
