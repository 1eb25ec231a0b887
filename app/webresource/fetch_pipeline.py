"""
Fetch pipeline: resolve an address, download it, sniff and decode the body.

This is the only place where the address resolver and the encoding sniffer
meet. Transport concerns (pooling, redirects, cookies) are left to requests.
"""

from __future__ import annotations

import io
import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Optional, Union

import requests

from webresource.address import Address, MalformedAddressError, resolve_address, to_url
from webresource.charsets import codec_name, to_charset
from webresource.encoding_sniffer import sniff_encoding
from webresource.errors import classify_exception
from webresource.http_parsing import DocumentCategory, Headers
from webresource.limits import get_fetch_limits
from webresource.logging_config import get_logger, log_with_context
from webresource.telemetry import get_tracer
from webresource.url_encoding import encode_url

logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchedResource:
    url: str
    status_code: int
    headers: dict
    content: bytes
    charset: str
    sniffed: bool
    text: str


def resolve_for_fetch(
    reference: str,
    *,
    base: Union[str, Address, None] = None,
    query_charset: str = "UTF-8",
) -> Address:
    """Resolve, validate and percent-encode the address to request."""
    if isinstance(base, str):
        base = to_url(base)
    resolved = resolve_address(base, reference)
    address = to_url(str(resolved))
    if not address.is_normal or (address.scheme or "").lower() == "file":
        raise MalformedAddressError(
            code="unsupported_scheme",
            message=f"only http and https urls can be fetched: {address.scheme}",
        )
    return encode_url(address, query_charset)


def decode_body(
    headers: Optional[Headers],
    body: bytes,
    *,
    category: Optional[DocumentCategory] = None,
    default_charset: Optional[str] = None,
) -> tuple[str, str, bool]:
    """
    Pick a charset for ``body`` and decode it.

    Returns (text, charset, sniffed) where ``sniffed`` is False when the
    default charset had to be used.
    """
    charset = sniff_encoding(headers, io.BytesIO(body), category)
    sniffed = charset is not None
    if charset is None:
        charset = to_charset(default_charset or get_fetch_limits().default_charset)
        if charset is None:
            raise LookupError(f"unsupported default charset: {default_charset}")

    data = body
    if sniffed and data[:3] == b"\xef\xbb\xbf" and charset == "UTF-8":
        data = data[3:]
    elif sniffed and data[:2] in (b"\xfe\xff", b"\xff\xfe") and charset.startswith("UTF-16"):
        data = data[2:]
    return data.decode(codec_name(charset), errors="replace"), charset, sniffed


def _read_limited(resp, max_download_bytes: int) -> bytes:
    buf = bytearray()
    for chunk in resp.iter_content(chunk_size=8192):
        if not chunk:
            continue
        buf.extend(chunk)
        if len(buf) > max_download_bytes:
            raise ValueError("content too large")
    return bytes(buf)


def fetch_resource(
    reference: str,
    *,
    base: Union[str, Address, None] = None,
    session: Optional[requests.Session] = None,
    category: Optional[DocumentCategory] = None,
    query_charset: str = "UTF-8",
    max_download_bytes: Optional[int] = None,
    request_timeout: Optional[float] = None,
) -> FetchedResource:
    limits = get_fetch_limits()
    max_bytes = max_download_bytes or limits.max_download_bytes
    timeout = request_timeout or limits.request_timeout_seconds
    http = session or requests.Session()

    tracer = get_tracer("webresource.fetch")
    span_cm = (
        tracer.start_as_current_span("webresource.fetch") if tracer else nullcontext()
    )

    start = time.time()
    try:
        with span_cm as span:
            address = resolve_for_fetch(
                reference, base=base, query_charset=query_charset
            )
            url = str(address)
            if span:
                span.set_attribute("url.full", url)
            log_with_context(logger, logging.DEBUG, "Fetching resource", url=url)

            with http.get(url, timeout=timeout, stream=True) as resp:
                resp.raise_for_status()
                content = _read_limited(resp, max_bytes)
                headers = dict(resp.headers)
                status_code = int(resp.status_code)

            text, charset, sniffed = decode_body(headers, content, category=category)
            if span:
                span.set_attribute("http.response.status_code", status_code)
                span.set_attribute("webresource.charset", charset)

            log_with_context(
                logger,
                logging.INFO,
                "Fetched resource",
                url=url,
                status_code=status_code,
                charset=charset,
                source="sniffed" if sniffed else "default",
                size_bytes=len(content),
                duration_ms=int((time.time() - start) * 1000),
            )
            return FetchedResource(
                url=url,
                status_code=status_code,
                headers=headers,
                content=content,
                charset=charset,
                sniffed=sniffed,
                text=text,
            )
    except Exception as exc:
        info = classify_exception(exc)
        log_with_context(
            logger,
            logging.WARNING,
            f"Fetch failed: {info.message}",
            url=reference,
            error_code=info.code,
            retryable=info.retryable,
        )
        if info.log_traceback:
            logger.debug("Fetch failure traceback", exc_info=True)
        raise
