"""Tests for webresource/fetch_pipeline.py using a fake requests session."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import requests
from requests.structures import CaseInsensitiveDict

REPO_ROOT = Path(__file__).resolve().parents[1]
APP_ROOT = REPO_ROOT / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from webresource.address import MalformedAddressError  # noqa: E402
from webresource.fetch_pipeline import (  # noqa: E402
    decode_body,
    fetch_resource,
    resolve_for_fetch,
)
from webresource.http_parsing import DocumentCategory  # noqa: E402


class FakeResponse:
    def __init__(self, body: bytes, headers=None, status_code: int = 200):
        self._body = body
        self.headers = CaseInsensitiveDict(headers or {})
        self.status_code = status_code

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._body), chunk_size):
            yield self._body[i : i + chunk_size]


class FakeSession:
    def __init__(self, response: FakeResponse):
        self.response = response
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response


class TestResolveForFetch:
    def test_resolves_and_encodes(self):
        address = resolve_for_fetch("../x y?q=é", base="http://h/a/b/c")
        assert str(address) == "http://h/a/x%20y?q=%C3%A9"

    def test_query_charset(self):
        address = resolve_for_fetch("http://h/?q=é", query_charset="ISO-8859-1")
        assert str(address) == "http://h/?q=%E9"

    def test_rejects_non_normal(self):
        with pytest.raises(MalformedAddressError) as exc_info:
            resolve_for_fetch("javascript:alert(1)", base="http://h/")
        assert exc_info.value.code == "unsupported_scheme"

    def test_rejects_missing_host(self):
        with pytest.raises(MalformedAddressError) as exc_info:
            resolve_for_fetch("http:///x")
        assert exc_info.value.code == "missing_host"


class TestDecodeBody:
    def test_header_charset(self):
        text, charset, sniffed = decode_body(
            {"Content-Type": "text/html; charset=koi8-r"}, "привет".encode("koi8-r")
        )
        assert (text, charset, sniffed) == ("привет", "KOI8-R", True)

    def test_bom_is_stripped(self):
        text, charset, _ = decode_body({}, b"\xef\xbb\xbfhi")
        assert text == "hi"
        assert charset == "UTF-8"

    def test_default_charset(self):
        text, charset, sniffed = decode_body({"Content-Type": "text/html"}, b"caf\xe9")
        assert text == "café"
        assert charset == "windows-1252"
        assert sniffed is False

    def test_explicit_default_and_category(self):
        body = '@charset "utf-8";é'.encode("utf-8")
        text, charset, _ = decode_body(None, body, category=DocumentCategory.CSS)
        assert charset == "UTF-8"
        assert text.endswith("é")
        _, charset, _ = decode_body(None, b"x", default_charset="latin1")
        assert charset == "ISO-8859-1"

    def test_unsupported_default_charset(self):
        with pytest.raises(LookupError):
            decode_body(None, b"x", default_charset="bogus")


class TestFetchResource:
    def test_fetch_sniffs_meta_charset(self):
        body = '<html><meta charset="koi8-r">привет'.encode("koi8-r")
        session = FakeSession(FakeResponse(body, {"Content-Type": "text/html"}))

        result = fetch_resource("page b.html", base="http://h/dir/", session=session)

        assert result.url == "http://h/dir/page%20b.html"
        assert result.charset == "KOI8-R"
        assert result.sniffed is True
        assert result.text.endswith("привет")
        assert result.content == body
        url, kwargs = session.calls[0]
        assert url == "http://h/dir/page%20b.html"
        assert kwargs["stream"] is True
        assert kwargs["timeout"] == 10.0

    def test_request_timeout_override(self):
        session = FakeSession(FakeResponse(b"ok"))
        fetch_resource("http://h/", session=session, request_timeout=2.5)
        assert session.calls[0][1]["timeout"] == 2.5

    def test_content_too_large(self):
        session = FakeSession(FakeResponse(b"x" * 100))
        with pytest.raises(ValueError, match="content too large"):
            fetch_resource("http://h/", session=session, max_download_bytes=10)

    def test_http_error_propagates(self):
        session = FakeSession(FakeResponse(b"", status_code=503))
        with pytest.raises(requests.HTTPError):
            fetch_resource("http://h/", session=session)

    def test_unsupported_scheme_never_requests(self):
        session = FakeSession(FakeResponse(b""))
        with pytest.raises(MalformedAddressError):
            fetch_resource("data:,hello", session=session)
        assert session.calls == []

    def test_failure_is_logged_with_error_code(self, caplog):
        session = FakeSession(FakeResponse(b"", status_code=404))
        with caplog.at_level("WARNING", logger="webresource.fetch_pipeline"):
            with pytest.raises(requests.HTTPError):
                fetch_resource("http://h/missing", session=session)
        record = caplog.records[-1]
        assert record.extra_fields["error_code"] == "http_404"
        assert record.extra_fields["retryable"] is False
