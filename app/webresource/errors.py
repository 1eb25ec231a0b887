from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAX_ERROR_CHARS = 300


@dataclass(frozen=True)
class ErrorInfo:
    code: str
    message: str
    retryable: bool
    log_traceback: bool = False


def _truncate(value: str, *, max_chars: int) -> str:
    s = str(value or "")
    if max_chars <= 0 or len(s) <= max_chars:
        return s
    return s[: max(0, max_chars - 3)] + "..."


def classify_exception(
    exc: Exception, *, max_error_chars: int = DEFAULT_MAX_ERROR_CHARS
) -> ErrorInfo:
    from webresource.address import MalformedAddressError
    from webresource.url_encoding import InvalidPercentEncodingError

    if isinstance(exc, MalformedAddressError):
        return ErrorInfo(
            code=str(exc.code or "malformed_address"),
            message=_truncate(str(exc), max_chars=max_error_chars),
            retryable=False,
            log_traceback=False,
        )

    if isinstance(exc, InvalidPercentEncodingError):
        return ErrorInfo(
            code="invalid_percent_encoding",
            message=_truncate(str(exc), max_chars=max_error_chars),
            retryable=False,
            log_traceback=False,
        )

    # Unknown codec names raise LookupError; undecodable bytes raise UnicodeError.
    if isinstance(exc, UnicodeError) or type(exc) is LookupError:
        return ErrorInfo(
            code="decode_failed",
            message=_truncate(str(exc), max_chars=max_error_chars),
            retryable=False,
            log_traceback=False,
        )

    msg = str(exc or "").strip()
    if msg == "content too large":
        return ErrorInfo(
            code="upstream_rejected",
            message=_truncate(msg, max_chars=max_error_chars),
            retryable=False,
            log_traceback=False,
        )

    # requests.HTTPError and friends (avoid importing requests at runtime)
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int) and 100 <= status <= 599:
        retryable = status >= 500 or status in (408, 425, 429)
        return ErrorInfo(
            code=f"http_{status}",
            message=f"upstream HTTP {status}",
            retryable=retryable,
            log_traceback=not retryable,
        )

    exc_name = exc.__class__.__name__
    if exc_name.lower().endswith("timeout") or exc_name in (
        "ConnectionError",
        "ConnectTimeout",
        "ReadTimeout",
        "Timeout",
    ):
        return ErrorInfo(
            code="network_error",
            message="network error",
            retryable=True,
            log_traceback=False,
        )

    return ErrorInfo(
        code="internal_error",
        message=_truncate(exc.__class__.__name__, max_chars=max_error_chars),
        retryable=True,
        log_traceback=True,
    )
