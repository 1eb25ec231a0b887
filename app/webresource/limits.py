from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from webresource.charsets import to_charset


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    return int(str(raw).strip())


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    return float(str(raw).strip())


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    return str(raw).strip()


def _require_range(
    name: str,
    value: float,
    *,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> None:
    if min_value is not None and value < min_value:
        raise RuntimeError(f"{name} must be >= {min_value}")
    if max_value is not None and value > max_value:
        raise RuntimeError(f"{name} must be <= {max_value}")


@dataclass(frozen=True)
class SniffLimits:
    """Byte-window sizes per document category. Fixed; not read from the environment."""

    html_bytes: int = 1024
    xml_bytes: int = 512
    css_bytes: int = 1024
    bom_bytes: int = 3


SNIFF_LIMITS = SniffLimits()


@dataclass(frozen=True)
class FetchLimits:
    max_download_bytes: int
    request_timeout_seconds: float
    default_charset: str

    @staticmethod
    def from_env() -> FetchLimits:
        limits = FetchLimits(
            max_download_bytes=_env_int("MAX_DOWNLOAD_BYTES", 1024 * 1024),  # 1MB
            request_timeout_seconds=_env_float("REQUEST_TIMEOUT", 10.0),
            default_charset=_env_str("DEFAULT_CHARSET", "windows-1252"),
        )
        limits.validate()
        return limits

    def validate(self) -> None:
        _require_range("MAX_DOWNLOAD_BYTES", float(self.max_download_bytes), min_value=1)
        _require_range("REQUEST_TIMEOUT", float(self.request_timeout_seconds), min_value=0.1)
        if to_charset(self.default_charset) is None:
            raise RuntimeError("DEFAULT_CHARSET must name a supported charset")


def get_sniff_limits() -> SniffLimits:
    return SNIFF_LIMITS


@lru_cache(maxsize=1)
def get_fetch_limits() -> FetchLimits:
    return FetchLimits.from_env()
