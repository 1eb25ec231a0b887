from __future__ import annotations

import codecs
from types import MappingProxyType
from typing import Mapping, Optional

UTF_8 = "UTF-8"
UTF_16BE = "UTF-16BE"
UTF_16LE = "UTF-16LE"
WINDOWS_1252 = "windows-1252"
ISO_8859_1 = "ISO-8859-1"
US_ASCII = "US-ASCII"

_ASCII_WHITESPACE = "\t\n\x0c\r "

# Canonical name -> labels, after https://encoding.spec.whatwg.org/#names-and-labels.
# Latin-1 and ASCII labels keep their own names instead of folding into windows-1252.
_LABELS_BY_NAME: dict[str, tuple[str, ...]] = {
    UTF_8: ("unicode-1-1-utf-8", "unicode11utf8", "unicode20utf8", "utf-8", "utf8", "x-unicode20utf8"),
    "IBM866": ("866", "cp866", "csibm866", "ibm866"),
    "ISO-8859-2": ("csisolatin2", "iso-8859-2", "iso-ir-101", "iso8859-2", "iso88592", "iso_8859-2", "iso_8859-2:1987", "l2", "latin2"),
    "ISO-8859-3": ("csisolatin3", "iso-8859-3", "iso-ir-109", "iso8859-3", "iso88593", "iso_8859-3", "iso_8859-3:1988", "l3", "latin3"),
    "ISO-8859-4": ("csisolatin4", "iso-8859-4", "iso-ir-110", "iso8859-4", "iso88594", "iso_8859-4", "iso_8859-4:1988", "l4", "latin4"),
    "ISO-8859-5": ("csisolatincyrillic", "cyrillic", "iso-8859-5", "iso-ir-144", "iso8859-5", "iso88595", "iso_8859-5", "iso_8859-5:1988"),
    "ISO-8859-6": ("arabic", "asmo-708", "csiso88596e", "csiso88596i", "csisolatinarabic", "ecma-114", "iso-8859-6", "iso-8859-6-e", "iso-8859-6-i", "iso-ir-127", "iso8859-6", "iso88596", "iso_8859-6", "iso_8859-6:1987"),
    "ISO-8859-7": ("csisolatingreek", "ecma-118", "elot_928", "greek", "greek8", "iso-8859-7", "iso-ir-126", "iso8859-7", "iso88597", "iso_8859-7", "iso_8859-7:1987", "sun_eu_greek"),
    "ISO-8859-8": ("csiso88598e", "csisolatinhebrew", "hebrew", "iso-8859-8", "iso-8859-8-e", "iso-ir-138", "iso8859-8", "iso88598", "iso_8859-8", "iso_8859-8:1988", "visual"),
    "ISO-8859-8-I": ("csiso88598i", "iso-8859-8-i", "logical"),
    "ISO-8859-10": ("csisolatin6", "iso-8859-10", "iso-ir-157", "iso8859-10", "iso885910", "l6", "latin6"),
    "ISO-8859-13": ("iso-8859-13", "iso8859-13", "iso885913"),
    "ISO-8859-14": ("iso-8859-14", "iso8859-14", "iso885914"),
    "ISO-8859-15": ("csisolatin9", "iso-8859-15", "iso8859-15", "iso885915", "iso_8859-15", "l9"),
    "ISO-8859-16": ("iso-8859-16",),
    "KOI8-R": ("cskoi8r", "koi", "koi8", "koi8-r", "koi8_r"),
    "KOI8-U": ("koi8-ru", "koi8-u"),
    "macintosh": ("csmacintosh", "mac", "macintosh", "x-mac-roman"),
    "windows-874": ("dos-874", "iso-8859-11", "iso8859-11", "iso885911", "tis-620", "windows-874"),
    "windows-1250": ("cp1250", "windows-1250", "x-cp1250"),
    "windows-1251": ("cp1251", "windows-1251", "x-cp1251"),
    WINDOWS_1252: ("cp1252", "windows-1252", "x-cp1252"),
    ISO_8859_1: ("csisolatin1", "iso-8859-1", "iso-ir-100", "iso8859-1", "iso88591", "iso_8859-1", "iso_8859-1:1987", "l1", "latin1", "cp819", "ibm819"),
    US_ASCII: ("ansi_x3.4-1968", "ascii", "us-ascii"),
    "windows-1253": ("cp1253", "windows-1253", "x-cp1253"),
    "windows-1254": ("cp1254", "csisolatin5", "iso-8859-9", "iso-ir-148", "iso8859-9", "iso88599", "iso_8859-9", "iso_8859-9:1989", "l5", "latin5", "windows-1254", "x-cp1254"),
    "windows-1255": ("cp1255", "windows-1255", "x-cp1255"),
    "windows-1256": ("cp1256", "windows-1256", "x-cp1256"),
    "windows-1257": ("cp1257", "windows-1257", "x-cp1257"),
    "windows-1258": ("cp1258", "windows-1258", "x-cp1258"),
    "x-mac-cyrillic": ("x-mac-cyrillic", "x-mac-ukrainian"),
    "GBK": ("chinese", "csgb2312", "csiso58gb231280", "gb2312", "gb_2312", "gb_2312-80", "gbk", "iso-ir-58", "x-gbk"),
    "gb18030": ("gb18030",),
    "Big5": ("big5", "big5-hkscs", "cn-big5", "csbig5", "x-x-big5"),
    "EUC-JP": ("cseucpkdfmtjapanese", "euc-jp", "x-euc-jp"),
    "ISO-2022-JP": ("csiso2022jp", "iso-2022-jp"),
    "Shift_JIS": ("csshiftjis", "ms932", "ms_kanji", "shift-jis", "shift_jis", "sjis", "windows-31j", "x-sjis"),
    "EUC-KR": ("cseuckr", "csksc56011987", "euc-kr", "iso-ir-149", "korean", "ks_c_5601-1987", "ks_c_5601-1989", "ksc5601", "ksc_5601", "windows-949"),
    "replacement": ("csiso2022kr", "hz-gb-2312", "iso-2022-cn", "iso-2022-cn-ext", "iso-2022-kr", "replacement"),
    UTF_16BE: ("unicodefffe", "utf-16be"),
    UTF_16LE: ("csunicode", "iso-10646-ucs-2", "ucs-2", "unicode", "unicodefeff", "utf-16", "utf-16le"),
    "x-user-defined": ("x-user-defined",),
}


def _build_label_table() -> Mapping[str, str]:
    table: dict[str, str] = {}
    for name, labels in _LABELS_BY_NAME.items():
        for label in labels:
            table[label] = name
    return MappingProxyType(table)


ENCODING_LABELS: Mapping[str, str] = _build_label_table()

# Canonical names the codec registry only knows under another alias.
PYTHON_CODECS: Mapping[str, str] = MappingProxyType(
    {
        "windows-874": "cp874",
        "x-mac-cyrillic": "mac_cyrillic",
    }
)


def translate_encoding_label(label: Optional[str]) -> Optional[str]:
    """Map a raw encoding label (any case, surrounding whitespace) to its canonical name."""
    if not label:
        return None
    key = label.strip(_ASCII_WHITESPACE).lower()
    if not key:
        return None
    return ENCODING_LABELS.get(key)


def is_supported(charset: str) -> bool:
    try:
        codecs.lookup(PYTHON_CODECS.get(charset, charset))
    except LookupError:
        return False
    return True


def to_charset(label: Optional[str]) -> Optional[str]:
    """
    Return the canonical charset for a label, or None.

    Labels that translate to a name Python has no codec for are treated exactly
    like unknown labels.
    """
    name = translate_encoding_label(label)
    if name is None or not is_supported(name):
        return None
    return name


def codec_name(charset: str) -> str:
    """Name of the Python codec serving a canonical charset."""
    return codecs.lookup(PYTHON_CODECS.get(charset, charset)).name
