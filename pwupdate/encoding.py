"""
Encoding detection for uploaded rosters.

Rules (best-effort, not a guarantee):
- A UTF-8 BOM wins outright.
- NUL bytes mean a wide encoding (Excel's "Unicode text" is UTF-16);
  charset-normalizer identifies it.
- Valid UTF-8 that contains accented letters from the roster alphabet is UTF-8.
- Anything Windows-1252 can decode is Windows-1252 (Excel's default export).
- Otherwise valid UTF-8.
- Last resort: Windows-1252 with its five undefined bytes read as Latin-1.
  This step cannot fail, so decoding never raises.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from typing import Optional

from charset_normalizer import from_bytes

from .normalize import ACCENTED_CHARACTERS
from .rules import LATIN1_FILL_ERRORS, SINGLE_BYTE_ENCODING, UTF8_BOM

logger = logging.getLogger(__name__)


def _latin1_fill(exc: UnicodeError):
    # 0x81, 0x8D, 0x8F, 0x90 and 0x9D have no cp1252 mapping
    if isinstance(exc, UnicodeDecodeError):
        return exc.object[exc.start:exc.end].decode("latin-1"), exc.end
    raise exc


codecs.register_error(LATIN1_FILL_ERRORS, _latin1_fill)


@dataclass(frozen=True)
class EncodingDecision:
    encoding: str
    reason: str
    fallback: bool = False
    errors: str = "strict"


def _strict(raw: bytes, encoding: str) -> Optional[str]:
    try:
        return raw.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        return None


def _has_roster_accents(text: str) -> bool:
    return any(ch in ACCENTED_CHARACTERS for ch in text)


def choose_encoding(raw: bytes) -> EncodingDecision:
    """Decide how *raw* should be decoded without decoding it for the caller."""
    if raw.startswith(UTF8_BOM):
        return EncodingDecision("utf-8-sig", "bom", errors="replace")

    if b"\x00" in raw:
        match = from_bytes(raw).best()
        if match is not None and _strict(raw, match.encoding) is not None:
            return EncodingDecision(match.encoding, "detected", fallback=True)

    as_utf8 = _strict(raw, "utf-8")
    if as_utf8 is not None and _has_roster_accents(as_utf8):
        return EncodingDecision("utf-8", "utf8_accents")

    if _strict(raw, SINGLE_BYTE_ENCODING) is not None:
        return EncodingDecision(SINGLE_BYTE_ENCODING, "single_byte")

    if as_utf8 is not None:
        return EncodingDecision("utf-8", "utf8_valid")

    return EncodingDecision(
        SINGLE_BYTE_ENCODING, "single_byte_latin1", fallback=True, errors=LATIN1_FILL_ERRORS
    )


def decode_bytes(raw: bytes) -> tuple[str, EncodingDecision]:
    """Decode *raw* following :func:`choose_encoding`; never raises."""
    decision = choose_encoding(raw)
    text = raw.decode(decision.encoding, errors=decision.errors)
    logger.info(
        "decoded %d bytes as %s (%s)", len(raw), decision.encoding, decision.reason
    )
    return text, decision
