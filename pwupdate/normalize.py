"""
Identity normalization: display names -> login fragments.

Responsibilities:
- German transliteration (ä -> ae, ß -> ss, ...)
- accent folding for the remaining Latin letters
- lower-casing
- dropping everything outside [a-z0-9.]

Case folding runs after the substitutions so upper-case accented letters
map the same way as their lower-case forms.
"""

from __future__ import annotations

import re

_GERMAN = {
    "ä": "ae", "Ä": "ae",
    "ö": "oe", "Ö": "oe",
    "ü": "ue", "Ü": "ue",
    "ß": "ss",
}

_ACCENTS = {
    "a": "àáâãåāÀÁÂÃÅĀ",
    "e": "èéêëēÈÉÊËĒ",
    "i": "ìíîïīÌÍÎÏĪ",
    "o": "òóôõøōÒÓÔÕØŌ",
    "u": "ùúûūÙÚÛŪ",
    "y": "ýÿÝŸ",
    "c": "çÇ",
    "n": "ñÑ",
}

_GERMAN_TABLE = str.maketrans(_GERMAN)
_ACCENT_TABLE = str.maketrans(
    {ch: base for base, variants in _ACCENTS.items() for ch in variants}
)

ACCENTED_CHARACTERS = frozenset(_GERMAN) | frozenset("".join(_ACCENTS.values()))

_DISALLOWED = re.compile(r"[^a-z0-9.]")


def normalize_identity(value: str) -> str:
    if not value:
        return ""
    text = value.translate(_GERMAN_TABLE)
    text = text.translate(_ACCENT_TABLE)
    return _DISALLOWED.sub("", text.lower())
