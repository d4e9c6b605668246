"""
Roster CSV parsing and serialization.

Responsibilities:
- delimiter detection (';' or ',') from the header line
- column resolution by header synonyms
- row filtering (given name and surname are mandatory)
- the semicolon CSV handed to update-user-passwords.ps1

Known limitation: the serializer replaces ';' inside values with ','.
This keeps columns aligned for the script but is lossy.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .encoding import decode_bytes
from .errors import CsvReadError
from .normalize import normalize_identity
from .models import IdentityRecord
from .rules import (
    COLUMN_SYNONYMS,
    DEFAULT_USER_TYPE,
    DELIMITER_REPLACEMENT,
    SERIALIZED_DELIMITER,
    TARGET_ENCODING,
    TEMP_CSV_HEADER,
    TEMP_CSV_PREFIX,
    TRUE_LITERAL,
)

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def detect_delimiter(header: str) -> str:
    if ";" in header and "," not in header:
        return ";"
    return ","


def resolve_columns(header_cells: Sequence[str]) -> Dict[str, int]:
    """Map logical column -> header index; unmatched columns are absent."""
    lowered = [cell.strip().lower() for cell in header_cells]
    claimed: set[int] = set()
    columns: Dict[str, int] = {}
    for column, synonyms in COLUMN_SYNONYMS:
        for idx, cell in enumerate(lowered):
            if idx in claimed:
                continue
            if any(syn in cell for syn in synonyms):
                columns[column] = idx
                claimed.add(idx)
                break
    return columns


def _single_line(value: str) -> str:
    return _LINE_BREAK.sub(" ", value)


def build_record(
    given_name: str,
    surname: str,
    given_name_normalized: str = "",
    surname_normalized: str = "",
    department: str = "",
    user_type: str = "",
    new_password: str = "",
    force_change: bool = False,
) -> Optional[IdentityRecord]:
    """
    Create a record, or ``None`` when a mandatory name is missing.

    Line breaks inside values become spaces; one record is one CSV line.
    """
    given_name = _single_line(given_name).strip()
    surname = _single_line(surname).strip()
    if not given_name or not surname:
        return None

    return IdentityRecord(
        given_name=given_name,
        surname=surname,
        given_name_normalized=_single_line(given_name_normalized).strip() or normalize_identity(given_name),
        surname_normalized=_single_line(surname_normalized).strip() or normalize_identity(surname),
        department=_single_line(department).strip(),
        user_type=_single_line(user_type).strip() or DEFAULT_USER_TYPE,
        new_password=_single_line(new_password),
        force_change=force_change,
    )


def parse_csv_text(text: str) -> List[IdentityRecord]:
    lines = [line for line in _LINE_BREAK.split(str(text)) if line.strip()]
    if not lines:
        return []

    delimiter = detect_delimiter(lines[0])
    columns = resolve_columns(lines[0].split(delimiter))

    def cell(parts: List[str], column: str) -> str:
        idx = columns.get(column)
        if idx is None or idx >= len(parts):
            return ""
        return parts[idx].strip()

    records: List[IdentityRecord] = []
    skipped = 0
    for line in lines[1:]:
        parts = line.split(delimiter)
        if len(parts) < 2:
            skipped += 1
            continue

        record = build_record(
            given_name=cell(parts, "given_name"),
            surname=cell(parts, "surname"),
            given_name_normalized=cell(parts, "given_name_normalized"),
            surname_normalized=cell(parts, "surname_normalized"),
            department=cell(parts, "department"),
            user_type=cell(parts, "user_type"),
            new_password=cell(parts, "new_password"),
            force_change=parse_force_change(cell(parts, "force_change")),
        )
        if record is None:
            skipped += 1
            continue
        records.append(record)

    logger.info(
        "parsed %d records (delimiter=%r, columns=%s, skipped=%d)",
        len(records), delimiter, sorted(columns), skipped,
    )
    return records


def coerce_records(items: Iterable[Any]) -> List[IdentityRecord]:
    """
    Turn edited rows (dicts with camelCase or snake_case keys) into records.

    Values are stringified and trimmed; rows without given name or surname
    are dropped, as are entries that are not mappings.
    """
    records: List[IdentityRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue

        def get(alias: str, name: str) -> str:
            value = item.get(alias, item.get(name))
            return "" if value is None else str(value)

        force = item.get("forceChange", item.get("force_change"))
        if isinstance(force, str):
            force_change = parse_force_change(force)
        else:
            force_change = bool(force)

        record = build_record(
            given_name=get("givenName", "given_name"),
            surname=get("surname", "surname"),
            given_name_normalized=get("givenNameNormalized", "given_name_normalized"),
            surname_normalized=get("surnameNormalized", "surname_normalized"),
            department=get("department", "department"),
            user_type=get("userType", "user_type"),
            new_password=get("newPassword", "new_password"),
            force_change=force_change,
        )
        if record is not None:
            records.append(record)
    return records


def _escape(value: str) -> str:
    return _single_line(str(value or "")).replace(SERIALIZED_DELIMITER, DELIMITER_REPLACEMENT)


def to_semicolon_csv(records: Iterable[IdentityRecord]) -> str:
    lines = [SERIALIZED_DELIMITER.join(TEMP_CSV_HEADER)]
    for rec in records:
        fields = [
            rec.given_name,
            rec.surname,
            rec.given_name_normalized or normalize_identity(rec.given_name),
            rec.surname_normalized or normalize_identity(rec.surname),
            rec.department,
            rec.user_type,
            rec.new_password,
        ]
        escaped = [_escape(value) for value in fields]
        escaped.append("1" if rec.force_change else "0")
        lines.append(SERIALIZED_DELIMITER.join(escaped))
    return "\n".join(lines)


def write_temp_csv(records: Iterable[IdentityRecord], directory: Optional[str] = None) -> str:
    """Write the script's CSV (UTF-8 with BOM) to a fresh temp file; return its path."""
    fd, path = tempfile.mkstemp(prefix=TEMP_CSV_PREFIX, suffix=".csv", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding=TARGET_ENCODING, newline="") as fh:
            fh.write(to_semicolon_csv(records))
    except BaseException:
        os.remove(path)
        raise
    return path


def parse_csv_bytes(raw: bytes) -> List[IdentityRecord]:
    text, _ = decode_bytes(raw)
    return parse_csv_text(text)


def read_roster_file(path: str) -> List[IdentityRecord]:
    try:
        with open(path, "rb") as fh:
            raw = fh.read()
    except OSError as exc:
        raise CsvReadError(f"CSV konnte nicht gelesen werden: {exc}") from exc
    return parse_csv_bytes(raw)
