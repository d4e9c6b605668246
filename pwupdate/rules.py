"""
Deterministic roster and log-classification rules.

This file exists to keep the tables data-driven and testable: column
synonyms, the temp CSV layout, and the patterns used to clean and classify
the password script's output.
"""

import re

TARGET_ENCODING = "utf-8-sig"  # UTF-8 with BOM
SINGLE_BYTE_ENCODING = "cp1252"
LATIN1_FILL_ERRORS = "pwupdate.latin1fill"  # codecs error handler name
UTF8_BOM = b"\xef\xbb\xbf"

SERIALIZED_DELIMITER = ";"
DELIMITER_REPLACEMENT = ","

DEFAULT_USER_TYPE = "Member"

# Temp CSV header expected by update-user-passwords.ps1
TEMP_CSV_HEADER = [
    "Vorname",
    "Nachname",
    "VornameNormalized",
    "NachnameNormalized",
    "Abteilung",
    "UserType",
    "NewPassword",
    "ForceChange",
]

# Resolution order matters: a header cell claimed by an earlier column is
# not offered to later ones, so the normalized columns go first.
COLUMN_SYNONYMS = [
    ("given_name_normalized", ["vornamenormalized", "vorname_normalized", "givennamenormalized", "firstnamenormalized"]),
    ("surname_normalized", ["nachnamenormalized", "nachname_normalized", "surnamenormalized", "lastnamenormalized"]),
    ("given_name", ["vorname", "givenname", "given name", "firstname", "first name", "first_name"]),
    ("surname", ["nachname", "surname", "lastname", "last name", "last_name", "familienname"]),
    ("department", ["abteilung", "department", "dept"]),
    ("user_type", ["usertype", "user type", "benutzertyp"]),
    ("new_password", ["newpassword", "new password", "password", "passwort", "kennwort", "pwd"]),
    ("force_change", ["forcechange", "force change", "force", "aendern", "ändern"]),
]

TRUE_LITERAL = "true"

# --- Subprocess output ---

ANSI_PATTERNS = [
    re.compile(r"\x1b\[[0-9;]*[mGK]"),  # SGR / cursor column / erase line
    re.compile(r"\x1b\[[0-9;]*[HJ]"),  # cursor home / erase screen
]

# PowerShell prints its own usage text when invoked with bad arguments
HELP_PATTERNS = [
    re.compile(r"^All parameters are case-insensitive", re.I),
    re.compile(r"^PowerShell Online Help", re.I),
    re.compile(r"^pwsh\[?\.exe\]?.*-h.*-Help", re.I),
    re.compile(r"^\[-.*\]$"),
    re.compile(r"^\[-Version\]"),
    re.compile(r"^\[-WindowStyle"),
    re.compile(r"^\[-WorkingDirectory"),
]

ERROR_MARKER = re.compile(r"FEHLER", re.I)

# e.g. "-> FEHLER beim Setzen des Passworts für jdoe@contoso.com: Zugriff verweigert"
FAILURE_PATTERN = re.compile(r"FEHLER.*(?:für|for)\s+([^:\s]+)\s*:", re.I)

# --- Script invocation ---

SHELL_CANDIDATES = ["pwsh", "powershell"]
SHELL_ARGS = ["-NoLogo", "-NoProfile", "-ExecutionPolicy", "Bypass"]
SCRIPT_NAME = "update-user-passwords.ps1"
TEMP_CSV_PREFIX = "user-passwords-"

SHELL_ENV = {
    "POWERSHELL_UPDATECHECK": "Off",
    "POWERSHELL_TELEMETRY_OPTOUT": "1",
}
CSV_PATH_ENV = "CSV_PATH"
