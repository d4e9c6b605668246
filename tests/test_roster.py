import os

import pytest

from pwupdate.roster import (
    build_record,
    coerce_records,
    parse_csv_text,
    read_roster_file,
    resolve_columns,
    to_semicolon_csv,
    write_temp_csv,
)
from pwupdate.errors import CsvReadError


def test_comma_roster_example():
    text = "Vorname,Nachname,NewPassword,ForceChange\nJörg,Müller,Secr3t!,1\n"
    [rec] = parse_csv_text(text)
    assert rec.given_name == "Jörg"
    assert rec.surname == "Müller"
    assert rec.given_name_normalized == "joerg"
    assert rec.surname_normalized == "mueller"
    assert rec.new_password == "Secr3t!"
    assert rec.force_change is True
    assert rec.department == ""
    assert rec.user_type == "Member"


def test_semicolon_force_change_literals():
    text = "\r\n".join([
        "Vorname;Nachname;ForceChange",
        "A;Eins;true",
        "B;Zwei;TRUE",
        "C;Drei;0",
        "D;Vier;false",
        "E;Fuenf;",
    ])
    flags = [r.force_change for r in parse_csv_text(text)]
    assert flags == [True, True, False, False, False]


def test_rows_without_names_are_dropped():
    text = "Vorname;Nachname\nAnna;Berg\n;Berg\nAnna;   \nsolo\nBen;Kurz\n"
    records = parse_csv_text(text)
    assert [r.given_name for r in records] == ["Anna", "Ben"]


@pytest.mark.parametrize("text", ["", "\n\n  \r\n", "Vorname;Nachname\n", "Vorname,Nachname"])
def test_empty_or_header_only(text):
    assert parse_csv_text(text) == []


def test_english_headers_and_extra_columns():
    text = (
        "ID,First Name,Last Name,Department,User Type,Password,Force\n"
        "7,Hélène,Dupont,Finance,Guest,pw,yes\n"
    )
    [rec] = parse_csv_text(text)
    assert rec.given_name == "Hélène"
    assert rec.given_name_normalized == "helene"
    assert rec.department == "Finance"
    assert rec.user_type == "Guest"
    assert rec.new_password == "pw"
    assert rec.force_change is False


def test_normalized_columns_are_used_verbatim():
    text = "Vorname;Nachname;VornameNormalized;NachnameNormalized\nJörg;Müller;j.r;m\nAnna;Berg;;\n"
    first, second = parse_csv_text(text)
    assert (first.given_name_normalized, first.surname_normalized) == ("j.r", "m")
    assert (second.given_name_normalized, second.surname_normalized) == ("anna", "berg")


def test_normalized_header_before_plain_header():
    columns = resolve_columns(["VornameNormalized", "Vorname", "Nachname"])
    assert columns["given_name_normalized"] == 0
    assert columns["given_name"] == 1
    assert columns["surname"] == 2
    assert "department" not in columns


def test_serializer_header_and_escaping():
    rec = build_record("Anna", "Berg", department="IT;Ops", new_password="a;b", force_change=True)
    lines = to_semicolon_csv([rec]).split("\n")
    assert lines[0] == "Vorname;Nachname;VornameNormalized;NachnameNormalized;Abteilung;UserType;NewPassword;ForceChange"
    assert lines[1] == "Anna;Berg;anna;berg;IT,Ops;Member;a,b;1"


def test_serialize_then_parse_keeps_identities():
    records = [
        build_record("Jörg", "Müller", new_password="x", force_change=True),
        build_record("Élodie", "Núñez", department="HR"),
        build_record("Ben", "O'Neil", given_name_normalized="b.oneil"),
    ]
    parsed = parse_csv_text(to_semicolon_csv(records))
    assert [(r.given_name_normalized, r.surname_normalized) for r in parsed] == [
        (r.given_name_normalized, r.surname_normalized) for r in records
    ]
    assert [r.force_change for r in parsed] == [True, False, False]


def test_serializer_recomputes_missing_normalized_fields():
    from pwupdate.models import IdentityRecord

    rec = IdentityRecord(givenName="Jörg", surname="Groß")
    assert to_semicolon_csv([rec]).split("\n")[1].startswith("Jörg;Groß;joerg;gross;")


def test_coerce_records_from_editor():
    records = coerce_records([
        {"givenName": " Jörg ", "surname": "Müller", "forceChange": 1, "newPassword": " pw "},
        {"given_name": "Anna", "surname": "Berg", "force_change": "true"},
        {"givenName": "", "surname": "Leer"},
        "not a row",
    ])
    assert [r.given_name for r in records] == ["Jörg", "Anna"]
    assert records[0].given_name_normalized == "joerg"
    assert records[0].new_password == " pw "
    assert [r.force_change for r in records] == [True, True]


def test_write_temp_csv_uses_bom(tmp_path):
    path = write_temp_csv([build_record("Anna", "Berg")], str(tmp_path))
    assert os.path.dirname(path) == str(tmp_path)
    with open(path, "rb") as fh:
        raw = fh.read()
    assert raw.startswith(b"\xef\xbb\xbf")
    assert raw.decode("utf-8-sig").startswith("Vorname;Nachname;")


def test_read_roster_file(tmp_path):
    path = tmp_path / "roster.csv"
    path.write_bytes("Vorname;Nachname\nJörg;Müller\n".encode("cp1252"))
    [rec] = read_roster_file(str(path))
    assert rec.given_name == "Jörg"


def test_read_missing_file(tmp_path):
    with pytest.raises(CsvReadError):
        read_roster_file(str(tmp_path / "missing.csv"))


def test_line_breaks_in_edited_values_stay_in_one_row():
    records = coerce_records([
        {"givenName": "Anna", "surname": "Berg", "department": "IT\nEve;Admin", "newPassword": "a\r\nb"},
    ])
    assert records[0].department == "IT Eve;Admin"
    assert records[0].new_password == "a b"

    text = to_semicolon_csv(records)
    assert len(text.split("\n")) == 2
    parsed = parse_csv_text(text)
    assert [(r.given_name, r.surname, r.department) for r in parsed] == [("Anna", "Berg", "IT Eve,Admin")]


def test_serializer_folds_line_breaks_of_direct_records():
    from pwupdate.models import IdentityRecord

    rec = IdentityRecord(givenName="Anna", surname="Berg", department="IT\nOps")
    assert to_semicolon_csv([rec]).split("\n")[1] == "Anna;Berg;anna;berg;IT Ops;Member;;0"
