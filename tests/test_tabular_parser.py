"""Tests for CSV and spreadsheet row decoding."""
import pytest
import xlwt
from openpyxl import Workbook

from app.services.exceptions import TabularParseError
from app.services.tabular_parser import (
    FileKind,
    kind_for_extension,
    parse_csv,
    parse_file,
    parse_spreadsheet,
)


def test_parse_csv_rows_keyed_by_header(tmp_path):
    path = tmp_path / "products.csv"
    path.write_text(
        "\ufeffname, price ,categoryName\n"
        "Laptop,999.99,Electronics\n"
        "Novel,12,books\n",
        encoding="utf-8",
    )

    rows = parse_csv(path)

    assert rows == [
        {"name": "Laptop", "price": "999.99", "categoryName": "Electronics"},
        {"name": "Novel", "price": "12", "categoryName": "books"},
    ]


def test_parse_csv_keeps_raw_strings(tmp_path):
    """No type coercion: numbers stay strings, blanks stay blank."""
    path = tmp_path / "products.csv"
    path.write_text("name,price\nWidget,\n007,1e3\n", encoding="utf-8")

    rows = parse_csv(path)

    assert rows == [{"name": "Widget", "price": ""}, {"name": "007", "price": "1e3"}]


@pytest.mark.parametrize("content", ["", "name,price,categoryName\n"])
def test_parse_csv_without_data_rows(tmp_path, content):
    path = tmp_path / "empty.csv"
    path.write_text(content, encoding="utf-8")

    assert parse_csv(path) == []


def test_parse_csv_malformed_fails_whole_parse(tmp_path):
    path = tmp_path / "broken.csv"
    path.write_text('name,price\nGood,1\n"Bad"x,2\nAlso good,3\n', encoding="utf-8")

    with pytest.raises(TabularParseError) as exc_info:
        parse_csv(path)

    assert "line 3" in str(exc_info.value)


def test_parse_csv_malformed_first_record(tmp_path):
    path = tmp_path / "broken.csv"
    path.write_text('name,price\n"Bad"x,2\n', encoding="utf-8")

    with pytest.raises(TabularParseError) as exc_info:
        parse_csv(path)

    assert "Malformed CSV at line 2" in str(exc_info.value)


def test_parse_csv_rejects_invalid_encoding(tmp_path):
    path = tmp_path / "latin1.csv"
    path.write_bytes("name,price\nCaf\xe9,3\n".encode("latin-1"))

    with pytest.raises(TabularParseError):
        parse_csv(path)


def test_parse_spreadsheet_first_sheet(tmp_path):
    path = tmp_path / "products.xlsx"
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["name", "price", "categoryName", "image"])
    sheet.append(["Laptop", 999.99, "Electronics", None])
    sheet.append([None, None, None, None])
    sheet.append(["Novel", 12, "Books", "novel.png"])
    other = workbook.create_sheet("Ignored")
    other.append(["name", "price"])
    other.append(["Hidden", 1])
    workbook.save(path)

    rows = parse_spreadsheet(path)

    assert rows == [
        {"name": "Laptop", "price": 999.99, "categoryName": "Electronics"},
        {"name": "Novel", "price": 12, "categoryName": "Books", "image": "novel.png"},
    ]


def test_parse_spreadsheet_empty_workbook(tmp_path):
    path = tmp_path / "empty.xlsx"
    Workbook().save(path)

    assert parse_spreadsheet(path) == []


def test_parse_spreadsheet_rejects_non_workbook(tmp_path):
    path = tmp_path / "fake.xlsx"
    path.write_text("name,price\nWidget,1\n", encoding="utf-8")

    with pytest.raises(TabularParseError):
        parse_spreadsheet(path)


def write_xls(path, rows):
    """Write a BIFF8 (.xls) workbook with the given rows on its first sheet."""
    workbook = xlwt.Workbook()
    sheet = workbook.add_sheet("Products")
    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            if value is not None:
                sheet.write(r, c, value)
    workbook.add_sheet("Ignored").write(0, 0, "name")
    workbook.save(str(path))


def test_parse_legacy_xls_first_sheet(tmp_path):
    path = tmp_path / "legacy.xls"
    write_xls(
        path,
        [
            ["name", "price", "categoryName", "image"],
            ["Laptop", 999.99, "Electronics", None],
            [None, None, None, None],
            ["Novel", "12", "Books", "novel.png"],
        ],
    )

    rows = parse_file(path, FileKind.SPREADSHEET)

    assert rows == [
        {"name": "Laptop", "price": 999.99, "categoryName": "Electronics"},
        {"name": "Novel", "price": "12", "categoryName": "Books", "image": "novel.png"},
    ]


def test_parse_xlsx_content_with_xls_name(tmp_path):
    path = tmp_path / "products.xls"
    workbook = Workbook()
    workbook.active.append(["name", "price"])
    workbook.active.append(["Lamp", 20])
    workbook.save(path)

    assert parse_file(path, FileKind.SPREADSHEET) == [{"name": "Lamp", "price": 20}]


@pytest.mark.parametrize(
    "extension,kind",
    [(".csv", FileKind.CSV), (".XLSX", FileKind.SPREADSHEET), (".xls", FileKind.SPREADSHEET)],
)
def test_kind_for_extension(extension, kind):
    assert kind_for_extension(extension) is kind


def test_kind_for_unknown_extension():
    with pytest.raises(TabularParseError):
        kind_for_extension(".txt")
