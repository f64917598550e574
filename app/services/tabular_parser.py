"""
Decode uploaded CSV and spreadsheet files into loosely typed rows.

Parsing is structural only: every row is a mapping of column header to the
raw cell value (str for CSV, whatever the workbook reader returns for
spreadsheets). Interpreting values is left to the caller.
"""
import csv
import enum
import logging
import zipfile
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from python_calamine import CalamineError, CalamineWorkbook

from app.services.exceptions import TabularParseError

logger = logging.getLogger(__name__)

Row = dict[str, Any]

# Workbooks are told apart by content, not by the uploaded file name
ZIP_MAGIC = b"PK\x03\x04"
OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


class FileKind(str, enum.Enum):
    CSV = "csv"
    SPREADSHEET = "spreadsheet"


EXTENSION_KINDS = {
    ".csv": FileKind.CSV,
    ".xlsx": FileKind.SPREADSHEET,
    ".xls": FileKind.SPREADSHEET,
}


def kind_for_extension(extension: str) -> FileKind:
    """Map a file extension (with leading dot) to the parser to use."""
    try:
        return EXTENSION_KINDS[extension.lower()]
    except KeyError:
        raise TabularParseError(f"Unsupported file extension '{extension}'") from None


def parse_file(file_path: Union[str, Path], kind: FileKind) -> list[Row]:
    if kind is FileKind.CSV:
        return parse_csv(file_path)
    return parse_spreadsheet(file_path)


def parse_csv(file_path: Union[str, Path]) -> list[Row]:
    """
    Read a CSV file row by row using its header line as keys.

    A structural error anywhere in the file fails the whole parse; no
    partial result is returned.

    Args:
        file_path: Path to the CSV file

    Returns:
        Rows in file order
    """
    rows: list[Row] = []
    with open(file_path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f, strict=True)
        # line_num is not advanced for a record that fails to parse
        last_line = 0
        try:
            if reader.fieldnames:
                last_line = reader.line_num
            for row in reader:
                last_line = reader.line_num
                # Surplus fields land under the None key; they have no header
                rows.append(
                    {key.strip(): value for key, value in row.items() if key is not None}
                )
        except csv.Error as e:
            raise TabularParseError(f"Malformed CSV at line {last_line + 1}: {e}") from e
        except UnicodeDecodeError as e:
            raise TabularParseError(f"CSV file is not valid UTF-8: {e}") from e

    logger.info(f"📖 Parsed {len(rows)} CSV rows from {file_path}")
    return rows


def parse_spreadsheet(file_path: Union[str, Path]) -> list[Row]:
    """
    Read the first worksheet of a workbook into memory.

    Office Open XML workbooks (.xlsx) are read with openpyxl, legacy binary
    workbooks (.xls) with calamine. The first row is the header row. Fully
    blank rows are skipped and empty cells are left out of the row mapping.
    """
    with open(file_path, "rb") as f:
        magic = f.read(len(OLE2_MAGIC))
        f.seek(0)

        if magic.startswith(ZIP_MAGIC):
            rows = _read_xlsx(f)
        elif magic == OLE2_MAGIC:
            rows = _read_xls(f)
        else:
            raise TabularParseError("Unreadable spreadsheet: not an Excel workbook")

    logger.info(f"📖 Parsed {len(rows)} spreadsheet rows from {file_path}")
    return rows


def _read_xlsx(f) -> list[Row]:
    try:
        workbook = load_workbook(f, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise TabularParseError(f"Unreadable spreadsheet: {e}") from e

    try:
        return _rows_from_values(workbook.worksheets[0].iter_rows(values_only=True))
    finally:
        workbook.close()


def _read_xls(f) -> list[Row]:
    try:
        workbook = CalamineWorkbook.from_filelike(f)
        values = workbook.get_sheet_by_index(0).to_python(skip_empty_area=False)
    except CalamineError as e:
        raise TabularParseError(f"Unreadable spreadsheet: {e}") from e

    # calamine reports empty cells as ""
    return _rows_from_values(
        [None if cell == "" else cell for cell in raw] for raw in values
    )


def _rows_from_values(values: Iterable[Iterable[Any]]) -> list[Row]:
    values = iter(values)
    header = next(values, None)
    if header is None:
        return []

    headers: list[Optional[str]] = [
        str(cell).strip() if cell is not None else None for cell in header
    ]
    rows: list[Row] = []
    for raw in values:
        raw = list(raw)
        if all(cell is None for cell in raw):
            continue
        rows.append(
            {key: cell for key, cell in zip(headers, raw) if key and cell is not None}
        )
    return rows
