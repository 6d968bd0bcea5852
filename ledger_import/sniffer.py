import logging
import pathlib

from . import constants
from .data_types import FileFormat
from .data_types import SwissBankFormat

EXTENSION_FORMATS = {
    ".qif": FileFormat.QIF,
    ".ofx": FileFormat.OFX,
    ".qfx": FileFormat.OFX,
    ".xml": FileFormat.CAMT,
    ".csv": FileFormat.CSV,
    ".tsv": FileFormat.CSV,
}
REVOLUT_HEADER_PREFIXES = (
    "art,produkt,",
    "type,product,",
    "art\tprodukt\t",
    "type\tproduct\t",
)


class InvalidFileTypeError(ValueError):
    def __init__(self, filepath: str | pathlib.Path):
        self.filepath = filepath

    def __str__(self):
        return "Invalid file type"


def detect_file_format(filepath: str | pathlib.Path) -> FileFormat:
    suffix = pathlib.PurePath(filepath).suffix.lower()
    file_format = EXTENSION_FORMATS.get(suffix)
    if file_format is None:
        raise InvalidFileTypeError(filepath)
    return file_format


def detect_swiss_bank_format(contents: str) -> SwissBankFormat | None:
    logger = logging.getLogger(__name__)
    lines = contents.removeprefix("\ufeff").splitlines()
    first_line = lines[0].lower() if lines else ""
    if first_line.startswith(REVOLUT_HEADER_PREFIXES):
        logger.debug("Detected Revolut header %r", lines[0])
        return SwissBankFormat.REVOLUT

    # Migros exports carry metadata rows before the actual header
    for line in lines[: constants.MIGROS_HEADER_SCAN_LINES]:
        line_lower = line.lower()
        if '"datum"' in line_lower or (
            line_lower.startswith("datum") and ";" in line
        ):
            logger.debug("Detected Migros header %r", line)
            return SwissBankFormat.MIGROS
    return None
