import datetime
import logging
import re
import typing

from .. import constants
from ..amounts import parse_swiss_amount
from ..data_types import NormalizedTransaction
from ..data_types import ParseMetadata
from ..data_types import SwissBankFormat
from ..extractor import ExtractorCsvBase
from ..extractor import HeaderNotFoundError
from ..heuristics import extract_payee
from ..heuristics import extract_twint_id

SWISS_DATE_RE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{2,4})$")


def parse_swiss_date(value: str) -> datetime.date | None:
    match = SWISS_DATE_RE.match(value.strip())
    if match is None:
        return None
    day, month, year = match.groups()
    if len(year) == 2:
        year = ("19" if int(year) > 50 else "20") + year
    try:
        return datetime.date(int(year), int(month), int(day))
    except ValueError:
        return None


class MigrosCsvExtractor(ExtractorCsvBase):
    """Migros Bank account statement export.

    The file starts with a preamble of metadata rows (account, period, the
    ``Saldo:`` row) followed by the header row starting with ``Datum``. Three
    dialects exist::

        Datum;Buchungstext;Betrag;Valuta
        Datum;Buchungstext;Mitteilung;Referenznummer;Betrag;Valuta
        Datum;Buchungstext;Mitteilung;Referenznummer;Betrag;Saldo;Valuta
    """

    name: str = "migros"
    delimiter: str = ";"

    def __init__(self, input_file, options=None):
        super().__init__(input_file, options)
        self.bank_saldo: int | None = None

    def metadata(self) -> ParseMetadata:
        return ParseMetadata(
            bank_saldo=self.bank_saldo, bank_format=SwissBankFormat.MIGROS
        )

    def find_saldo(self, rows: list[list[str]]) -> int | None:
        logger = logging.getLogger(__name__)
        for row in rows:
            if row and row[0] == constants.MIGROS_SALDO_LABEL:
                saldo = parse_swiss_amount(row[1] if len(row) > 1 else "")
                if saldo is not None:
                    logger.info("Migros Bank saldo from CSV: %s", saldo)
                return saldo
        return None

    def process(self) -> typing.Generator[NormalizedTransaction, None, None]:
        rows = self.read_rows()
        self.bank_saldo = self.find_saldo(rows)

        header_idx = next(
            (
                index
                for index, row in enumerate(rows)
                if row and row[0].lower() == "datum"
            ),
            None,
        )
        if header_idx is None:
            raise HeaderNotFoundError(
                message="Could not find header row in Migros Bank CSV",
                internal='Header row with "Datum" column not found',
            )

        header = rows[header_idx]
        num_cols = len([cell for cell in header if cell])
        has_saldo_column = (
            num_cols >= 7 and len(header) > 5 and header[5].lower() == "saldo"
        )

        for index in range(header_idx + 1, len(rows)):
            row = rows[index]
            lineno = index + 1
            if not row or not row[0]:
                continue
            padded = row + [""] * (7 - len(row))
            if num_cols == 4:
                _, booking_text, amount_text, value_date = padded[:4]
                message = ""
            elif has_saldo_column and len(row) >= 7:
                _, booking_text, message, _, amount_text, _, value_date = padded[:7]
            else:
                _, booking_text, message, _, amount_text, value_date = padded[:6]

            if not value_date or not amount_text:
                continue

            amount = parse_swiss_amount(amount_text)
            if amount is None:
                self.add_error(
                    f"Invalid amount format: {amount_text}",
                    internal=f"Failed to parse amount on line {lineno}",
                    lineno=lineno,
                )
                continue
            date = parse_swiss_date(value_date)
            if date is None:
                self.add_error(
                    f"Invalid date format: {value_date}",
                    internal=f"Failed to parse date on line {lineno}",
                    lineno=lineno,
                )
                continue

            payee = extract_payee(booking_text)
            notes_parts = []
            if message:
                notes_parts.append(message)
            if booking_text:
                notes_parts.append(f"[{booking_text}]")

            yield NormalizedTransaction(
                amount=amount,
                date=date,
                payee_name=payee,
                imported_payee=payee,
                notes=self.notes("\n".join(notes_parts)),
                imported_id=extract_twint_id(booking_text),
                lineno=lineno,
            )
