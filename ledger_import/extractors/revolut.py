import csv
import io
import re
import typing

from .. import constants
from ..amounts import parse_amount
from ..amounts import parse_swiss_amount
from ..data_types import MultiCurrencyExtension
from ..data_types import NormalizedTransaction
from ..data_types import ParseMetadata
from ..data_types import SwissBankFormat
from ..extractor import ExtractorCsvBase
from ..extractor import MalformedFileError
from ..extractor import parse_date_formats
from ..heuristics import classify_revolut_transaction

# English and German export column names
FIELD_NAMES = {
    "state": ("State", "Status"),
    "completed_date": ("Completed Date", "Datum des Abschlusses"),
    "started_date": ("Started Date", "Datum des Beginns"),
    "description": ("Description", "Beschreibung"),
    "amount": ("Amount", "Betrag"),
    "type": ("Type", "Art"),
    "currency": ("Currency", "Währung", "WAhrung"),
    "fee": ("Fee", "Gebühr"),
}


def account_name(currency: str, provider_name: str = constants.PROVIDER_NAME) -> str:
    return f"{provider_name} {currency.upper()}"


def make_imported_id(currency: str, started_date: str, raw_amount: str) -> str:
    value = f"REV_{currency}_{started_date}_{raw_amount}"
    value = re.sub(r"\s+", "_", value).replace(":", "")
    return value[: constants.REVOLUT_ID_MAX_LENGTH]


class RevolutCsvExtractor(ExtractorCsvBase):
    name: str = "revolut"

    def __init__(self, input_file, options=None):
        super().__init__(input_file, options)
        self.currencies: list[str] = []

    def metadata(self) -> ParseMetadata:
        return ParseMetadata(
            bank_format=SwissBankFormat.REVOLUT, currencies=list(self.currencies)
        )

    def get_field(self, row: dict[str, str], key: str) -> str:
        for name in FIELD_NAMES[key]:
            value = row.get(name)
            if value:
                return value.strip()
        return ""

    def read_dict_rows(self) -> list[tuple[int, dict[str, str]]]:
        contents = self.read_contents()
        first_line = contents.split("\n", 1)[0]
        delimiter = "\t" if "\t" in first_line else ","
        reader = csv.DictReader(
            io.StringIO(contents), delimiter=delimiter, skipinitialspace=True
        )
        rows = []
        try:
            for row in reader:
                # extra cells land under the None key
                cleaned = {
                    key.strip(): (value or "").strip()
                    for key, value in row.items()
                    if isinstance(key, str)
                }
                if not any(cleaned.values()):
                    continue
                rows.append((reader.line_num, cleaned))
        except csv.Error as exc:
            raise MalformedFileError(
                message=f"Failed parsing Revolut CSV: {exc}", internal=str(exc)
            )
        return rows

    def process(self) -> typing.Generator[NormalizedTransaction, None, None]:
        home_currency = self.options.home_currency
        for lineno, row in self.read_dict_rows():
            state = self.get_field(row, "state")
            # pending and reverted records are not imported
            if state and state.upper() not in constants.REVOLUT_COMPLETED_STATES:
                continue
            completed = self.get_field(row, "completed_date")
            raw_amount = self.get_field(row, "amount")
            if not completed or not raw_amount:
                continue

            amount = parse_amount(raw_amount.replace("'", ""))
            if amount is None:
                self.add_error(
                    f"Invalid amount format: {raw_amount}",
                    internal=f"Failed to parse amount on line {lineno}",
                    lineno=lineno,
                )
                continue
            date = parse_date_formats(completed[:10], ["%Y-%m-%d"])
            if date is None:
                self.add_error(
                    f"Invalid date format: {completed}",
                    internal=f"Failed to parse date on line {lineno}",
                    lineno=lineno,
                )
                continue

            description = self.get_field(row, "description")
            type_text = self.get_field(row, "type")
            currency = (self.get_field(row, "currency") or home_currency).upper()
            fee = self.get_field(row, "fee")

            kind, target_currency = classify_revolut_transaction(
                type_text, description, currency
            )
            extension = MultiCurrencyExtension(
                kind=kind,
                transfer_account=(
                    account_name(target_currency) if target_currency else None
                ),
            )

            notes_parts = []
            if type_text:
                notes_parts.append(f"[{type_text}]")
            if currency != home_currency:
                notes_parts.append(f"[Original: {raw_amount} {currency}]")
            fee_amount = parse_swiss_amount(fee)
            if fee_amount:
                notes_parts.append(f"Gebühr: {fee} {currency}")

            if currency not in self.currencies:
                self.currencies.append(currency)

            yield NormalizedTransaction(
                amount=amount,
                date=date,
                payee_name=description or None,
                imported_payee=description or None,
                notes=self.notes("\n".join(notes_parts)),
                imported_id=make_imported_id(
                    currency, self.get_field(row, "started_date"), raw_amount
                ),
                currency=currency,
                lineno=lineno,
                extension=extension,
            )
