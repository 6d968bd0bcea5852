import typing

from ..amounts import parse_amount
from ..data_types import NormalizedTransaction
from ..extractor import DEFAULT_DATE_FORMATS
from ..extractor import ExtractorBase
from ..extractor import MalformedFileError
from ..extractor import parse_date_formats

# list sections, everything else under !Type: holds transactions
NON_TRANSACTION_TYPES = frozenset(["type:cat", "type:class", "type:memorized"])


def is_transaction_section(section: str | None) -> bool:
    return (
        section is not None
        and section.startswith("type:")
        and section not in NON_TRANSACTION_TYPES
    )


def normalize_qif_date(value: str) -> str:
    # Quicken writes "1/ 2'24" for 2024-01-02
    return value.replace("'", "/").replace(" ", "")


class QifExtractor(ExtractorBase):
    name: str = "qif"

    def read_records(self) -> typing.Generator[tuple[int, dict[str, str]], None, None]:
        record: dict[str, str] = {}
        start_lineno = None
        section = None
        for lineno, raw_line in enumerate(self.read_contents().splitlines(), 1):
            line = raw_line.strip()
            if not line:
                continue
            if line.startswith("!"):
                section = line[1:].lower()
                continue
            if line == "^":
                if record and is_transaction_section(section):
                    yield start_lineno, record
                record = {}
                start_lineno = None
                continue
            if section is None:
                raise MalformedFileError(
                    message="Failed parsing: doesn't look like a valid QIF file.",
                    internal=f"Unexpected line {lineno} before the !Type header",
                )
            if start_lineno is None:
                start_lineno = lineno
            code, value = line[0], line[1:].strip()
            # split lines (S/E/$) are not imported, the first value of a code wins
            record.setdefault(code, value)
        if record and is_transaction_section(section):
            yield start_lineno, record

    def process(self) -> typing.Generator[NormalizedTransaction, None, None]:
        for lineno, record in self.read_records():
            raw_date = record.get("D", "")
            date = parse_date_formats(normalize_qif_date(raw_date), DEFAULT_DATE_FORMATS)
            if date is None:
                self.add_error(
                    f"Invalid date format: {raw_date}",
                    internal=f"Failed to parse date on line {lineno}",
                    lineno=lineno,
                )
                return
            raw_amount = record.get("T", record.get("U", ""))
            amount = parse_amount(raw_amount)
            if amount is None:
                self.add_error(
                    f"Invalid amount format: {raw_amount}",
                    internal=f"Failed to parse amount on line {lineno}",
                    lineno=lineno,
                )
                return
            payee = record.get("P") or None
            yield NormalizedTransaction(
                amount=amount,
                date=date,
                payee_name=payee,
                imported_payee=payee,
                notes=self.notes(record.get("M")),
                lineno=lineno,
            )
