"""
Convert raw generic CSV rows into transactions with a ``FieldMapping``.

Conversion stops at the first row whose date or amount does not parse; the
rows before it are kept and one error is reported.
"""
import decimal
import logging
import typing

from .amounts import parse_amount
from .data_types import FieldMapping
from .data_types import NormalizedTransaction
from .data_types import ParseError
from .extractor import DEFAULT_DATE_FORMATS
from .extractor import parse_date_formats


def get_column(row: dict[str, str] | list[str], column: str | int | None) -> str | None:
    if column is None:
        return None
    if isinstance(row, dict):
        return row.get(str(column))
    try:
        index = int(column)
    except ValueError:
        return None
    if 0 <= index < len(row):
        return row[index]
    return None


def apply_multiplier(amount: int, mapping: FieldMapping) -> int:
    if mapping.flip_amount:
        amount = -amount
    if mapping.multiplier != 1.0:
        amount = int(
            (decimal.Decimal(amount) * decimal.Decimal(str(mapping.multiplier))).quantize(
                decimal.Decimal(1), rounding=decimal.ROUND_HALF_UP
            )
        )
    return amount


def parse_mapped_amount(
    row: dict[str, str] | list[str], mapping: FieldMapping
) -> int | None:
    if mapping.inflow is not None or mapping.outflow is not None:
        inflow_text = get_column(row, mapping.inflow) or ""
        outflow_text = get_column(row, mapping.outflow) or ""
        if not inflow_text.strip() and not outflow_text.strip():
            return None
        inflow = parse_amount(inflow_text) if inflow_text.strip() else 0
        outflow = parse_amount(outflow_text) if outflow_text.strip() else 0
        if inflow is None or outflow is None:
            return None
        return abs(inflow) - abs(outflow)
    return parse_amount(get_column(row, mapping.amount))


def convert_rows(
    rows: typing.Sequence[dict[str, str] | list[str]],
    mapping: FieldMapping,
    import_notes: bool = True,
) -> tuple[list[NormalizedTransaction], list[ParseError]]:
    logger = logging.getLogger(__name__)
    transactions: list[NormalizedTransaction] = []
    date_formats = (
        [mapping.date_format] if mapping.date_format is not None else DEFAULT_DATE_FORMATS
    )
    for index, row in enumerate(rows, 1):
        raw_date = get_column(row, mapping.date) or ""
        date = parse_date_formats(raw_date, date_formats)
        if date is None:
            logger.debug("Stop converting at row %s, invalid date %r", index, raw_date)
            return transactions, [
                ParseError(
                    message=f"Invalid date format: {raw_date}",
                    internal=f"Failed to parse date in row {index}",
                    lineno=index,
                )
            ]
        amount = parse_mapped_amount(row, mapping)
        if amount is None:
            logger.debug("Stop converting at row %s, invalid amount", index)
            return transactions, [
                ParseError(
                    message="Invalid amount format",
                    internal=f"Failed to parse amount in row {index}",
                    lineno=index,
                )
            ]
        payee = get_column(row, mapping.payee) or None
        notes = get_column(row, mapping.notes) if import_notes else None
        transactions.append(
            NormalizedTransaction(
                amount=apply_multiplier(amount, mapping),
                date=date,
                payee_name=payee,
                imported_payee=payee,
                notes=notes or None,
                lineno=index,
            )
        )
    return transactions, []
