import datetime
import typing
import xml.etree.ElementTree as ET

import iso8601

from ..amounts import parse_ofx_amount
from ..data_types import NormalizedTransaction
from ..extractor import ExtractorBase
from ..extractor import MalformedFileError
from ..extractor import parse_date_formats


def find_text(element: ET.Element, path: str) -> str:
    # "{*}" matches any namespace, the schema version lives in it (camt.053.001.04)
    path = "/".join(
        part if part in ("", ".") else "{*}" + part for part in path.split("/")
    )
    return (element.findtext(path) or "").strip()


def parse_camt_date(entry: ET.Element, path: str) -> datetime.date | None:
    value = find_text(entry, f"{path}/Dt")
    if value:
        return parse_date_formats(value, ["%Y-%m-%d"])
    value = find_text(entry, f"{path}/DtTm")
    if value:
        try:
            return iso8601.parse_date(value).date()
        except iso8601.ParseError:
            return None
    return None


class CamtExtractor(ExtractorBase):
    """ISO 20022 CAMT.053 bank to customer statement"""

    name: str = "camt"

    def parse_document(self) -> ET.Element:
        try:
            return ET.fromstring(self.read_contents())
        except ET.ParseError as exc:
            raise MalformedFileError(message="Failed importing file", internal=str(exc))

    def process(self) -> typing.Generator[NormalizedTransaction, None, None]:
        root = self.parse_document()
        for index, entry in enumerate(root.iterfind(".//{*}Ntry"), 1):
            raw_amount = find_text(entry, "Amt")
            amount = parse_ofx_amount(raw_amount)
            if amount is None:
                self.add_error(
                    f"Invalid amount format: {raw_amount}",
                    internal=f"Failed to parse amount: {raw_amount}",
                    lineno=index,
                )
                continue
            is_debit = find_text(entry, "CdtDbtInd").upper() == "DBIT"
            amount = -abs(amount) if is_debit else abs(amount)

            date = parse_camt_date(entry, "ValDt") or parse_camt_date(entry, "BookgDt")
            if date is None:
                self.add_error(
                    "Invalid date format",
                    internal=f"Entry {index} has no usable ValDt or BookgDt",
                    lineno=index,
                )
                continue

            # the counterparty is the creditor for outgoing payments
            party = "Cdtr" if is_debit else "Dbtr"
            payee = (
                find_text(entry, f".//RltdPties/{party}/Nm")
                or find_text(entry, f".//RltdPties/{party}/Pty/Nm")
                or None
            )
            notes = " ".join(
                (element.text or "").strip()
                for element in entry.iterfind(".//{*}RmtInf/{*}Ustrd")
                if element.text
            ) or find_text(entry, ".//AddtlNtryInf")
            imported_id = (
                find_text(entry, "AcctSvcrRef") or find_text(entry, "NtryRef") or None
            )
            amount_element = entry.find("{*}Amt")
            currency = (
                amount_element.get("Ccy") if amount_element is not None else None
            )

            yield NormalizedTransaction(
                amount=amount,
                date=date,
                payee_name=payee,
                imported_payee=payee,
                notes=self.notes(notes),
                imported_id=imported_id,
                currency=currency,
                lineno=index,
            )
