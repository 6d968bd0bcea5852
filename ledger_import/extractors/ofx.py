import re
import typing
import xml.etree.ElementTree as ET

from ..amounts import parse_ofx_amount
from ..data_types import NormalizedTransaction
from ..extractor import ExtractorBase
from ..extractor import MalformedFileError
from ..extractor import parse_date_formats

OFX_TAG_RE = re.compile(r"^<([A-Za-z0-9_.-]+)>([^<]+)$")
UNESCAPED_AMP_RE = re.compile(r"&(?!(amp|lt|gt|apos|quot);)")


def fix_ofx_to_xml(data: str) -> str:
    """Turn SGML flavoured OFX (unclosed leaf tags, raw ``&``) into XML"""
    fixed_lines = []
    for raw_line in data.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        line = UNESCAPED_AMP_RE.sub("&amp;", line)
        match = OFX_TAG_RE.match(line)
        if match is not None:
            tag, value = match.groups()
            line = f"<{tag}>{value.strip()}</{tag}>"
        fixed_lines.append(line)
    return "\n".join(fixed_lines)


class OfxExtractor(ExtractorBase):
    name: str = "ofx"

    def parse_document(self) -> ET.Element:
        contents = self.read_contents()
        start = contents.find("<OFX>")
        if start == -1:
            raise MalformedFileError(
                message="Failed importing file", internal="No <OFX> tag found"
            )
        try:
            return ET.fromstring(fix_ofx_to_xml(contents[start:]))
        except ET.ParseError as exc:
            raise MalformedFileError(message="Failed importing file", internal=str(exc))

    def process(self) -> typing.Generator[NormalizedTransaction, None, None]:
        root = self.parse_document()
        use_memo_fallback = self.options.fallback_missing_payee_to_memo
        currency = (root.findtext(".//CURDEF") or "").strip().upper() or None

        for index, trn in enumerate(root.iter("STMTTRN"), 1):
            raw_amount = (trn.findtext("TRNAMT") or "").strip()
            raw_date = (trn.findtext("DTPOSTED") or "").strip()
            fitid = (trn.findtext("FITID") or "").strip() or None
            name = (trn.findtext("NAME") or "").strip()
            memo = (trn.findtext("MEMO") or "").strip()

            amount = parse_ofx_amount(raw_amount)
            if amount is None:
                self.add_error(
                    f"Invalid amount format: {raw_amount}",
                    internal=f"Failed to parse amount: {raw_amount}",
                    lineno=index,
                )
                continue
            # 20240115120000[-5:EST]
            date = parse_date_formats(raw_date[:8], ["%Y%m%d"])
            if date is None:
                self.add_error(
                    f"Invalid date format: {raw_date}",
                    internal=f"Failed to parse date: {raw_date}",
                    lineno=index,
                )
                continue

            # banks don't always fill NAME
            payee = name or (memo if use_memo_fallback else "") or None
            yield NormalizedTransaction(
                amount=amount,
                date=date,
                payee_name=payee,
                imported_payee=payee,
                notes=self.notes(memo),
                imported_id=fitid,
                currency=currency,
                lineno=index,
            )
