import logging
import pathlib
import typing

from .data_types import FileFormat
from .data_types import ParseError
from .data_types import ParseOptions
from .data_types import ParseResult
from .data_types import SwissBankFormat
from .extractor import ExtractorBase
from .extractor import ExtractorError
from .extractors.camt import CamtExtractor
from .extractors.csv_generic import GenericCsvExtractor
from .extractors.migros import MigrosCsvExtractor
from .extractors.ofx import OfxExtractor
from .extractors.qif import QifExtractor
from .extractors.revolut import RevolutCsvExtractor
from .field_mapping import convert_rows
from .sniffer import InvalidFileTypeError
from .sniffer import detect_file_format
from .sniffer import detect_swiss_bank_format

FORMAT_EXTRACTORS: dict[FileFormat, typing.Type[ExtractorBase]] = {
    FileFormat.QIF: QifExtractor,
    FileFormat.OFX: OfxExtractor,
    FileFormat.CAMT: CamtExtractor,
}
SWISS_EXTRACTORS: dict[SwissBankFormat, typing.Type[ExtractorBase]] = {
    SwissBankFormat.MIGROS: MigrosCsvExtractor,
    SwissBankFormat.REVOLUT: RevolutCsvExtractor,
}


def resolve_swiss_format(
    contents: str, requested: SwissBankFormat | None
) -> SwissBankFormat | None:
    if requested is None:
        return None
    if requested == SwissBankFormat.AUTO:
        return detect_swiss_bank_format(contents)
    return requested


def parse_file(
    filepath: str | pathlib.Path, options: ParseOptions | None = None
) -> ParseResult:
    """Parse a bank export into normalized transactions.

    Format errors (unknown extension, malformed content) are terminal and come
    back as ``errors`` with no transactions; per-record errors come back next to
    the transactions that did parse.
    """
    logger = logging.getLogger(__name__)
    if options is None:
        options = ParseOptions()
    filepath = pathlib.Path(filepath)

    try:
        file_format = detect_file_format(filepath)
    except InvalidFileTypeError as exc:
        return ParseResult(errors=[ParseError(message=str(exc))])

    with filepath.open("rt", encoding="utf-8", newline="") as fo:
        if file_format == FileFormat.CSV:
            swiss_format = resolve_swiss_format(fo.read(), options.swiss_bank_format)
            extractor_cls = SWISS_EXTRACTORS.get(swiss_format, GenericCsvExtractor)
        else:
            extractor_cls = FORMAT_EXTRACTORS[file_format]
        extractor = extractor_cls(fo, options)
        logger.debug(
            "Parsing %s with extractor %s", filepath, extractor.name
        )

        try:
            if isinstance(extractor, GenericCsvExtractor):
                return parse_generic_rows(extractor, options)
            transactions = list(extractor.process())
        except ExtractorError as exc:
            logger.warning("Failed to parse %s: %s", filepath, exc.internal or exc)
            return ParseResult(errors=[exc.to_parse_error()])

    logger.info(
        "Parsed %s transactions from %s with %s errors",
        len(transactions),
        filepath,
        len(extractor.errors),
    )
    return ParseResult(
        errors=extractor.errors,
        transactions=transactions,
        metadata=extractor.metadata(),
    )


def parse_generic_rows(
    extractor: GenericCsvExtractor, options: ParseOptions
) -> ParseResult:
    rows = extractor.read_raw_rows()
    if options.field_mapping is None:
        return ParseResult(rows=rows)
    transactions, errors = convert_rows(
        rows, options.field_mapping, import_notes=options.import_notes
    )
    return ParseResult(errors=errors, transactions=transactions, rows=rows)
