# an extractor wraps an open input file and yields normalized transactions
import csv
import datetime
import io
import typing

from .data_types import NormalizedTransaction
from .data_types import ParseError
from .data_types import ParseMetadata
from .data_types import ParseOptions

DEFAULT_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%d.%m.%Y",
    "%d.%m.%y",
    "%Y%m%d",
    "%Y/%m/%d",
)


class ExtractorError(Exception):
    def __init__(self, message: str, internal: str = ""):
        self.message = message
        self.internal = internal

    def __str__(self):
        return self.message

    def to_parse_error(self) -> ParseError:
        return ParseError(message=self.message, internal=self.internal)


class MalformedFileError(ExtractorError):
    pass


class HeaderNotFoundError(ExtractorError):
    pass


class SkipLinesError(ExtractorError):
    pass


class ExtractorBase:
    name: str = "base"

    input_file: typing.TextIO
    """The input file to be processed"""

    options: ParseOptions

    errors: list[ParseError]
    """Per-record errors collected while processing"""

    def __init__(self, input_file: typing.TextIO, options: ParseOptions | None = None):
        self.input_file = input_file
        self.options = options if options is not None else ParseOptions()
        self.errors = []
        self.filename = getattr(input_file, "name", None)

    def read_contents(self) -> str:
        self.input_file.seek(0)
        return self.input_file.read().removeprefix("\ufeff")

    def add_error(self, message: str, internal: str = "", lineno: int | None = None):
        self.errors.append(ParseError(message=message, internal=internal, lineno=lineno))

    def notes(self, value: str | None) -> str | None:
        if not self.options.import_notes:
            return None
        return value or None

    def metadata(self) -> ParseMetadata | None:
        return None

    def process(self) -> typing.Generator[NormalizedTransaction, None, None]:
        raise NotImplementedError()


class ExtractorCsvBase(ExtractorBase):
    """
    Base class for delimited text extractors
    """

    delimiter: str = ","

    def read_rows(self, contents: str | None = None) -> list[list[str]]:
        if contents is None:
            contents = self.read_contents()
        reader = csv.reader(
            io.StringIO(contents),
            delimiter=self.delimiter,
            quotechar='"',
            skipinitialspace=True,
        )
        try:
            return [[cell.strip() for cell in row] for row in reader]
        except csv.Error as exc:
            raise MalformedFileError(
                message=f"Failed parsing {self.name} CSV: {exc}",
                internal=str(exc),
            )


def parse_date_formats(
    value: str, formats: typing.Sequence[str]
) -> datetime.date | None:
    value = value.strip()
    for fmt in formats:
        try:
            return datetime.datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None
