import csv
import io

from ..extractor import ExtractorCsvBase
from ..extractor import MalformedFileError
from ..extractor import SkipLinesError


class GenericCsvExtractor(ExtractorCsvBase):
    """Delimited text without a known layout.

    Rows are returned raw; turning them into transactions needs a
    ``FieldMapping`` (see ``ledger_import.field_mapping``).
    """

    name: str = "csv"

    def __init__(self, input_file, options=None):
        super().__init__(input_file, options)
        if self.options.delimiter:
            self.delimiter = self.options.delimiter

    def skip_lines(self, contents: str) -> str:
        skip_start = max(0, self.options.skip_start_lines)
        skip_end = max(0, self.options.skip_end_lines)
        if not skip_start and not skip_end:
            return contents
        lines = contents.splitlines()
        if skip_start + skip_end >= len(lines):
            raise SkipLinesError(
                message="Cannot skip more lines than exist in the file",
                internal=(
                    f"Attempted to skip {skip_start} start + {skip_end} end lines "
                    f"from {len(lines)} total lines"
                ),
            )
        return "\n".join(lines[skip_start : len(lines) - skip_end])

    def read_raw_rows(self) -> list[dict[str, str] | list[str]]:
        contents = self.skip_lines(self.read_contents())
        if not self.options.has_header_row:
            return [row for row in self.read_rows(contents) if any(row)]

        reader = csv.DictReader(
            io.StringIO(contents), delimiter=self.delimiter, skipinitialspace=True
        )
        rows: list[dict[str, str] | list[str]] = []
        try:
            for row in reader:
                cleaned = {
                    key.strip(): (value or "").strip()
                    for key, value in row.items()
                    if isinstance(key, str)
                }
                if any(cleaned.values()):
                    rows.append(cleaned)
        except csv.Error as exc:
            raise MalformedFileError(
                message=f"Failed parsing: {exc}", internal=str(exc)
            )
        return rows
