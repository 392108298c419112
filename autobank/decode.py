from __future__ import annotations

import csv
import io

import requests

from .adapters.base import TabularResult
from .errors import FormatError


def response_text(response: requests.Response) -> str:
    """Decode a response body using its declared charset, UTF-8 otherwise."""
    # requests assumes ISO-8859-1 for text/* without a charset; exports are UTF-8.
    content_type = response.headers.get("Content-Type", "")
    encoding = "utf-8"
    if "charset=" in content_type.lower() and response.encoding:
        encoding = response.encoding
    try:
        return response.content.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise FormatError(f"Cannot decode response body as {encoding}: {exc}") from exc


def decode_csv(text: str, delimiter: str = ",", ragged: bool = False) -> TabularResult:
    """
    Parse a CSV export into rows of strings.

    Blank lines are skipped. With ragged=False every row must have as many
    fields as the first one, otherwise FormatError is raised. With ragged=True
    rows keep whatever length they have.
    """
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
    rows: TabularResult = []
    expected = None
    try:
        for record in reader:
            if not record:
                continue
            if not ragged:
                if expected is None:
                    expected = len(record)
                elif len(record) != expected:
                    raise FormatError(
                        f"record on line {reader.line_num}: wrong number of fields "
                        f"(expected {expected}, got {len(record)})"
                    )
            rows.append(record)
    except csv.Error as exc:
        raise FormatError(f"record on line {reader.line_num}: {exc}") from exc
    return rows
