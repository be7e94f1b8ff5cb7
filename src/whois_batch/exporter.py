"""
Export of the result table as CSV or JSON text.

Both functions are pure: they take results and return text, leaving file
or clipboard output to the caller.
"""

import csv
import io
import json
from typing import Iterable, Mapping, Optional, Union

from .models import DomainResult


CSV_COLUMNS = (
    "domain",
    "source",
    "registrar",
    "registrant",
    "created",
    "expires",
    "updated",
    "status",
    "nameServers",
)

LIST_SEPARATOR = "|"

Results = Union[Mapping[str, DomainResult], Iterable[DomainResult]]


def _as_list(results: Results) -> list[DomainResult]:
    if isinstance(results, Mapping):
        return list(results.values())
    return list(results)


def _join(values: Optional[list[str]]) -> str:
    return LIST_SEPARATOR.join(values) if values else ""


def csv_row(result: DomainResult) -> list[str]:
    """Flatten one result into CSV cells; the best record supplies the fields."""
    best = result.best
    if best is None:
        return [result.domain] + [""] * (len(CSV_COLUMNS) - 1)
    return [
        result.domain,
        best.source or "",
        best.registrar or "",
        best.registrant or "",
        best.created_date or "",
        best.expires_date or "",
        best.updated_date or "",
        _join(best.status_list),
        _join(best.name_servers),
    ]


def to_csv(results: Results) -> str:
    """
    Render results as CSV text with a header row.

    Cells containing the delimiter, a quote or a line break are quoted and
    embedded quotes are doubled. Missing fields are empty cells.

    Args:
        results: A result table (domain -> DomainResult) or a sequence

    Returns:
        CSV text, one row per result, '\\n' line endings
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for result in _as_list(results):
        writer.writerow(csv_row(result))
    return buffer.getvalue()


def to_json(results: Results, indent: Optional[int] = 2) -> str:
    """Render results as a JSON array; missing fields are null."""
    return json.dumps(
        [result.to_dict() for result in _as_list(results)],
        indent=indent,
        ensure_ascii=False,
    )
