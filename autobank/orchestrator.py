from __future__ import annotations

import logging
from typing import List, Mapping

from .adapters.base import DateRange, StatementSource
from .errors import FetchError, PublishError
from .report import FetchResult, fetch_result
from .sink import Sink

logger = logging.getLogger(__name__)


def run(banks: Mapping[str, StatementSource], period: DateRange, sink: Sink) -> List[FetchResult]:
    """
    Fetch every bank over the same period and hand each table to the sink.

    Banks are processed one after another. The first failure aborts the run
    with FetchError (or PublishError when the sink fails); banks not yet
    visited are not attempted.
    """
    results: List[FetchResult] = []
    for bank, source in banks.items():
        logger.info("Fetching statements for %s", bank)
        try:
            rows = source.statements(period.start, period.end)
        except Exception as exc:
            raise FetchError(bank, exc) from exc

        try:
            sink.write(bank, rows)
        except Exception as exc:
            raise PublishError(bank, exc) from exc
        results.append(fetch_result(bank, rows))
    return results
