from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

from .adapters.base import TabularResult


@dataclass(frozen=True)
class FetchResult:
    """Shape of one bank's export as handed to the sink."""
    bank: str
    rows: int
    columns: int


@dataclass(frozen=True)
class RunSummary:
    """Aggregated results of one retrieval run."""
    start: datetime
    end: datetime
    results: List[FetchResult]


def fetch_result(bank: str, rows: TabularResult) -> FetchResult:
    """Row count plus the widest row, since exports may be ragged."""
    columns = max((len(r) for r in rows), default=0)
    return FetchResult(bank=bank, rows=len(rows), columns=columns)


def build_summary(start: datetime, end: datetime, results: List[FetchResult]) -> RunSummary:
    return RunSummary(start=start, end=end, results=sorted(results, key=lambda r: r.bank))


def format_summary(summary: RunSummary) -> str:
    """Human-readable CLI report."""
    lines: List[str] = []
    lines.append("Statement Summary")
    lines.append("-----------------")
    lines.append(f"Period: {summary.start.date().isoformat()} - {summary.end.date().isoformat()}")
    lines.append("")
    lines.append("Banks fetched:")

    if not summary.results:
        lines.append("- none")
    for result in summary.results:
        lines.append(f"- {result.bank}: {result.rows} rows, up to {result.columns} columns")

    return "\n".join(lines)


def to_json_dict(summary: RunSummary) -> Dict[str, Any]:
    """Machine-readable report for automation."""
    return {
        "period": {
            "start": summary.start.isoformat(),
            "end": summary.end.isoformat()
        },
        "banks": [
            {"bank": r.bank, "rows": r.rows, "columns": r.columns}
            for r in summary.results
        ],
        "total_rows": sum(r.rows for r in summary.results)
    }
