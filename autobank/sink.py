from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import pandas as pd

from .adapters.base import TabularResult
from .config import OutputConfig

logger = logging.getLogger(__name__)


class Sink(Protocol):
    """Destination for one bank's statements."""

    def write(self, bank: str, rows: TabularResult) -> None:
        ...


def to_frame(rows: TabularResult) -> pd.DataFrame:
    """
    Widen a possibly ragged table into a rectangular grid. Short rows are
    padded with empty cells; no row is treated as a header.
    """
    if not rows:
        return pd.DataFrame()
    width = max(len(row) for row in rows)
    return pd.DataFrame([row + [""] * (width - len(row)) for row in rows], dtype=object)


class CsvDirectorySink:
    """Writes each bank to <directory>/<bank>.csv."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    def write(self, bank: str, rows: TabularResult) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        out_path = self._directory / f"{bank}.csv"
        to_frame(rows).to_csv(out_path, header=False, index=False, encoding="utf-8")
        logger.info("Wrote %d rows to %s", len(rows), out_path)


class WorkbookSink:
    """
    Writes each bank to its own worksheet of an .xlsx workbook, anchored at
    A1. An existing sheet with the same name is replaced, other sheets are
    kept.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def write(self, bank: str, rows: TabularResult) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if self._path.exists():
            writer = pd.ExcelWriter(self._path, engine="openpyxl", mode="a", if_sheet_exists="replace")
        else:
            writer = pd.ExcelWriter(self._path, engine="openpyxl", mode="w")

        with writer:
            to_frame(rows).to_excel(writer, sheet_name=bank, header=False, index=False)
        logger.info("Wrote %d rows to sheet %s of %s", len(rows), bank, self._path)


def build_sink(output: OutputConfig) -> Sink:
    if output.format == "xlsx":
        return WorkbookSink(output.path)
    return CsvDirectorySink(output.path)
