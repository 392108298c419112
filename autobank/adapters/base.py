from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Protocol

import requests

from ..errors import TransportError

TabularResult = List[List[str]]

SessionFactory = Callable[[], requests.Session]


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive period a statement export covers. Banks only look at the day
    part of both bounds.
    """
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))
        if self.start > self.end:
            raise ValueError(
                f"Invalid date range: start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )


class StatementSource(Protocol):
    """
    Capability shared by every bank adapter: return the bank's native
    statement export for a period as rows of string cells.
    """

    def statements(self, start: datetime, end: datetime) -> TabularResult:
        """
        Fetch statements between start and end (day resolution).

        Raises a StatementError subclass on any failure; never returns a
        partial table.
        """
        ...


def send(session: requests.Session, method: str, url: str, **kwargs) -> requests.Response:
    """Issue one request, translating client-level failures to TransportError."""
    try:
        return session.request(method, url, **kwargs)
    except requests.RequestException as exc:
        raise TransportError(f"{method} {url} failed: {exc}") from exc
