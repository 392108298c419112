from __future__ import annotations


class StatementError(Exception):
    """Base class for every failure raised while retrieving statements."""


class TransportError(StatementError):
    """Network or HTTP-client failure at any protocol step."""


class AuthError(StatementError):
    """Login rejected or bearer token could not be obtained/used."""


class ProtocolError(StatementError):
    """An expected element is missing from a server-rendered page."""


class FormatError(StatementError):
    """The downloaded export could not be decoded."""


class FetchError(StatementError):
    """
    Raised by the orchestrator when one bank's fetch fails. Carries the bank
    identifier so the run can report which bank aborted it.
    """

    def __init__(self, bank: str, cause: Exception) -> None:
        super().__init__(f"{bank} - {cause}")
        self.bank = bank
        self.cause = cause


class PublishError(Exception):
    """Raised by the orchestrator when the sink cannot store one bank's table."""

    def __init__(self, bank: str, cause: Exception) -> None:
        super().__init__(f"{bank} - {cause}")
        self.bank = bank
        self.cause = cause
