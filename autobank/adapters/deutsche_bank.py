from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from .base import SessionFactory, TabularResult, as_utc, send
from ..decode import decode_csv, response_text
from ..errors import AuthError, ProtocolError, TransportError

logger = logging.getLogger(__name__)

BASE_URL = "https://meine.deutsche-bank.de"
LOGIN_PAGE_PATH = "/trxm/db/"
LOGIN_PATH = "/trxm/db/gvo/login/login.do"

PAGE_DISPLAY_TRANSACTIONS = "DisplayTransactions"

ACCEPT_LANGUAGE = "en-US,en;q=0.8,da;q=0.6"


def find_form_action(html: str) -> Optional[str]:
    """Action of the turnover refresh form; it carries the session token."""
    soup = BeautifulSoup(html, "html.parser")
    action = None
    for form in soup.select("#accountTurnoversForm"):
        action = form.get("action")
    return action


def find_export_link(html: str) -> Optional[str]:
    """Href of the CSV export anchor on the turnover page."""
    soup = BeautifulSoup(html, "html.parser")
    href = None
    for anchor in soup.select(".csv a"):
        href = anchor.get("href")
    return href


def login_form(branch: str, account: str, pin: str, page: str) -> List[Tuple[str, str]]:
    # The fingerprint fields are what the site's script fills in; empty is accepted.
    return [
        ("gvo", "DisplayFinancialOverview"),
        ("loginTab", "pin"),
        ("process", ""),
        ("wknOrIsin", ""),
        ("quantity", ""),
        ("fingerprintToken", ""),
        ("fingerprintTokenVersion", ""),
        ("updateFingerprintToken", "false"),
        ("javascriptEnabled", "false"),
        ("branch", branch),
        ("account", account),
        ("subaccount", "00"),
        ("pin", pin),
        ("quickLink", page),
    ]


def period_form(start: datetime, end: datetime) -> List[Tuple[str, str]]:
    """
    Fields of the turnover date filter. Month and day are zero padded to two
    digits; both years are rendered the same way.
    """
    start = as_utc(start)
    end = as_utc(end)
    return [
        ("subaccountAndCurrency", "00"),
        ("period", "dynamicRange"),
        ("periodStartMonth", f"{start.month:02d}"),
        ("periodStartDay", f"{start.day:02d}"),
        ("periodStartYear", f"{start.year:d}"),
        ("periodEndMonth", f"{end.month:02d}"),
        ("periodEndDay", f"{end.day:02d}"),
        ("periodEndYear", f"{end.year:d}"),
        ("periodDays", "180"),
        ("searchString", ""),
    ]


def _raise_for_status(response: requests.Response, step: str) -> None:
    if response.status_code >= 400:
        raise TransportError(f"{step}: unexpected HTTP status {response.status_code} from {response.url}")


class DeutscheBankAdapter:
    """
    Statement source for Deutsche Bank online banking.

    There is no API, so the adapter drives the web banking pages the way a
    browser would: log in with branch/account/PIN, submit the turnover date
    filter and download the CSV export linked from the result page. Each
    call works on a brand new session.
    """

    def __init__(self,
                 branch: str,
                 account: str,
                 pin: str,
                 base_url: str = BASE_URL,
                 session_factory: SessionFactory = requests.Session) -> None:
        self._branch = branch
        self._account = account
        self._pin = pin
        self._base_url = base_url
        self._session_factory = session_factory

    def statements(self, start: datetime, end: datetime) -> TabularResult:
        with self._session_factory() as session:
            page = self._login(session, PAGE_DISPLAY_TRANSACTIONS)

            path = find_form_action(page)
            if path is None:
                raise ProtocolError("failed to find refresh form on page")

            logger.debug("Submitting turnover period %s - %s", start.date(), end.date())
            resp = send(session, "POST", self._url(path), data=period_form(start, end))
            _raise_for_status(resp, "period filter")

            path = find_export_link(response_text(resp))
            if path is None:
                raise ProtocolError("failed to find csv link on page")

            logger.debug("Downloading CSV export")
            resp = send(session, "GET", self._url(path))
            _raise_for_status(resp, "csv export")

            rows = decode_csv(response_text(resp), delimiter=";", ragged=True)

        logger.info("Deutsche Bank returned %d rows", len(rows))
        return rows

    def _url(self, path: str) -> str:
        return urljoin(self._base_url, path)

    def _login(self, session: requests.Session, page: str) -> str:
        """Log in and return the HTML of the requested quick-link page."""
        logger.debug("Fetching login page")
        # Only seeds session cookies; the page itself is not inspected.
        send(session, "GET", self._url(LOGIN_PAGE_PATH), headers={"Accept-Language": ACCEPT_LANGUAGE})

        logger.debug("Submitting credentials")
        resp = send(session, "POST", self._url(LOGIN_PATH),
                    data=login_form(self._branch, self._account, self._pin, page))
        if resp.status_code in (401, 403):
            raise AuthError(f"login rejected with HTTP status {resp.status_code}")
        _raise_for_status(resp, "login")
        return response_text(resp)
